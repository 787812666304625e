"""Unit tests for OrderCreationService and OrderMutationService.

Covers:
- Creation persists the order with its seed records.
- Duplicate transaction ids are refused with the existing order id.
- Validation errors are raised before any write.
- Persistence failures leave nothing behind.
- Notification dispatch happens after commit and never fails creation.
- Patch allow-list, cancellation, notes, shipments and refunds.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import Mock, patch
from uuid import uuid4

import pytest
from django.db import DatabaseError

from modules.orders.constants import (
    FulfillmentStatus,
    OrderEventType,
    OrderStatus,
    PaymentEventType,
    PaymentStatus,
    ShipmentStatus,
)
from modules.orders.dtos import (
    AddNoteDTO,
    CheckoutDTO,
    CreateRefundDTO,
    CreateShipmentDTO,
    OrderPatchDTO,
)
from modules.orders.exceptions import (
    DuplicateTransaction,
    InvalidOrderStatus,
    MissingRequiredFields,
    OrderNotFound,
    PersistenceFailure,
    RefundExceedsBalance,
)
from modules.orders.factory import OrderFactory
from modules.orders.models import Order, OrderEvent, OrderItem, PaymentEvent, Refund
from modules.orders.repositories.django_repository import OrderDjangoRepository

pytestmark = pytest.mark.unit


def _event_types(order):
    return [e.type for e in order.event_timeline.all()]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_persists_order_and_seed_records(self, creation_service, checkout_payload):
        order = creation_service.create_order(checkout_payload)

        assert Order.objects.count() == 1
        assert order.transaction_id == "pi_3PabcDEF123"
        assert order.items.count() == 2
        assert order.payment_timeline.count() == 1
        assert _event_types(order) == [OrderEventType.CREATED, OrderEventType.PAID]

    def test_duplicate_transaction(self, creation_service, checkout_payload):
        first = creation_service.create_order(checkout_payload)

        with pytest.raises(DuplicateTransaction) as exc_info:
            creation_service.create_order(checkout_payload)

        assert exc_info.value.existing_order_id == first.id
        assert Order.objects.count() == 1

    def test_validation_error_writes_nothing(self, creation_service, checkout_payload):
        del checkout_payload["customerName"]

        with pytest.raises(MissingRequiredFields):
            creation_service.create_order(checkout_payload)

        assert Order.objects.count() == 0

    def test_persistence_failure_rolls_back_everything(
        self, creation_service, checkout_payload
    ):
        with patch.object(OrderEvent, "save", side_effect=DatabaseError("disk full")):
            with pytest.raises(PersistenceFailure):
                creation_service.create_order(checkout_payload)

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert PaymentEvent.objects.count() == 0

    def test_notifies_after_commit(
        self, creation_service, notifier, checkout_payload, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            order = creation_service.create_order(checkout_payload)

        assert len(callbacks) == 1
        notifier.order_confirmed.assert_called_once()
        assert notifier.order_confirmed.call_args.args[0].id == order.id

    def test_no_notification_before_commit(self, creation_service, notifier, checkout_payload):
        creation_service.create_order(checkout_payload)

        notifier.order_confirmed.assert_not_called()

    def test_notification_failure_is_swallowed(
        self, creation_service, notifier, checkout_payload, django_capture_on_commit_callbacks
    ):
        notifier.order_confirmed.side_effect = ConnectionError("broker down")

        with django_capture_on_commit_callbacks(execute=True):
            order = creation_service.create_order(checkout_payload)

        assert Order.objects.filter(id=order.id).exists()


class TestOrderNumberCollision:
    def test_number_is_regenerated(self, make_order, checkout_payload):
        existing = make_order()
        checkout_payload["transactionId"] = f"pi_{uuid4().hex}"
        blueprint = OrderFactory().build(CheckoutDTO.model_validate(checkout_payload))
        blueprint.renumber(existing.order_number)

        repository = OrderDjangoRepository(renumber=lambda: "ORD-2026-1-RETRY")
        order = repository.create(blueprint)

        assert order.order_number == "ORD-2026-1-RETRY"
        assert Order.objects.count() == 2
        assert OrderItem.objects.filter(order=order).count() == 2

    def test_gives_up_after_bounded_retries(self, make_order, checkout_payload):
        existing = make_order()
        checkout_payload["transactionId"] = f"pi_{uuid4().hex}"
        blueprint = OrderFactory().build(CheckoutDTO.model_validate(checkout_payload))
        blueprint.renumber(existing.order_number)

        repository = OrderDjangoRepository(renumber=lambda: existing.order_number)

        with pytest.raises(PersistenceFailure):
            repository.create(blueprint)
        assert Order.objects.count() == 1

    def test_default_renumbering_uses_the_factory(self, make_order, checkout_payload):
        existing = make_order()
        checkout_payload["transactionId"] = f"pi_{uuid4().hex}"
        blueprint = OrderFactory().build(CheckoutDTO.model_validate(checkout_payload))
        blueprint.renumber(existing.order_number)

        with patch.object(
            OrderFactory, "new_order_number", return_value="ORD-2026-2-FRESH"
        ) as new_order_number:
            order = OrderDjangoRepository().create(blueprint)

        new_order_number.assert_called_once_with()
        assert order.order_number == "ORD-2026-2-FRESH"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_get_order(self, mutation_service, make_order):
        order = make_order()
        assert mutation_service.get_order(str(order.id)).id == order.id

    @pytest.mark.parametrize("order_id", [str(uuid4()), "not-a-uuid"])
    def test_get_order_not_found(self, mutation_service, order_id):
        with pytest.raises(OrderNotFound):
            mutation_service.get_order(order_id)

    def test_list_orders_newest_first(self, mutation_service, make_order):
        first, second = make_order(), make_order()

        ids = [o.id for o in mutation_service.list_orders()]

        assert ids == [second.id, first.id]

    def test_list_orders_filtered(self, mutation_service, make_order):
        make_order()
        target = make_order(customerName="Harry Potter")

        result = mutation_service.list_orders({"customer_name": "Harry Potter"})

        assert [o.id for o in result] == [target.id]


# ---------------------------------------------------------------------------
# Patch
# ---------------------------------------------------------------------------


class TestPatch:
    def test_applies_allow_listed_fields(self, mutation_service, make_order):
        order = make_order()
        dto = OrderPatchDTO.model_validate(
            {"carrier": "UPS", "trackingNumbers": ["1Z999"], "shippingMethod": "Express"}
        )

        updated = mutation_service.patch(str(order.id), dto)

        assert updated.carrier == "UPS"
        assert updated.tracking_numbers == ["1Z999"]
        assert updated.shipping_method == "Express"
        assert updated.updated_at > order.updated_at
        last = updated.event_timeline.last()
        assert last.type == OrderEventType.UPDATED
        assert last.metadata["changes"]["carrier"] == "UPS"

    def test_progress_event_type(self, mutation_service, make_order):
        order = make_order()
        dto = OrderPatchDTO.model_validate({"fulfillmentStatus": "processing"})

        updated = mutation_service.patch(str(order.id), dto)

        assert updated.fulfillment_status == FulfillmentStatus.PROCESSING
        assert updated.event_timeline.last().type == OrderEventType.PROCESSING

    def test_identity_is_untouched(self, mutation_service, make_order):
        order = make_order()
        dto = OrderPatchDTO.model_validate({"status": "shipped"})

        updated = mutation_service.patch(str(order.id), dto)

        assert updated.order_number == order.order_number
        assert updated.transaction_id == order.transaction_id
        assert updated.total == order.total

    def test_empty_patch_is_a_no_op(self, mutation_service, make_order):
        order = make_order()

        updated = mutation_service.patch(str(order.id), OrderPatchDTO())

        assert updated.event_timeline.count() == 2
        assert updated.updated_at == order.updated_at

    @pytest.mark.parametrize("field", ["status", "fulfillmentStatus"])
    def test_cannot_cancel_by_patch(self, mutation_service, make_order, field):
        order = make_order()

        with pytest.raises(InvalidOrderStatus):
            mutation_service.patch(
                str(order.id), OrderPatchDTO.model_validate({field: "cancelled"})
            )

    @pytest.mark.parametrize(
        "field, value",
        [
            ("status", "refunded"),
            ("paymentStatus", "refunded"),
            ("paymentStatus", "partially_refunded"),
        ],
    )
    def test_refund_states_only_come_from_refunds(
        self, mutation_service, make_order, field, value
    ):
        order = make_order()

        with pytest.raises(InvalidOrderStatus, match="refunding"):
            mutation_service.patch(
                str(order.id), OrderPatchDTO.model_validate({field: value})
            )

        refreshed = Order.objects.get(id=order.id)
        assert refreshed.payment_status == PaymentStatus.PAID
        assert refreshed.status == OrderStatus.PAID

    @pytest.mark.parametrize("closing", ["cancel", "full_refund"])
    def test_closed_order_status_cannot_be_reopened(
        self, mutation_service, make_order, closing
    ):
        order = make_order()
        if closing == "cancel":
            mutation_service.cancel(str(order.id))
        else:
            mutation_service.add_refund(
                str(order.id), CreateRefundDTO(amount=Decimal("100.00"), reason="r")
            )
        closed = Order.objects.get(id=order.id)

        with pytest.raises(InvalidOrderStatus):
            mutation_service.patch(
                str(order.id),
                OrderPatchDTO.model_validate(
                    {"status": "shipped", "fulfillmentStatus": "shipped"}
                ),
            )

        refreshed = Order.objects.get(id=order.id)
        assert refreshed.status == closed.status
        assert refreshed.fulfillment_status == closed.fulfillment_status
        assert refreshed.event_timeline.count() == closed.event_timeline.count()

    def test_closed_order_keeps_non_status_fields_editable(
        self, mutation_service, make_order
    ):
        order = make_order()
        mutation_service.cancel(str(order.id))

        updated = mutation_service.patch(
            str(order.id), OrderPatchDTO.model_validate({"carrier": "UPS"})
        )

        assert updated.carrier == "UPS"
        assert updated.status == OrderStatus.CANCELLED

    def test_not_found(self, mutation_service):
        with pytest.raises(OrderNotFound):
            mutation_service.patch(
                str(uuid4()), OrderPatchDTO.model_validate({"carrier": "UPS"})
            )


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


class TestCancel:
    def test_cancel(self, mutation_service, make_order):
        order = make_order()

        cancelled = mutation_service.cancel(str(order.id))

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.fulfillment_status == FulfillmentStatus.CANCELLED
        assert cancelled.event_timeline.last().type == OrderEventType.CANCELLED
        assert Order.objects.filter(id=order.id).exists()

    def test_cancel_twice_is_a_no_op(self, mutation_service, make_order):
        order = make_order()
        mutation_service.cancel(str(order.id))

        again = mutation_service.cancel(str(order.id))

        assert again.status == OrderStatus.CANCELLED
        assert _event_types(again).count(OrderEventType.CANCELLED) == 1

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.REFUNDED])
    def test_closed_orders_cannot_be_cancelled(self, mutation_service, make_order, status):
        order = make_order()
        Order.objects.filter(id=order.id).update(status=status)

        with pytest.raises(InvalidOrderStatus):
            mutation_service.cancel(str(order.id))

    def test_not_found(self, mutation_service):
        with pytest.raises(OrderNotFound):
            mutation_service.cancel(str(uuid4()))


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class TestAddNote:
    def test_add_note(self, mutation_service, make_order):
        order = make_order()

        updated, note = mutation_service.add_note(
            str(order.id), AddNoteDTO(content="Customer asked for gift wrap")
        )

        assert [n.content for n in updated.owner_notes.all()] == [
            "Customer asked for gift wrap"
        ]
        last = updated.event_timeline.last()
        assert last.type == OrderEventType.NOTE_ADDED
        assert last.metadata == {"noteId": str(note.id)}
        assert updated.updated_at > order.updated_at


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------


class TestAddShipment:
    def test_shipped(self, mutation_service, make_order):
        order = make_order()

        updated, shipment = mutation_service.add_shipment(
            str(order.id),
            CreateShipmentDTO(tracking_number="1Z999", carrier="UPS"),
        )

        assert shipment.shipped_at is not None
        assert updated.status == OrderStatus.SHIPPED
        assert updated.fulfillment_status == FulfillmentStatus.SHIPPED
        assert updated.tracking_numbers == ["1Z999"]
        assert updated.carrier == "UPS"
        assert updated.event_timeline.last().type == OrderEventType.SHIPPED

    def test_delivered(self, mutation_service, make_order):
        order = make_order()

        updated, shipment = mutation_service.add_shipment(
            str(order.id),
            CreateShipmentDTO(
                tracking_number="1Z999", carrier="UPS", status=ShipmentStatus.DELIVERED
            ),
        )

        assert shipment.delivered_at is not None
        assert updated.status == OrderStatus.DELIVERED
        assert updated.fulfillment_status == FulfillmentStatus.DELIVERED

    def test_preparing(self, mutation_service, make_order):
        order = make_order()

        updated, shipment = mutation_service.add_shipment(
            str(order.id),
            CreateShipmentDTO(
                tracking_number="1Z999", carrier="UPS", status=ShipmentStatus.PREPARING
            ),
        )

        assert shipment.shipped_at is None
        assert updated.fulfillment_status == FulfillmentStatus.PROCESSING

    def test_tracking_number_recorded_once(self, mutation_service, make_order):
        order = make_order()
        dto = CreateShipmentDTO(tracking_number="1Z999", carrier="UPS")
        mutation_service.add_shipment(str(order.id), dto)

        updated, _ = mutation_service.add_shipment(str(order.id), dto)

        assert updated.tracking_numbers == ["1Z999"]
        assert updated.shipments.count() == 2

    def test_cancelled_order_cannot_ship(self, mutation_service, make_order):
        order = make_order()
        mutation_service.cancel(str(order.id))

        with pytest.raises(InvalidOrderStatus):
            mutation_service.add_shipment(
                str(order.id), CreateShipmentDTO(tracking_number="1Z999", carrier="UPS")
            )


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------


class TestAddRefund:
    def test_partial_refund(self, mutation_service, make_order):
        order = make_order()

        updated, refund = mutation_service.add_refund(
            str(order.id), CreateRefundDTO(amount=Decimal("25.00"), reason="damaged")
        )

        assert refund.processed_at is not None
        assert updated.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert updated.status == OrderStatus.PAID
        assert updated.refundable_balance == Decimal("75.00")
        assert [p.type for p in updated.payment_timeline.all()] == [
            PaymentEventType.CAPTURE,
            PaymentEventType.PARTIAL_REFUND,
        ]
        assert updated.event_timeline.last().type == OrderEventType.REFUNDED

    def test_full_refund_in_two_steps(self, mutation_service, make_order):
        order = make_order()
        mutation_service.add_refund(
            str(order.id), CreateRefundDTO(amount=Decimal("40.00"), reason="first")
        )

        updated, _ = mutation_service.add_refund(
            str(order.id), CreateRefundDTO(amount=Decimal("60.00"), reason="rest")
        )

        assert updated.payment_status == PaymentStatus.REFUNDED
        assert updated.status == OrderStatus.REFUNDED
        assert updated.refundable_balance == Decimal("0.00")
        assert updated.payment_timeline.last().type == PaymentEventType.REFUND

    def test_refund_exceeding_balance(self, mutation_service, make_order):
        order = make_order()

        with pytest.raises(RefundExceedsBalance):
            mutation_service.add_refund(
                str(order.id), CreateRefundDTO(amount=Decimal("100.01"), reason="x")
            )

        assert not Refund.objects.filter(order_id=order.id).exists()

    def test_refunded_order_cannot_be_refunded_again(self, mutation_service, make_order):
        order = make_order()
        mutation_service.add_refund(
            str(order.id), CreateRefundDTO(amount=Decimal("100.00"), reason="all")
        )

        with pytest.raises(InvalidOrderStatus):
            mutation_service.add_refund(
                str(order.id), CreateRefundDTO(amount=Decimal("1.00"), reason="more")
            )


def test_owner_actions_are_logged(mutation_service, make_order):
    order = make_order()
    logger = Mock()

    with patch("modules.orders.services.logger", logger):
        mutation_service.cancel(str(order.id))

    logger.info.assert_any_call(
        "order.owner_action",
        action="cancel",
        order_id=str(order.id),
        previous_status=OrderStatus.PAID,
    )
