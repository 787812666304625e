"""Order service layer (Use Cases).

``OrderCreationService`` turns a payment-verified checkout into exactly
one persisted order; ``OrderMutationService`` implements the owner's
management operations.  Every write is atomic and the service defines
the unit-of-work boundary.

Business rules enforced:
- One payment transaction produces at most one order.
- Orders are never deleted; cancellation is a status transition.
- Every owner mutation locks the order row and appends a timeline event.
- Only allow-listed fields can be patched.
- Refunds never exceed the remaining refundable balance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import structlog
from django.db import DatabaseError, transaction
from django.utils import timezone
from pydantic.alias_generators import to_camel

from modules.orders.constants import (
    CLOSED_STATES,
    LEDGER_MANAGED_VALUES,
    PROGRESS_EVENT_TYPES,
    REFUNDABLE_PAYMENT_STATES,
    SHIPMENT_PROGRESS,
    FulfillmentStatus,
    OrderEventType,
    OrderStatus,
    PaymentEventStatus,
    PaymentEventType,
    PaymentStatus,
    RefundStatus,
    ShipmentStatus,
)
from modules.orders.exceptions import (
    DuplicateTransaction,
    InvalidOrderStatus,
    OrderNotFound,
    PersistenceFailure,
    RefundExceedsBalance,
)
from modules.orders.models import OwnerNote, PaymentEvent, Refund, Shipment
from modules.orders.validation import parse_checkout_payload

if TYPE_CHECKING:
    from django.db import models

    from modules.orders.dtos import (
        AddNoteDTO,
        CreateRefundDTO,
        CreateShipmentDTO,
        OrderPatchDTO,
    )
    from modules.orders.factory import OrderFactory
    from modules.orders.idempotency import IdempotencyIndex
    from modules.orders.models import Order
    from modules.orders.notifications import OrderNotifier
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.timeline import EventTimeline

logger = structlog.get_logger(__name__)


class OrderCreationService:
    """Creates orders from payment-verified checkouts.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        idempotency: IdempotencyIndex,
        factory: OrderFactory,
        notifier: OrderNotifier,
    ) -> None:
        self._order_repo = order_repository
        self._idempotency = idempotency
        self._factory = factory
        self._notifier = notifier

    def create_order(self, payload: Any) -> Order:
        """Validate, build and persist the order for a checkout payload.

        Steps:
        1. Staged payload validation.
        2. Idempotency check on the payment transaction id.
        3. Build the canonical order (``OrderFactory``).
        4. Commit the order with its seed records.
        5. After commit, dispatch the confirmation (fire-and-forget).

        Raises:
            MissingRequiredFields, PaymentDataMissing, MissingShippingFields,
            InvalidCheckoutPayload: the payload was rejected.
            DuplicateTransaction: the transaction already produced an order.
            PersistenceFailure: the order could not be committed.
        """
        dto = parse_checkout_payload(payload)
        log = logger.bind(
            transaction_id=dto.transaction_id, payment_provider=dto.payment_provider
        )
        log.info("order.creation_started", item_count=len(dto.items))

        try:
            with transaction.atomic():
                existing_id = self._idempotency.exists(dto.transaction_id)
                if existing_id is not None:
                    log.info("order.idempotency_hit", existing_order_id=str(existing_id))
                    raise DuplicateTransaction(dto.transaction_id, existing_id)

                order = self._order_repo.create(self._factory.build(dto))
                order_id = str(order.id)
                transaction.on_commit(lambda: self._notify(order_id))
        except DatabaseError as exc:
            log.error("order.persistence_failed", error=str(exc))
            raise PersistenceFailure("Failed to persist the order.") from exc

        log.info("order.created", order_id=order_id, order_number=order.order_number)
        return self._order_repo.get_by_id(order_id) or order

    def _notify(self, order_id: str) -> None:
        log = logger.bind(order_id=order_id)
        try:
            order = self._order_repo.get_by_id(order_id)
            self._notifier.order_confirmed(order)
        except Exception as exc:
            log.warning("order.notification_failed", error=str(exc))
            return
        log.info("order.notification_dispatched")


class OrderMutationService:
    """Owner-side queries and mutations of existing orders."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        timeline: EventTimeline,
    ) -> None:
        self._order_repo = order_repository
        self._timeline = timeline

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        """Return orders newest first, optionally filtered."""
        return self._order_repo.list(filters)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def patch(self, order_id: str, dto: OrderPatchDTO) -> Order:
        """Apply an allow-listed patch.

        An empty patch changes nothing and records no event.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the patch sets a status only cancel or refund
                may set, or changes a status of a closed order.
        """
        changes = dto.changes()
        if not changes:
            return self.get_order(order_id)
        managed = sorted(
            field
            for field, value in changes.items()
            if value in LEDGER_MANAGED_VALUES.get(field, ())
        )
        if managed:
            raise InvalidOrderStatus(
                f"{', '.join(to_camel(f) for f in managed)} can only be set by "
                "cancelling or refunding the order."
            )

        with transaction.atomic():
            order = self._lock(order_id)
            if order.status in CLOSED_STATES and LEDGER_MANAGED_VALUES.keys() & changes:
                logger.warning(
                    "order.patch_not_allowed",
                    order_id=str(order_id),
                    current_status=order.status,
                )
                raise InvalidOrderStatus(
                    f"Cannot change the status of an order in status {order.status}."
                )
            previous = {field: getattr(order, field) for field in changes}
            for field, value in changes.items():
                setattr(order, field, value)
            self._order_repo.save(order, update_fields=list(changes))

            event_type = next(
                (
                    PROGRESS_EVENT_TYPES[value]
                    for value in (changes.get("fulfillment_status"), changes.get("status"))
                    if value in PROGRESS_EVENT_TYPES
                ),
                OrderEventType.UPDATED,
            )
            self._timeline.append(
                order,
                event_type,
                f"Order updated: {', '.join(to_camel(f) for f in changes)}",
                {
                    "changes": {to_camel(f): v for f, v in changes.items()},
                    "previous": {to_camel(f): v for f, v in previous.items()},
                },
            )
        self._log_action("patch", order_id, fields=sorted(changes))
        return self.get_order(order_id)

    def cancel(self, order_id: str) -> Order:
        """Soft-cancel an order.

        Cancelling an already cancelled order is a no-op.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order was delivered or refunded.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            if order.status == OrderStatus.CANCELLED:
                logger.info("order.cancel_noop", order_id=str(order_id))
                return self.get_order(order_id)
            if order.status in CLOSED_STATES:
                logger.warning(
                    "order.cancel_not_allowed",
                    order_id=str(order_id),
                    current_status=order.status,
                )
                raise InvalidOrderStatus(f"Cannot cancel order in status {order.status}.")

            previous_status = order.status
            order.status = OrderStatus.CANCELLED
            order.fulfillment_status = FulfillmentStatus.CANCELLED
            self._order_repo.save(order, update_fields=["status", "fulfillment_status"])
            self._timeline.append(
                order,
                OrderEventType.CANCELLED,
                "Order cancelled by owner",
                {"previousStatus": previous_status},
            )
        self._log_action("cancel", order_id, previous_status=previous_status)
        return self.get_order(order_id)

    def add_note(self, order_id: str, dto: AddNoteDTO) -> Tuple[Order, OwnerNote]:
        with transaction.atomic():
            order = self._lock(order_id)
            note = self._order_repo.append(OwnerNote(order=order, content=dto.content))
            self._order_repo.save(order, update_fields=[])
            self._timeline.append(
                order, OrderEventType.NOTE_ADDED, "Owner note added", {"noteId": str(note.id)}
            )
        self._log_action("add_note", order_id, note_id=str(note.id))
        return self.get_order(order_id), note

    def add_shipment(
        self, order_id: str, dto: CreateShipmentDTO
    ) -> Tuple[Order, Shipment]:
        """Record a shipment and move fulfillment forward.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order was cancelled or refunded.
        """
        now = timezone.now()
        with transaction.atomic():
            order = self._lock(order_id)
            if order.status in {OrderStatus.CANCELLED, OrderStatus.REFUNDED}:
                raise InvalidOrderStatus(f"Cannot ship order in status {order.status}.")

            shipped_at = dto.shipped_at
            if shipped_at is None and dto.status != ShipmentStatus.PREPARING:
                shipped_at = now
            shipment = self._order_repo.append(
                Shipment(
                    order=order,
                    tracking_number=dto.tracking_number,
                    carrier=dto.carrier,
                    status=dto.status,
                    shipped_at=shipped_at,
                    delivered_at=now if dto.status == ShipmentStatus.DELIVERED else None,
                    item_ids=dto.item_ids,
                    tracking_url=dto.tracking_url or "",
                )
            )

            fields = ["carrier", "tracking_numbers"]
            order.carrier = dto.carrier
            if dto.tracking_number not in order.tracking_numbers:
                order.tracking_numbers = [*order.tracking_numbers, dto.tracking_number]
            event_type = OrderEventType.UPDATED
            if dto.status in SHIPMENT_PROGRESS:
                status, fulfillment, event_type = SHIPMENT_PROGRESS[dto.status]
                order.status = status
                order.fulfillment_status = fulfillment
                fields += ["status", "fulfillment_status"]
            self._order_repo.save(order, update_fields=fields)

            self._timeline.append(
                order,
                event_type,
                f"Shipment {dto.tracking_number} via {dto.carrier} ({dto.status})",
                {
                    "shipmentId": str(shipment.id),
                    "trackingNumber": dto.tracking_number,
                    "carrier": dto.carrier,
                },
            )
        self._log_action("add_shipment", order_id, shipment_id=str(shipment.id))
        return self.get_order(order_id), shipment

    def add_refund(self, order_id: str, dto: CreateRefundDTO) -> Tuple[Order, Refund]:
        """Record a processed refund and its payment timeline entry.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the payment is not in a refundable state.
            RefundExceedsBalance: amount is above the remaining balance.
        """
        with transaction.atomic():
            order = self._lock(order_id)
            if order.payment_status not in REFUNDABLE_PAYMENT_STATES:
                raise InvalidOrderStatus(
                    f"Cannot refund order with payment status {order.payment_status}."
                )
            balance = order.refundable_balance
            if dto.amount > balance:
                raise RefundExceedsBalance(
                    f"Refund of {dto.amount} exceeds the refundable balance of {balance}."
                )

            full = dto.amount == balance
            refund = self._order_repo.append(
                Refund(
                    order=order,
                    amount=dto.amount,
                    reason=dto.reason,
                    status=RefundStatus.PROCESSED,
                    processed_at=timezone.now(),
                    item_ids=dto.item_ids,
                )
            )
            self._order_repo.append(
                PaymentEvent(
                    order=order,
                    type=PaymentEventType.REFUND if full else PaymentEventType.PARTIAL_REFUND,
                    amount=dto.amount,
                    currency=order.currency,
                    status=PaymentEventStatus.SUCCEEDED,
                    transaction_id=order.transaction_id,
                )
            )

            fields = ["payment_status"]
            if full:
                order.payment_status = PaymentStatus.REFUNDED
                order.status = OrderStatus.REFUNDED
                fields.append("status")
            else:
                order.payment_status = PaymentStatus.PARTIALLY_REFUNDED
            self._order_repo.save(order, update_fields=fields)

            self._timeline.append(
                order,
                OrderEventType.REFUNDED,
                f"Refunded {dto.amount} {order.currency}: {dto.reason}",
                {"refundId": str(refund.id), "amount": str(dto.amount)},
            )
        self._log_action("add_refund", order_id, refund_id=str(refund.id), full=full)
        return self.get_order(order_id), refund

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock(self, order_id: str) -> Order:
        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    @staticmethod
    def _log_action(action: str, order_id: str, **fields: Any) -> None:
        logger.info("order.owner_action", action=action, order_id=str(order_id), **fields)
