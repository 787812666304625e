"""Unit tests for the order ledger models.

Covers:
- Unique ``transaction_id`` and ``order_number``.
- Orders cannot be deleted.
- Append-only child records (no edit, no delete).
- OrderItem total price calculation.
- Timeline sequence uniqueness per order.
- Refunded amount / refundable balance.
- ``updated_at`` refresh with ``update_fields``.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone
from freezegun import freeze_time

from modules.core.exceptions import ImmutableRecordError
from modules.orders.constants import OrderEventType, RefundStatus
from modules.orders.models import Order, OrderEvent, OrderItem, Refund

pytestmark = pytest.mark.unit


class TestOrder:
    def test_transaction_id_is_unique(self, make_order):
        order = make_order()
        clone = Order(
            order_number="ORD-2026-1-AAAAA",
            customer_email="x@example.com",
            customer_name="X",
            total=Decimal("1.00"),
            payment_provider="stripe",
            transaction_id=order.transaction_id,
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            clone.save()

    def test_order_number_is_unique(self, make_order):
        order = make_order()
        clone = Order(
            order_number=order.order_number,
            customer_email="x@example.com",
            customer_name="X",
            total=Decimal("1.00"),
            payment_provider="stripe",
            transaction_id="pi_other",
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            clone.save()

    def test_cannot_be_deleted(self, make_order):
        order = make_order()

        with pytest.raises(ImmutableRecordError, match="cancel it instead"):
            order.delete()

        assert Order.objects.filter(id=order.id).exists()

    def test_str(self, make_order):
        order = make_order()
        assert str(order) == f"{order.order_number} (paid)"

    def test_updated_at_refreshed_with_update_fields(self, make_order):
        order = make_order()
        later = timezone.now() + timedelta(hours=1)

        with freeze_time(later):
            order.carrier = "UPS"
            order.save(update_fields=["carrier"])

        order.refresh_from_db()
        assert order.carrier == "UPS"
        assert order.updated_at == later


class TestAppendOnlyRecords:
    def test_item_cannot_be_edited(self, make_order):
        item = make_order().items.first()
        item.quantity = 99

        with pytest.raises(ImmutableRecordError):
            item.save()

        item.refresh_from_db()
        assert item.quantity == 2

    def test_item_cannot_be_deleted(self, make_order):
        item = make_order().items.first()

        with pytest.raises(ImmutableRecordError):
            item.delete()

    def test_event_cannot_be_edited(self, make_order):
        event = make_order().event_timeline.first()
        event.description = "rewritten"

        with pytest.raises(ImmutableRecordError):
            event.save()

    def test_event_cannot_be_deleted(self, make_order):
        event = make_order().event_timeline.first()

        with pytest.raises(ImmutableRecordError):
            event.delete()


class TestOrderItem:
    def test_total_price_is_computed(self, make_order):
        order = make_order()
        item = OrderItem(
            order=order,
            product_id="p-1",
            sku="P-1",
            name="Sticker",
            quantity=3,
            unit_price=Decimal("1.50"),
            total_price=Decimal("999.00"),
        )
        item.save()

        item.refresh_from_db()
        assert item.total_price == Decimal("4.50")


class TestOrderEvent:
    def test_sequence_is_unique_per_order(self, make_order):
        order = make_order()
        duplicate = OrderEvent(
            order=order,
            sequence=1,
            type=OrderEventType.UPDATED,
            description="duplicate",
            occurred_at=timezone.now(),
        )

        with pytest.raises(IntegrityError), transaction.atomic():
            duplicate.save()

    def test_same_sequence_on_different_orders(self, make_order):
        first, second = make_order(), make_order()

        assert first.event_timeline.first().sequence == 1
        assert second.event_timeline.first().sequence == 1


class TestRefundBalance:
    def test_no_refunds(self, make_order):
        order = make_order()

        assert order.refunded_amount == Decimal("0.00")
        assert order.refundable_balance == Decimal("100.00")

    def test_only_processed_refunds_count(self, make_order):
        order = make_order()
        Refund(order=order, amount=Decimal("30.00"), reason="damaged").save()
        Refund(
            order=order,
            amount=Decimal("20.00"),
            reason="pending review",
            status=RefundStatus.PENDING,
        ).save()

        order = Order.objects.get(id=order.id)
        assert order.refunded_amount == Decimal("30.00")
        assert order.refundable_balance == Decimal("70.00")
