"""Order aggregate and its append-only child records.

Ledger rules implemented here:
- ``transaction_id`` is unique: one confirmed payment, one order.
- ``id`` and ``order_number`` are assigned once and never change.
- ``OrderItem.total_price`` is always ``unit_price * quantity``.
- Items, payment events, timeline events, refunds, shipments and owner
  notes are append-only (``AppendOnlyModel``).
- Orders are never deleted; cancellation is a status transition.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.exceptions import ImmutableRecordError
from modules.core.models import AppendOnlyModel, BaseModel
from modules.orders.constants import (
    DEFAULT_SHIPPING_METHOD,
    FulfillmentStatus,
    LoginMethod,
    OrderEventType,
    OrderStatus,
    PaymentEventStatus,
    PaymentEventType,
    PaymentStatus,
    RefundStatus,
    ShipmentStatus,
)

MONEY = {"max_digits": 12, "decimal_places": 2}


def _empty_list() -> list:
    return []


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` is the human-facing identifier
    (``ORD-YYYY-<epoch ms>-XXXXX``); the UUIDv7 ``id`` is used for all
    internal references and API lookups.  Both are generated by
    ``OrderFactory`` before the first insert.

    The three status axes evolve independently; only cancellation moves
    two of them together.
    """

    order_number: models.CharField = models.CharField(
        max_length=40, unique=True, editable=False
    )

    # Customer snapshot
    customer_email: models.EmailField = models.EmailField()
    customer_name: models.CharField = models.CharField(max_length=255)
    login_method: models.CharField = models.CharField(
        max_length=20,
        choices=LoginMethod.choices,
        default=LoginMethod.GUEST,
    )
    user_id: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255, null=True, blank=True
    )
    account_created_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    last_login_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Money
    total: models.DecimalField = models.DecimalField(**MONEY)
    currency: models.CharField = models.CharField(max_length=3, default="USD")
    shipping_cost: models.DecimalField = models.DecimalField(
        **MONEY, default=Decimal("0.00")
    )

    # Status axes
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    fulfillment_status: models.CharField = models.CharField(
        max_length=20,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.PENDING,
    )

    # Shipping / billing
    shipping_address: models.JSONField = models.JSONField(default=dict)
    billing_address: models.JSONField = models.JSONField(default=dict)
    shipping_method: models.CharField = models.CharField(
        max_length=50, default=DEFAULT_SHIPPING_METHOD
    )
    carrier: models.CharField = models.CharField(max_length=100, blank=True, default="")
    tracking_numbers: models.JSONField = models.JSONField(default=_empty_list)

    # Payment
    payment_method: models.JSONField = models.JSONField(default=dict)
    payment_provider: models.CharField = models.CharField(max_length=50)
    transaction_id: models.CharField = models.CharField(
        max_length=255, unique=True, editable=False
    )

    discounts: models.JSONField = models.JSONField(default=_empty_list)
    taxes: models.JSONField = models.JSONField(default=_empty_list)
    metadata: models.JSONField = models.JSONField(default=dict)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["payment_status"], name="orders_payment_status_idx"),
            models.Index(
                fields=["fulfillment_status"], name="orders_fulfillment_idx"
            ),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["customer_email"], name="orders_email_idx"),
        ]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def refunded_amount(self) -> Decimal:
        """Sum of all processed refunds."""
        return sum(
            (r.amount for r in self.refunds.all() if r.status == RefundStatus.PROCESSED),
            Decimal("0.00"),
        )

    @property
    def refundable_balance(self) -> Decimal:
        return self.total - self.refunded_amount

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def delete(self, using: Any = None, keep_parents: bool = False):
        raise ImmutableRecordError(
            f"Order {self.order_number} cannot be deleted; cancel it instead."
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(AppendOnlyModel):
    """Line item snapshot taken from the checkout payload.

    ``total_price`` is always ``quantity * unit_price``, computed on insert.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="items",
    )
    product_id: models.CharField = models.CharField(max_length=100)
    sku: models.CharField = models.CharField(max_length=150)
    name: models.CharField = models.CharField(max_length=255)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(**MONEY)
    total_price: models.DecimalField = models.DecimalField(**MONEY, editable=False)
    selected_size: models.CharField = models.CharField(
        max_length=50, blank=True, default=""
    )
    selected_color: models.CharField = models.CharField(
        max_length=50, blank=True, default=""
    )
    image_url: models.CharField = models.CharField(
        max_length=500, blank=True, default=""
    )
    position: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_items"
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.total_price = self.unit_price * self.quantity
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} x{self.quantity} ({self.total_price})"


class PaymentEvent(AppendOnlyModel):
    """Entry of the order's payment timeline (capture, refunds...)."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment_timeline",
    )
    type: models.CharField = models.CharField(
        max_length=20, choices=PaymentEventType.choices
    )
    amount: models.DecimalField = models.DecimalField(**MONEY)
    currency: models.CharField = models.CharField(max_length=3)
    status: models.CharField = models.CharField(
        max_length=20, choices=PaymentEventStatus.choices
    )
    transaction_id: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    gateway_response: models.JSONField = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = "order_payment_events"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.type} {self.amount} {self.currency} ({self.status})"


class OrderEvent(AppendOnlyModel):
    """Audit trail entry for an order.

    ``sequence`` is strictly increasing per order and ``occurred_at`` never
    decreases along it.  Both are assigned by ``EventTimeline``.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="event_timeline",
    )
    sequence: models.PositiveIntegerField = models.PositiveIntegerField()
    type: models.CharField = models.CharField(
        max_length=20, choices=OrderEventType.choices
    )
    description: models.CharField = models.CharField(max_length=500)
    metadata: models.JSONField = models.JSONField(null=True, blank=True)
    occurred_at: models.DateTimeField = models.DateTimeField()

    class Meta:
        db_table = "order_events"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"], name="order_events_unique_sequence"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence} {self.type}"


class Refund(AppendOnlyModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="refunds",
    )
    amount: models.DecimalField = models.DecimalField(**MONEY)
    reason: models.CharField = models.CharField(max_length=500)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.PROCESSED,
    )
    processed_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    item_ids: models.JSONField = models.JSONField(default=_empty_list)

    class Meta:
        db_table = "order_refunds"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"Refund {self.amount} ({self.status})"


class Shipment(AppendOnlyModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="shipments",
    )
    tracking_number: models.CharField = models.CharField(max_length=100)
    carrier: models.CharField = models.CharField(max_length=100)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.SHIPPED,
    )
    shipped_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    delivered_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    item_ids: models.JSONField = models.JSONField(default=_empty_list)
    tracking_url: models.CharField = models.CharField(
        max_length=500, blank=True, default=""
    )

    class Meta:
        db_table = "order_shipments"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.carrier} {self.tracking_number} ({self.status})"


class OwnerNote(AppendOnlyModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="owner_notes",
    )
    content: models.TextField = models.TextField()

    class Meta:
        db_table = "order_owner_notes"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"Note on {self.order_id}"
