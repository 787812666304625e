"""Order domain constants.

Defines the three independent status axes of an order, the event and
payment-timeline vocabularies, and the allow-list of fields the owner may
patch.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially refunded"


class FulfillmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class LoginMethod(models.TextChoices):
    EMAIL = "email", "Email"
    GOOGLE = "google", "Google"
    APPLE = "apple", "Apple"
    GITHUB = "github", "GitHub"
    GUEST = "guest", "Guest"


class OrderEventType(models.TextChoices):
    CREATED = "created", "Created"
    PAID = "paid", "Paid"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    NOTE_ADDED = "note_added", "Note added"
    UPDATED = "updated", "Updated"


class PaymentEventType(models.TextChoices):
    AUTHORIZATION = "authorization", "Authorization"
    CAPTURE = "capture", "Capture"
    REFUND = "refund", "Refund"
    PARTIAL_REFUND = "partial_refund", "Partial refund"
    FAILURE = "failure", "Failure"


class PaymentEventStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"


class RefundStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class ShipmentStatus(models.TextChoices):
    PREPARING = "preparing", "Preparing"
    SHIPPED = "shipped", "Shipped"
    IN_TRANSIT = "in_transit", "In transit"
    DELIVERED = "delivered", "Delivered"
    FAILED = "failed", "Failed"


# Orders in these states can no longer be cancelled or have a status patched.
CLOSED_STATES: set[str] = {
    OrderStatus.CANCELLED,
    OrderStatus.DELIVERED,
    OrderStatus.REFUNDED,
}

# Status values only cancel and refund may set.  A patch carrying one of
# them is refused, so the status axes never drift from the refund ledger.
LEDGER_MANAGED_VALUES: dict[str, frozenset[str]] = {
    "status": frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    "payment_status": frozenset(
        {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED}
    ),
    "fulfillment_status": frozenset({FulfillmentStatus.CANCELLED}),
}

# Payment states that still have a refundable balance.
REFUNDABLE_PAYMENT_STATES: set[str] = {
    PaymentStatus.PAID,
    PaymentStatus.PARTIALLY_REFUNDED,
}

# Status values that map directly onto a timeline event of the same name.
PROGRESS_EVENT_TYPES: dict[str, str] = {
    OrderStatus.PROCESSING: OrderEventType.PROCESSING,
    OrderStatus.SHIPPED: OrderEventType.SHIPPED,
    OrderStatus.DELIVERED: OrderEventType.DELIVERED,
}

# Shipment status -> (order status, fulfillment status, event type)
SHIPMENT_PROGRESS: dict[str, tuple[str, str, str]] = {
    ShipmentStatus.PREPARING: (
        OrderStatus.PROCESSING,
        FulfillmentStatus.PROCESSING,
        OrderEventType.PROCESSING,
    ),
    ShipmentStatus.SHIPPED: (
        OrderStatus.SHIPPED,
        FulfillmentStatus.SHIPPED,
        OrderEventType.SHIPPED,
    ),
    ShipmentStatus.IN_TRANSIT: (
        OrderStatus.SHIPPED,
        FulfillmentStatus.SHIPPED,
        OrderEventType.SHIPPED,
    ),
    ShipmentStatus.DELIVERED: (
        OrderStatus.DELIVERED,
        FulfillmentStatus.DELIVERED,
        OrderEventType.DELIVERED,
    ),
}

# Owner-patchable order fields (model attribute names).  Identity, customer
# and financial fields are never patchable.
PATCHABLE_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "payment_status",
        "fulfillment_status",
        "carrier",
        "tracking_numbers",
        "shipping_method",
        "shipping_address",
    }
)

REQUIRED_CHECKOUT_FIELDS: tuple[str, ...] = (
    "customerEmail",
    "customerName",
    "items",
    "total",
    "shippingDetails",
    "paymentProvider",
    "transactionId",
)

REQUIRED_SHIPPING_FIELDS: tuple[str, ...] = (
    "firstName",
    "lastName",
    "address",
    "city",
    "zipCode",
    "country",
)

DEFAULT_SHIPPING_METHOD = "Standard"
DEFAULT_PAYMENT_METHOD = "card"
ORDER_SOURCE = "web"

ORDER_NUMBER_SUFFIX_LENGTH = 5
ORDER_NUMBER_MAX_RETRIES = 5
