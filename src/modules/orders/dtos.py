"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer and the Service layer.
DTOs are immutable (``frozen=True``) and speak the checkout's camelCase
on the wire (``alias_generator=to_camel``) while exposing snake_case
attributes to Python code.

Input:
- ``CheckoutDTO``: payment-verified checkout payload.
- ``OrderPatchDTO``: allow-listed owner patch.
- ``CreateRefundDTO``, ``CreateShipmentDTO``, ``AddNoteDTO``: append
  operations.

Output:
- ``OrderOutputDTO``: full order with items and every timeline.
- ``OrderSummaryDTO``: lightweight list row.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from modules.orders.constants import (
    FulfillmentStatus,
    LoginMethod,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
)

if TYPE_CHECKING:
    from modules.orders.models import (
        Order,
        OrderEvent,
        OrderItem,
        OwnerNote,
        PaymentEvent,
        Refund,
        Shipment,
    )


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Input DTOs: checkout
# ---------------------------------------------------------------------------


class ShippingDetailsDTO(_CamelModel):
    first_name: str
    last_name: str
    address: str
    city: str
    state: str = ""
    zip_code: str
    country: str
    phone: str = ""

    def as_address(self) -> Dict[str, str]:
        """Canonical address record stored on the order."""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "street": self.address,
            "city": self.city,
            "state": self.state,
            "postalCode": self.zip_code,
            "country": self.country,
            "phone": self.phone,
        }


class CheckoutItemDTO(_CamelModel):
    """A cart line as sent by the checkout.

    ``id`` is the product id; the cart may send it as a number.
    """

    id: str
    name: str
    price: Decimal = Field(ge=0, decimal_places=2)
    quantity: int = Field(ge=1)
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    image: Optional[str] = None
    sku: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_product_id(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v


class PaymentMethodDTO(_CamelModel):
    type: str
    last4: Optional[str] = None
    brand: Optional[str] = None
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    wallet: Optional[str] = None


class CheckoutDTO(_CamelModel):
    """Immutable DTO for a payment-verified checkout.

    Validates:
    - ``items`` must contain at least one line.
    - ``total`` must not be negative.
    - ``customer_email`` is stored trimmed and lower-cased.
    """

    customer_email: str
    customer_name: str
    login_method: LoginMethod = LoginMethod.GUEST
    user_id: Optional[str] = None
    account_created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    shipping_details: ShippingDetailsDTO
    items: List[CheckoutItemDTO]
    total: Decimal = Field(ge=0, decimal_places=2)
    payment_provider: str
    transaction_id: str
    payment_method: Optional[Union[PaymentMethodDTO, str]] = None
    payment_intent_id: Optional[str] = None
    paypal_order_id: Optional[str] = None

    @field_validator("customer_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("customerEmail must be an email address.")
        return v

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CheckoutItemDTO]
    ) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("transaction_id", "payment_provider")
    @classmethod
    def strip_payment_reference(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Payment reference must not be blank.")
        return v


# ---------------------------------------------------------------------------
# Input DTOs: owner mutations
# ---------------------------------------------------------------------------


class AddressDTO(_CamelModel):
    first_name: str
    last_name: str
    street: str
    city: str
    state: str = ""
    postal_code: str
    country: str
    phone: str = ""
    company: Optional[str] = None
    street2: Optional[str] = None
    delivery_instructions: Optional[str] = None


class OrderPatchDTO(_CamelModel):
    """Allow-listed owner patch.

    Only the fields declared here can ever reach the order; unknown keys
    are rejected (``extra="forbid"``).  ``model_fields_set`` tells which
    fields the caller actually sent.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    carrier: Optional[str] = None
    tracking_numbers: Optional[List[str]] = None
    shipping_method: Optional[str] = None
    shipping_address: Optional[AddressDTO] = None

    @model_validator(mode="after")
    def no_explicit_nulls(self):
        """A sent field must carry a value; clearing fields is not supported."""
        nulls = [name for name in self.model_fields_set if getattr(self, name) is None]
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(sorted(nulls))}.")
        return self

    def changes(self) -> Dict[str, Any]:
        """Return ``{model_field: value}`` for the fields that were sent."""
        data = self.model_dump(mode="json", include=self.model_fields_set)
        if "shipping_address" in data:
            data["shipping_address"] = self.shipping_address.model_dump(
                mode="json", by_alias=True, exclude_none=True
            )
        return data


class CreateRefundDTO(_CamelModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    reason: str = Field(min_length=1)
    item_ids: List[str] = Field(default_factory=list)


class CreateShipmentDTO(_CamelModel):
    tracking_number: str = Field(min_length=1)
    carrier: str = Field(min_length=1)
    status: ShipmentStatus = ShipmentStatus.SHIPPED
    shipped_at: Optional[datetime] = None
    item_ids: List[str] = Field(default_factory=list)
    tracking_url: Optional[str] = None


class AddNoteDTO(_CamelModel):
    content: str = Field(min_length=1)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Note content must not be blank.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(_CamelModel):
    id: UUID
    product_id: str
    sku: str
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    selected_size: str
    selected_color: str
    image_url: str

    @classmethod
    def from_entity(cls, item: OrderItem) -> OrderItemOutputDTO:
        return cls(
            id=item.id,
            product_id=item.product_id,
            sku=item.sku,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            selected_size=item.selected_size,
            selected_color=item.selected_color,
            image_url=item.image_url,
        )


class PaymentEventOutputDTO(_CamelModel):
    id: UUID
    type: str
    amount: Decimal
    currency: str
    status: str
    transaction_id: str
    created_at: datetime

    @classmethod
    def from_entity(cls, event: PaymentEvent) -> PaymentEventOutputDTO:
        return cls(
            id=event.id,
            type=event.type,
            amount=event.amount,
            currency=event.currency,
            status=event.status,
            transaction_id=event.transaction_id,
            created_at=event.created_at,
        )


class OrderEventOutputDTO(_CamelModel):
    id: UUID
    sequence: int
    type: str
    description: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_entity(cls, event: OrderEvent) -> OrderEventOutputDTO:
        return cls(
            id=event.id,
            sequence=event.sequence,
            type=event.type,
            description=event.description,
            timestamp=event.occurred_at,
            metadata=event.metadata,
        )


class RefundOutputDTO(_CamelModel):
    id: UUID
    amount: Decimal
    reason: str
    status: str
    created_at: datetime
    processed_at: Optional[datetime] = None
    items: List[str]

    @classmethod
    def from_entity(cls, refund: Refund) -> RefundOutputDTO:
        return cls(
            id=refund.id,
            amount=refund.amount,
            reason=refund.reason,
            status=refund.status,
            created_at=refund.created_at,
            processed_at=refund.processed_at,
            items=refund.item_ids,
        )


class ShipmentOutputDTO(_CamelModel):
    id: UUID
    tracking_number: str
    carrier: str
    status: str
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: List[str]
    tracking_url: str

    @classmethod
    def from_entity(cls, shipment: Shipment) -> ShipmentOutputDTO:
        return cls(
            id=shipment.id,
            tracking_number=shipment.tracking_number,
            carrier=shipment.carrier,
            status=shipment.status,
            shipped_at=shipment.shipped_at,
            delivered_at=shipment.delivered_at,
            items=shipment.item_ids,
            tracking_url=shipment.tracking_url,
        )


class OwnerNoteOutputDTO(_CamelModel):
    id: UUID
    content: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, note: OwnerNote) -> OwnerNoteOutputDTO:
        return cls(
            id=note.id,
            content=note.content,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class OrderSummaryDTO(_CamelModel):
    """Immutable DTO for order list rows (no nested relations)."""

    id: UUID
    order_number: str
    customer_email: str
    customer_name: str
    total: Decimal
    currency: str
    status: str
    payment_status: str
    fulfillment_status: str
    payment_provider: str
    created_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderSummaryDTO:
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            total=order.total,
            currency=order.currency,
            status=order.status,
            payment_status=order.payment_status,
            fulfillment_status=order.fulfillment_status,
            payment_provider=order.payment_provider,
            created_at=order.created_at,
        )


class OrderOutputDTO(_CamelModel):
    """Immutable DTO for full order API responses."""

    id: UUID
    order_number: str
    customer_email: str
    customer_name: str
    login_method: str
    user_id: Optional[str] = None
    account_created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    total: Decimal
    currency: str
    shipping_cost: Decimal
    status: str
    payment_status: str
    fulfillment_status: str
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    shipping_method: str
    carrier: str
    tracking_numbers: List[str]
    payment_method: Dict[str, Any]
    payment_provider: str
    transaction_id: str
    payment_timeline: List[PaymentEventOutputDTO]
    items: List[OrderItemOutputDTO]
    discounts: List[Dict[str, Any]]
    taxes: List[Dict[str, Any]]
    refunds: List[RefundOutputDTO]
    shipments: List[ShipmentOutputDTO]
    owner_notes: List[OwnerNoteOutputDTO]
    event_timeline: List[OrderEventOutputDTO]
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes the child relations are prefetched.
        """
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            login_method=order.login_method,
            user_id=order.user_id,
            account_created_at=order.account_created_at,
            last_login_at=order.last_login_at,
            total=order.total,
            currency=order.currency,
            shipping_cost=order.shipping_cost,
            status=order.status,
            payment_status=order.payment_status,
            fulfillment_status=order.fulfillment_status,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            shipping_method=order.shipping_method,
            carrier=order.carrier,
            tracking_numbers=order.tracking_numbers,
            payment_method=order.payment_method,
            payment_provider=order.payment_provider,
            transaction_id=order.transaction_id,
            payment_timeline=[
                PaymentEventOutputDTO.from_entity(e)
                for e in order.payment_timeline.all()
            ],
            items=[OrderItemOutputDTO.from_entity(i) for i in order.items.all()],
            discounts=order.discounts,
            taxes=order.taxes,
            refunds=[RefundOutputDTO.from_entity(r) for r in order.refunds.all()],
            shipments=[ShipmentOutputDTO.from_entity(s) for s in order.shipments.all()],
            owner_notes=[
                OwnerNoteOutputDTO.from_entity(n) for n in order.owner_notes.all()
            ],
            event_timeline=[
                OrderEventOutputDTO.from_entity(e) for e in order.event_timeline.all()
            ],
            metadata=order.metadata,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )

    def to_json(self) -> Dict[str, Any]:
        """camelCase, JSON-ready representation for API responses."""
        return self.model_dump(mode="json", by_alias=True)
