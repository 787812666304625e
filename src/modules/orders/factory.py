"""Construction of canonical order records from a verified checkout.

``OrderFactory.build`` is pure: it creates **unsaved** model instances and
never touches the database.  Ids come from the models' UUIDv7 default and
the order number from ``generate_order_number``; the clock and the random
source are injectable so tests can pin both.
"""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Callable, List, Optional

from django.utils import timezone

from modules.orders.constants import (
    DEFAULT_PAYMENT_METHOD,
    ORDER_NUMBER_SUFFIX_LENGTH,
    ORDER_SOURCE,
    FulfillmentStatus,
    OrderEventType,
    OrderStatus,
    PaymentEventStatus,
    PaymentEventType,
    PaymentStatus,
)
from modules.orders.dtos import CheckoutDTO, CheckoutItemDTO, PaymentMethodDTO
from modules.orders.models import Order, OrderEvent, OrderItem, PaymentEvent

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_WHITESPACE = re.compile(r"\s+")
_EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


def generate_order_number(
    now: datetime, choice: Callable[[str], str] = secrets.choice
) -> str:
    """Human-readable order number: ``ORD-YYYY-<epoch ms>-XXXXX``."""
    epoch_ms = (now - _EPOCH) // timedelta(milliseconds=1)
    suffix = "".join(choice(_SUFFIX_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"ORD-{now:%Y}-{epoch_ms}-{suffix}"


def derive_sku(name: str, size: Optional[str]) -> str:
    """``"Slytherine Tee"`` + ``"m"`` -> ``"SLYTHERINE-TEE-M"``."""
    base = _WHITESPACE.sub("-", name.strip()).upper()
    if size:
        return f"{base}-{size.strip().upper()}"
    return base


@dataclass
class OrderBlueprint:
    """An order and its seed child records, ready to be inserted together."""

    order: Order
    items: List[OrderItem] = field(default_factory=list)
    payment_events: List[PaymentEvent] = field(default_factory=list)
    events: List[OrderEvent] = field(default_factory=list)

    def renumber(self, order_number: str) -> None:
        self.order.order_number = order_number


class OrderFactory:
    """Builds the canonical ``Order`` for a payment-verified checkout.

    The factory only runs after payment confirmation, so every order it
    produces starts ``paid`` / ``paid`` / ``pending`` with one captured
    payment and a ``created`` + ``paid`` timeline.
    """

    def __init__(
        self,
        currency: str = "USD",
        clock: Callable[[], datetime] = timezone.now,
        choice: Callable[[str], str] = secrets.choice,
    ) -> None:
        self._currency = currency
        self._clock = clock
        self._choice = choice

    def new_order_number(self) -> str:
        return generate_order_number(self._clock(), self._choice)

    def build(self, dto: CheckoutDTO) -> OrderBlueprint:
        now = self._clock()
        address = dto.shipping_details.as_address()

        order = Order(
            order_number=generate_order_number(now, self._choice),
            customer_email=dto.customer_email,
            customer_name=dto.customer_name,
            login_method=dto.login_method,
            user_id=dto.user_id,
            account_created_at=dto.account_created_at,
            last_login_at=dto.last_login_at,
            total=dto.total,
            currency=self._currency,
            status=OrderStatus.PAID,
            payment_status=PaymentStatus.PAID,
            fulfillment_status=FulfillmentStatus.PENDING,
            shipping_address=address,
            billing_address=dict(address),
            payment_method=self._payment_method(dto.payment_method),
            payment_provider=dto.payment_provider,
            transaction_id=dto.transaction_id,
            metadata={
                "source": ORDER_SOURCE,
                "paymentProvider": dto.payment_provider,
                "transactionId": dto.transaction_id,
                "paymentIntentId": dto.payment_intent_id or "",
                "paypalOrderId": dto.paypal_order_id or "",
                "paymentVerified": "true",
                "paymentVerifiedAt": now.isoformat(),
            },
        )

        items = [
            self._build_item(order, position, item)
            for position, item in enumerate(dto.items)
        ]

        capture = PaymentEvent(
            order=order,
            type=PaymentEventType.CAPTURE,
            amount=dto.total,
            currency=self._currency,
            status=PaymentEventStatus.SUCCEEDED,
            transaction_id=dto.transaction_id,
        )

        events = [
            OrderEvent(
                order=order,
                sequence=1,
                type=OrderEventType.CREATED,
                description="Order created after successful payment verification",
                occurred_at=now,
            ),
            OrderEvent(
                order=order,
                sequence=2,
                type=OrderEventType.PAID,
                description=f"Payment successfully verified via {dto.payment_provider}",
                metadata={"transactionId": dto.transaction_id},
                occurred_at=now,
            ),
        ]

        return OrderBlueprint(
            order=order, items=items, payment_events=[capture], events=events
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_item(order: Order, position: int, item: CheckoutItemDTO) -> OrderItem:
        return OrderItem(
            order=order,
            position=position,
            product_id=item.id,
            sku=item.sku or derive_sku(item.name, item.selected_size),
            name=item.name,
            quantity=item.quantity,
            unit_price=item.price,
            total_price=item.price * item.quantity,
            selected_size=item.selected_size or "",
            selected_color=item.selected_color or "",
            image_url=item.image or "",
        )

    @staticmethod
    def _payment_method(value: PaymentMethodDTO | str | None) -> dict:
        if value is None:
            return {"type": DEFAULT_PAYMENT_METHOD}
        if isinstance(value, str):
            return {"type": value}
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
