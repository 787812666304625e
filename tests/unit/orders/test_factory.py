"""Unit tests for OrderFactory.

The factory is pure: every test here works on unsaved model instances.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from modules.orders.constants import (
    FulfillmentStatus,
    OrderEventType,
    OrderStatus,
    PaymentEventStatus,
    PaymentEventType,
    PaymentStatus,
)
from modules.orders.dtos import CheckoutDTO
from modules.orders.factory import OrderFactory, derive_sku, generate_order_number
from modules.orders.models import Order

pytestmark = pytest.mark.unit

NOW = datetime(2026, 1, 9, 7, 4, 49, 962000, tzinfo=timezone.utc)
ORDER_NUMBER_RE = re.compile(r"^ORD-\d{4}-\d+-[A-Z0-9]{5}$")


@pytest.fixture()
def dto(checkout_payload):
    return CheckoutDTO.model_validate(checkout_payload)


@pytest.fixture()
def factory():
    return OrderFactory(currency="USD", clock=lambda: NOW)


class TestOrderNumber:
    def test_format(self):
        assert ORDER_NUMBER_RE.match(generate_order_number(NOW))

    def test_embeds_year_and_epoch_millis(self):
        number = generate_order_number(NOW, choice=lambda alphabet: "Z")
        assert number == "ORD-2026-1767942289962-ZZZZZ"

    def test_suffixes_differ(self):
        numbers = {generate_order_number(NOW) for _ in range(20)}
        assert len(numbers) > 1

    def test_factory_uses_its_clock_and_alphabet(self):
        factory = OrderFactory(clock=lambda: NOW, choice=lambda alphabet: "A")

        assert factory.new_order_number() == "ORD-2026-1767942289962-AAAAA"


class TestDeriveSku:
    def test_name_and_size(self):
        assert derive_sku("Slytherine Tee", "m") == "SLYTHERINE-TEE-M"

    def test_collapses_whitespace(self):
        assert derive_sku("  Night   Hoodie ", None) == "NIGHT-HOODIE"


class TestBuild:
    def test_nothing_is_persisted(self, factory, dto):
        blueprint = factory.build(dto)

        assert blueprint.order._state.adding is True
        assert Order.objects.count() == 0

    def test_initial_statuses(self, factory, dto):
        order = factory.build(dto).order

        assert order.status == OrderStatus.PAID
        assert order.payment_status == PaymentStatus.PAID
        assert order.fulfillment_status == FulfillmentStatus.PENDING

    def test_identifiers_assigned(self, factory, dto):
        order = factory.build(dto).order

        assert order.id is not None
        assert ORDER_NUMBER_RE.match(order.order_number)
        assert order.order_number.startswith("ORD-2026-1767942289962-")
        assert order.transaction_id == "pi_3PabcDEF123"

    def test_customer_snapshot(self, factory, dto):
        order = factory.build(dto).order

        assert order.customer_email == "jane.doe@example.com"
        assert order.customer_name == "Jane Doe"
        assert order.login_method == "google"
        assert order.user_id == "42"

    def test_addresses(self, factory, dto):
        order = factory.build(dto).order

        assert order.shipping_address == {
            "firstName": "Jane",
            "lastName": "Doe",
            "street": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "postalCode": "62701",
            "country": "US",
            "phone": "555-0100",
        }
        assert order.billing_address == order.shipping_address
        assert order.billing_address is not order.shipping_address

    def test_items(self, factory, dto):
        items = factory.build(dto).items

        assert [i.position for i in items] == [0, 1]
        tee, hoodie = items
        assert tee.product_id == "1"
        assert tee.sku == "SLYTHERINE-TEE-M"
        assert tee.unit_price == Decimal("25.00")
        assert tee.total_price == Decimal("50.00")
        assert tee.selected_color == "green"
        assert tee.image_url == "/images/tee.png"
        assert hoodie.sku == "NIGHT-HOODIE"
        assert hoodie.selected_size == ""

    def test_explicit_sku_is_kept(self, factory, checkout_payload):
        checkout_payload["items"][0]["sku"] = "TEE-001"
        items = factory.build(CheckoutDTO.model_validate(checkout_payload)).items

        assert items[0].sku == "TEE-001"

    def test_single_capture_payment_event(self, factory, dto):
        blueprint = factory.build(dto)

        assert len(blueprint.payment_events) == 1
        capture = blueprint.payment_events[0]
        assert capture.type == PaymentEventType.CAPTURE
        assert capture.status == PaymentEventStatus.SUCCEEDED
        assert capture.amount == Decimal("100.00")
        assert capture.currency == "USD"
        assert capture.transaction_id == "pi_3PabcDEF123"

    def test_created_then_paid_events(self, factory, dto):
        events = factory.build(dto).events

        assert [(e.sequence, e.type) for e in events] == [
            (1, OrderEventType.CREATED),
            (2, OrderEventType.PAID),
        ]
        assert events[0].occurred_at == events[1].occurred_at == NOW
        assert events[1].description == "Payment successfully verified via stripe"

    def test_metadata(self, factory, dto):
        metadata = factory.build(dto).order.metadata

        assert metadata == {
            "source": "web",
            "paymentProvider": "stripe",
            "transactionId": "pi_3PabcDEF123",
            "paymentIntentId": "pi_3PabcDEF123",
            "paypalOrderId": "",
            "paymentVerified": "true",
            "paymentVerifiedAt": NOW.isoformat(),
        }

    def test_payment_method_object(self, factory, dto):
        order = factory.build(dto).order
        assert order.payment_method == {"type": "card", "last4": "4242", "brand": "visa"}

    def test_payment_method_defaults_to_card(self, factory, checkout_payload):
        del checkout_payload["paymentMethod"]
        order = factory.build(CheckoutDTO.model_validate(checkout_payload)).order

        assert order.payment_method == {"type": "card"}

    def test_payment_method_string(self, factory, checkout_payload):
        checkout_payload["paymentMethod"] = "paypal"
        order = factory.build(CheckoutDTO.model_validate(checkout_payload)).order

        assert order.payment_method == {"type": "paypal"}

    def test_currency_comes_from_factory(self, dto):
        order = OrderFactory(currency="EUR", clock=lambda: NOW).build(dto).order
        assert order.currency == "EUR"
