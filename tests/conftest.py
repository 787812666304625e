from copy import deepcopy
from unittest.mock import Mock
from uuid import uuid4

import pytest
from django.conf import settings
from rest_framework.test import APIClient

from modules.orders.factory import OrderFactory
from modules.orders.idempotency import IdempotencyIndex
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderCreationService, OrderMutationService
from modules.orders.timeline import EventTimeline

CHECKOUT_PAYLOAD = {
    "customerEmail": " Jane.Doe@Example.com ",
    "customerName": "Jane Doe",
    "loginMethod": "google",
    "userId": 42,
    "items": [
        {
            "id": 1,
            "name": "Slytherine Tee",
            "price": "25.00",
            "quantity": 2,
            "selectedSize": "m",
            "selectedColor": "green",
            "image": "/images/tee.png",
        },
        {
            "id": "hoodie-9",
            "name": "Night Hoodie",
            "price": "50.00",
            "quantity": 1,
        },
    ],
    "total": "100.00",
    "shippingDetails": {
        "firstName": "Jane",
        "lastName": "Doe",
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "country": "US",
        "phone": "555-0100",
    },
    "paymentProvider": "stripe",
    "transactionId": "pi_3PabcDEF123",
    "paymentMethod": {"type": "card", "last4": "4242", "brand": "visa"},
    "paymentIntentId": "pi_3PabcDEF123",
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def owner_client():
    """APIClient authenticated as the store owner (bearer token)."""
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {settings.OWNER_TOKEN}")
    return client


@pytest.fixture()
def checkout_payload():
    """A complete, payment-verified checkout payload (fresh copy per test)."""
    return deepcopy(CHECKOUT_PAYLOAD)


@pytest.fixture()
def notifier():
    return Mock()


@pytest.fixture()
def creation_service(notifier):
    return OrderCreationService(
        order_repository=OrderDjangoRepository(),
        idempotency=IdempotencyIndex(),
        factory=OrderFactory(currency="USD"),
        notifier=notifier,
    )


@pytest.fixture()
def mutation_service():
    return OrderMutationService(
        order_repository=OrderDjangoRepository(),
        timeline=EventTimeline(),
    )


@pytest.fixture()
def make_order(creation_service):
    """Create a persisted order; keyword arguments override payload keys."""

    def _make(**overrides):
        payload = deepcopy(CHECKOUT_PAYLOAD)
        payload["transactionId"] = f"pi_{uuid4().hex}"
        payload.update(overrides)
        return creation_service.create_order(payload)

    return _make
