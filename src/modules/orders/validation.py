"""Staged validation of the payment-verified checkout payload.

Stages run in a fixed order and stop at the first failing stage, each
with its own exception:

1. required top-level fields (every missing name is reported);
2. payment verification data (provider + transaction id, not blank);
3. required shipping fields (every missing name is reported);
4. typed schema validation into ``CheckoutDTO``.

A field counts as missing when it is absent or empty (``None``, ``""``,
``0``, ``[]``, ``{}``).
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from modules.orders.constants import REQUIRED_CHECKOUT_FIELDS, REQUIRED_SHIPPING_FIELDS
from modules.orders.dtos import CheckoutDTO
from modules.orders.exceptions import (
    InvalidCheckoutPayload,
    MissingRequiredFields,
    MissingShippingFields,
    PaymentDataMissing,
)


def _missing(data: Mapping[str, Any], fields: tuple[str, ...]) -> list[str]:
    return [name for name in fields if not data.get(name)]


def _present(value: Any) -> bool:
    return bool(str(value).strip()) if value else False


def parse_checkout_payload(data: Any) -> CheckoutDTO:
    """Validate *data* and return the typed checkout DTO."""
    if not isinstance(data, Mapping):
        raise InvalidCheckoutPayload(
            [{"loc": [], "msg": "Request body must be a JSON object."}]
        )

    missing = _missing(data, REQUIRED_CHECKOUT_FIELDS)
    if missing:
        raise MissingRequiredFields(missing)

    if not _present(data.get("paymentProvider")) or not _present(data.get("transactionId")):
        raise PaymentDataMissing("Payment verification data is required")

    shipping = data["shippingDetails"]
    if not isinstance(shipping, Mapping):
        raise InvalidCheckoutPayload(
            [{"loc": ["shippingDetails"], "msg": "Must be an object."}]
        )
    missing_shipping = _missing(shipping, REQUIRED_SHIPPING_FIELDS)
    if missing_shipping:
        raise MissingShippingFields(missing_shipping)

    try:
        return CheckoutDTO.model_validate(data)
    except ValidationError as exc:
        raise InvalidCheckoutPayload(
            [
                {"loc": list(err["loc"]), "msg": err["msg"]}
                for err in exc.errors(include_url=False)
            ]
        ) from exc
