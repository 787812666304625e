"""Order domain exceptions.

Raised by the Service Layer when a request cannot be honoured.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from typing import Any, Sequence


class OrderError(Exception):
    """Base class for order domain errors."""


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class MissingRequiredFields(OrderError):
    """Required checkout fields are absent.  Lists every missing name."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")


class PaymentDataMissing(OrderError):
    """The payment provider or the transaction id is absent."""


class MissingShippingFields(OrderError):
    """Required shipping fields are absent.  Lists every missing name."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Missing required shipping details: {', '.join(self.missing)}"
        )


class InvalidCheckoutPayload(OrderError):
    """The payload has every required field but fails schema validation."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        super().__init__(f"Invalid checkout payload ({len(errors)} errors)")


class DuplicateTransaction(OrderError):
    """An order already exists for this payment transaction id."""

    def __init__(self, transaction_id: str, existing_order_id: Any) -> None:
        self.transaction_id = transaction_id
        self.existing_order_id = existing_order_id
        super().__init__(
            f"Transaction {transaction_id} already produced order {existing_order_id}."
        )


class PersistenceFailure(OrderError):
    """The order store could not commit the write."""


class NotificationFailure(OrderError):
    """The order confirmation could not be dispatched (never surfaced)."""


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


class OrderNotFound(OrderError):
    """The requested order does not exist."""


class InvalidOrderStatus(OrderError):
    """The operation is not allowed in the order's current status."""


class RefundExceedsBalance(OrderError):
    """The refund amount is larger than what is left to refund."""
