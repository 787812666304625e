"""Transaction-id idempotency index.

One confirmed payment produces at most one order.  ``exists`` is the fast
path used before building an order; the authoritative guard is the unique
constraint on ``Order.transaction_id``, enforced when the store commits.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from modules.orders.models import Order


class IdempotencyIndex:
    def exists(self, transaction_id: str) -> Optional[UUID]:
        """Return the id of the order created for *transaction_id*, if any."""
        return (
            Order.objects.filter(transaction_id=transaction_id)
            .values_list("id", flat=True)
            .first()
        )
