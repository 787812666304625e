"""Order store interface.

Extends ``IRepository[Order]`` with the methods the Order aggregate
needs: atomic creation of an order with its seed records, row-locked
reads for mutations, transaction-id look-up, and appending to the
order's append-only child collections.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db import models

    from modules.core.models import AppendOnlyModel
    from modules.orders.factory import OrderBlueprint
    from modules.orders.models import Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes items, payment events, timeline events,
    refunds, shipments and owner notes.  Orders are never deleted.
    """

    @abstractmethod
    def create(self, blueprint: OrderBlueprint) -> Order:
        """Insert the order and its seed records in one transaction.

        Raises:
            DuplicateTransaction: an order already exists for the
                blueprint's transaction id.
            PersistenceFailure: the write could not be committed.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with every child collection prefetched."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        """Orders newest first, optionally filtered."""

    @abstractmethod
    def append(self, record: AppendOnlyModel) -> AppendOnlyModel:
        """Insert a child record (note, shipment, refund, payment event)."""
