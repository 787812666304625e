"""Django ORM implementation of the Order store.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
Creation runs inside ``transaction.atomic()`` (a savepoint when the
caller already holds a transaction) so the order and its seed records are
persisted together or not at all.

Idempotency is enforced by the unique constraint on
``Order.transaction_id``: a violation is resolved to the order that won
the race and reported as ``DuplicateTransaction``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, models, transaction

from modules.core.models import AppendOnlyModel
from modules.orders.constants import ORDER_NUMBER_MAX_RETRIES
from modules.orders.exceptions import DuplicateTransaction, PersistenceFailure
from modules.orders.factory import OrderBlueprint, OrderFactory
from modules.orders.models import Order
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

RELATIONS = (
    "items",
    "payment_timeline",
    "event_timeline",
    "refunds",
    "shipments",
    "owner_notes",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order store backed by Django ORM."""

    def __init__(self, renumber: Optional[Callable[[], str]] = None) -> None:
        self._renumber = renumber or OrderFactory().new_order_number

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, blueprint: OrderBlueprint) -> Order:
        """Insert the blueprint, re-numbering on an order number clash."""
        order = blueprint.order
        log = logger.bind(transaction_id=order.transaction_id)

        for attempt in range(1, ORDER_NUMBER_MAX_RETRIES + 1):
            try:
                with transaction.atomic():
                    self._insert(blueprint)
            except IntegrityError as exc:
                _mark_unsaved(blueprint)
                existing_id = (
                    Order.objects.filter(transaction_id=order.transaction_id)
                    .values_list("id", flat=True)
                    .first()
                )
                if existing_id is not None:
                    log.warning(
                        "order.duplicate_transaction", existing_order_id=str(existing_id)
                    )
                    raise DuplicateTransaction(order.transaction_id, existing_id) from exc
                if Order.objects.filter(order_number=order.order_number).exists():
                    log.warning(
                        "order.number_collision",
                        order_number=order.order_number,
                        attempt=attempt,
                    )
                    blueprint.renumber(self._renumber())
                    continue
                log.error("order.persistence_failed", error=str(exc))
                raise PersistenceFailure("Failed to persist the order.") from exc
            except DatabaseError as exc:
                _mark_unsaved(blueprint)
                log.error("order.persistence_failed", error=str(exc))
                raise PersistenceFailure("Failed to persist the order.") from exc
            else:
                log.info(
                    "order.persisted",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    item_count=len(blueprint.items),
                )
                return order

        log.error("order.number_exhausted", attempts=ORDER_NUMBER_MAX_RETRIES)
        raise PersistenceFailure("Could not allocate a unique order number.")

    @staticmethod
    def _insert(blueprint: OrderBlueprint) -> None:
        blueprint.order.save(force_insert=True)
        for record in (*blueprint.items, *blueprint.payment_events, *blueprint.events):
            record.save(force_insert=True)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded child collections.

        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return Order.objects.prefetch_related(*RELATIONS).filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic()``.  Returns ``None``
        for non-existent or malformed IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> models.QuerySet:
        """Orders newest first with optional ``QuerySet.filter`` kwargs.

        Child collections are not prefetched; list rows are summaries.
        """
        queryset = Order.objects.order_by("-created_at", "-id")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, entity: Order, update_fields: Optional[list[str]] = None) -> Order:
        """Persist changes to an existing order."""
        entity.save(update_fields=update_fields)
        logger.info(
            "order.saved", order_id=str(entity.id), fields=update_fields or "all"
        )
        return entity

    def append(self, record: AppendOnlyModel) -> AppendOnlyModel:
        record.save(force_insert=True)
        return record


def _mark_unsaved(blueprint: OrderBlueprint) -> None:
    """Reset instance state after a rolled-back insert so it can be retried."""
    for record in (
        blueprint.order,
        *blueprint.items,
        *blueprint.payment_events,
        *blueprint.events,
    ):
        record._state.adding = True
        record._state.db = None
