"""Append-only event timeline for orders."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog
from django.db.models import Max
from django.utils import timezone

from modules.orders.models import Order, OrderEvent

logger = structlog.get_logger(__name__)


class EventTimeline:
    """Appends ``OrderEvent`` rows with a per-order increasing ``sequence``.

    ``occurred_at`` is clamped to the latest existing entry, so the
    timeline never goes backwards even if the wall clock does.  Callers
    must hold the order row lock (``select_for_update``) while appending.
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now) -> None:
        self._clock = clock

    def append(
        self,
        order: Order,
        type: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> OrderEvent:
        last = OrderEvent.objects.filter(order_id=order.id).aggregate(
            sequence=Max("sequence"), occurred_at=Max("occurred_at")
        )
        occurred_at = self._clock()
        if last["occurred_at"] is not None and occurred_at < last["occurred_at"]:
            occurred_at = last["occurred_at"]

        event = OrderEvent(
            order=order,
            sequence=(last["sequence"] or 0) + 1,
            type=type,
            description=description,
            metadata=metadata,
            occurred_at=occurred_at,
        )
        event.save()

        logger.info(
            "order.event_appended",
            order_id=str(order.id),
            sequence=event.sequence,
            event_type=type,
        )
        return event
