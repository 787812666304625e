"""Asynchronous tasks of the orders module."""

from __future__ import annotations

from typing import Any, Dict, List

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = structlog.get_logger(__name__)


def render_confirmation(
    order_number: str, items: List[Dict[str, Any]], total: str, currency: str
) -> str:
    lines = [
        f"Thank you for your order {order_number}.",
        "",
    ]
    for item in items:
        lines.append(
            f"  {item['quantity']} x {item['name']} @ {item['unitPrice']} {currency}"
        )
    lines += ["", f"Total: {total} {currency}"]
    return "\n".join(lines)


@shared_task(name="orders.send_order_confirmation")
def send_order_confirmation(
    email: str,
    order_id: str,
    order_number: str,
    items: List[Dict[str, Any]],
    total: str,
    currency: str,
) -> Dict[str, str]:
    """Email the customer a plain-text confirmation of their order."""
    log = logger.bind(order_id=order_id, order_number=order_number)
    send_mail(
        subject=f"Order confirmation {order_number}",
        message=render_confirmation(order_number, items, total, currency),
        from_email=settings.ORDER_NOTIFICATION_FROM_EMAIL,
        recipient_list=[email],
    )
    log.info("order.confirmation_sent")
    return {"status": "sent", "order_id": order_id}
