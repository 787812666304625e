"""Order confirmation notifications.

``OrderNotifier`` is the port the creation service talks to; the Celery
implementation enqueues ``orders.send_order_confirmation``.  Dispatch is
fire-and-forget: the service logs and swallows notifier errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from kombu.exceptions import OperationalError

from modules.orders.exceptions import NotificationFailure
from modules.orders.tasks import send_order_confirmation

if TYPE_CHECKING:
    from modules.orders.models import Order


class OrderNotifier(Protocol):
    def order_confirmed(self, order: Order) -> None: ...


class CeleryOrderNotifier:
    def order_confirmed(self, order: Order) -> None:
        """Enqueue the confirmation email.

        Raises:
            NotificationFailure: the broker refused the task.
        """
        try:
            send_order_confirmation.delay(
                email=order.customer_email,
                order_id=str(order.id),
                order_number=order.order_number,
                items=[
                    {
                        "name": item.name,
                        "quantity": item.quantity,
                        "unitPrice": str(item.unit_price),
                    }
                    for item in order.items.all()
                ],
                total=str(order.total),
                currency=order.currency,
            )
        except OperationalError as exc:
            raise NotificationFailure(
                f"Could not enqueue confirmation for {order.order_number}."
            ) from exc
