"""Forward committed order and payment events to the broadcaster.

Handlers run after the originating unit of work has committed. A failing
broadcaster is logged and otherwise ignored: the state change already
happened and notification is best-effort.
"""

import json

import structlog
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.notifications.broadcast import get_broadcaster
from commerce.order.events import OrderCreated, OrderStatusChanged
from commerce.order.order import Order
from commerce.order.state_machine import OrderStatus
from commerce.payment.events import PaymentReceived
from commerce.payment.payment import Payment

logger = structlog.get_logger(__name__)


def _send(message: str, call, *args, **context) -> None:
    try:
        call(*args)
    except Exception as e:
        logger.error("Broadcast failed", message=message, error=str(e), **context)


@commerce.event_handler(part_of=Order)
class OrderBroadcastHandler:
    """Pushes order lifecycle changes to connected back-office clients."""

    @handle(OrderCreated)
    def on_order_created(self, event: OrderCreated) -> None:
        broadcaster = get_broadcaster()
        payload = {
            "order_id": str(event.order_id),
            "order_number": event.order_number,
            "user_id": str(event.user_id),
            "status": OrderStatus.PENDING.value,
            "total": event.total,
            "items": json.loads(event.items),
        }
        _send("order_created", broadcaster.order_created, payload, order_id=payload["order_id"])

    @handle(OrderStatusChanged)
    def on_status_changed(self, event: OrderStatusChanged) -> None:
        broadcaster = get_broadcaster()
        order_id = str(event.order_id)
        items = json.loads(event.items)
        order = {
            "order_id": order_id,
            "order_number": event.order_number,
            "user_id": str(event.user_id),
            "status": event.new_status,
            "version": event.order_version,
            "total": event.total,
            "items": items,
        }

        _send("order_updated", broadcaster.order_updated, order, order_id=order_id)
        _send(
            "order_status_changed",
            broadcaster.order_status_changed,
            order_id,
            event.previous_status,
            event.new_status,
            order_id=order_id,
        )

        if event.new_status != OrderStatus.DELIVERED.value:
            return

        _send("sale_completed", broadcaster.sale_completed, order, order_id=order_id)
        for item in items:
            _send(
                "product_sold",
                broadcaster.product_sold,
                item["product_id"],
                item["quantity"],
                item["unit_price"] * item["quantity"],
                order_id=order_id,
            )


@commerce.event_handler(part_of=Payment)
class PaymentBroadcastHandler:
    @handle(PaymentReceived)
    def on_payment_received(self, event: PaymentReceived) -> None:
        payload = {
            "payment_id": str(event.payment_id),
            "order_id": str(event.order_id),
            "order_number": event.order_number,
            "amount": event.amount,
        }
        _send("payment_received", get_broadcaster().payment_received, payload, order_id=payload["order_id"])
