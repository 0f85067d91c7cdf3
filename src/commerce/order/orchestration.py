"""Order/payment orchestration — status commands and the shared transition path.

``apply_status_change`` is the only way an order's status is written. It runs
inside the caller's unit of work and, in order:

1. refuses a caller-supplied version that is already stale,
2. validates the transition and required evidence on the aggregate,
3. claims the next version with a conditional write on ``(id, version)``,
4. reduces stock when the order enters a confirmed status, or restores it
   when a confirmed order becomes cancelled/rejected,
5. appends the audit row and raises ``OrderStatusChanged``.

Notifications are sent by event handlers once the unit of work commits.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.query import Q

from commerce.catalogue.inventory import reduce_stock, restore_stock
from commerce.domain import commerce
from commerce.errors import ConcurrencyConflict
from commerce.order.audit import get_order_audit, record_transition
from commerce.order.order import Order, StatusChange
from commerce.order.state_machine import (
    MAX_DELIVERY_ATTEMPTS,
    OrderStatus,
    available_transitions,
    calculate_progress,
    is_confirmed_status,
    is_final_status,
    is_refundable_status,
)
from commerce.payment.payment import payment_for_order

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StatusOutcome:
    order: Order
    change: StatusChange
    stock_reduced: bool
    stock_restored: bool


def _claim_version(order_id, expected_version: int) -> None:
    """Compare-and-set the stored version; zero matched rows means someone else won."""
    dao = current_domain.repository_for(Order)._dao
    updated = dao._update_all(Q(id=str(order_id), version=expected_version), version=expected_version + 1)
    if not updated:
        raise ConcurrencyConflict(str(order_id), expected_version)


def apply_status_change(
    order: Order,
    target,
    changed_by: str,
    expected_version: int | None = None,
    action: str | None = None,
    source: str = "manual",
    **evidence,
) -> StatusOutcome:
    expected = order.version if expected_version is None else expected_version
    if order.version != expected:
        raise ConcurrencyConflict(str(order.id), expected)

    change = order.change_status(target, **evidence)
    _claim_version(order.id, expected)

    stock_reduced = False
    stock_restored = False
    if not is_confirmed_status(change.previous_status) and is_confirmed_status(change.new_status):
        reduce_stock(order.items_data())
        stock_reduced = True
    elif is_confirmed_status(change.previous_status) and is_refundable_status(change.new_status):
        restore_stock(order.items_data())
        stock_restored = True

    order.announce_status_change(change, changed_by, stock_restored)
    current_domain.repository_for(Order).add(order)

    record_transition(
        order,
        change,
        changed_by,
        action=action,
        cancellation_reason=order.cancellation_reason if change.new_status == OrderStatus.CANCELLED else None,
        tracking_number=evidence.get("tracking_number"),
        courier_name=evidence.get("courier_name"),
        stock_reduced=stock_reduced,
        stock_restored=stock_restored,
        source=source,
    )

    logger.info(
        "Order status changed",
        order_id=str(order.id),
        from_status=change.previous_status.value,
        to_status=change.new_status.value,
        version=change.version,
        changed_by=changed_by,
        stock_reduced=stock_reduced,
        stock_restored=stock_restored,
    )
    return StatusOutcome(order=order, change=change, stock_reduced=stock_reduced, stock_restored=stock_restored)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=50)
    changed_by = String(required=True, max_length=255)
    expected_version = Integer()
    cancellation_reason = String(max_length=500)
    delivery_reason = String(max_length=500)
    tracking_number = String(max_length=100)
    courier_name = String(max_length=100)
    shipping_notes = String(max_length=1000)


@commerce.command(part_of="Order")
class RejectOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    changed_by = String(required=True, max_length=255)


@commerce.command(part_of="Order")
class ConfirmReceipt:
    """The customer states that the order reached them."""

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)


@commerce.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        try:
            target = OrderStatus(command.new_status)
        except ValueError:
            raise ValidationError({"new_status": [f"Unknown order status {command.new_status}"]}) from None

        order = current_domain.repository_for(Order).get(command.order_id)
        outcome = apply_status_change(
            order,
            target,
            changed_by=command.changed_by,
            expected_version=command.expected_version,
            cancellation_reason=command.cancellation_reason,
            delivery_reason=command.delivery_reason,
            tracking_number=command.tracking_number,
            courier_name=command.courier_name,
            shipping_notes=command.shipping_notes,
        )
        return outcome.order.to_dict()

    @handle(RejectOrder)
    def reject_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        expected = order.version
        change = order.reject_payment(command.reason)
        _claim_version(order.id, expected)
        order.announce_status_change(change, command.changed_by, stock_restored=False)
        repo.add(order)

        record_transition(
            order,
            change,
            command.changed_by,
            action="PAYMENT_REJECTED",
            reason=command.reason,
            stock_restored=False,
        )
        logger.info("Order payment rejected", order_id=str(order.id), reason=command.reason)
        return order.to_dict()

    @handle(ConfirmReceipt)
    def confirm_receipt(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if str(order.user_id) != str(command.user_id):
            raise ObjectNotFoundError(f"Order {command.order_id} not found")

        order.confirm_receipt()
        if order.current_status == OrderStatus.NOT_DELIVERED and (order.delivery_attempts or 0) >= MAX_DELIVERY_ATTEMPTS:
            target = OrderStatus.READY_FOR_PICKUP
        else:
            target = OrderStatus.DELIVERED

        outcome = apply_status_change(order, target, changed_by=str(command.user_id), source="customer")
        return outcome.order.to_dict()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_available_transitions(order_id) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    return {
        "current_status": order.status,
        "available_transitions": [status.value for status in available_transitions(order.transition_context())],
        "is_final": is_final_status(order.status),
    }


def get_order_tracking(order_id, user_id=None) -> dict:
    """Order details with progress, audit timeline and payment for tracking screens."""
    order = current_domain.repository_for(Order).get(order_id)
    if user_id is not None and str(order.user_id) != str(user_id):
        raise ObjectNotFoundError(f"Order {order_id} not found")

    payment = payment_for_order(order.id)
    return {
        **order.to_dict(),
        "progress": calculate_progress(order.status, order.fulfillment_type),
        "is_final": is_final_status(order.status),
        "timeline": get_order_audit(order.id),
        "payment": payment.to_dict() if payment else None,
    }
