"""Order aggregate — the root of the order lifecycle.

Every status change goes through ``change_status``, which asks the state
machine for permission, applies the status-specific fields and bumps
``version``. Persisting the new version is guarded by the orchestrator's
conditional write, so a stale copy of the order can never overwrite a newer
one.
"""

import json
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from commerce.domain import commerce
from commerce.order.events import OrderCreated, OrderStatusChanged
from commerce.order.state_machine import (
    LEGACY_DELIVERY_STATE,
    STATUS_TIMESTAMP_FIELDS,
    FulfillmentType,
    OrderStatus,
    TransitionContext,
    missing_fields,
    resolve_target,
    validate_transition,
)


@dataclass(frozen=True)
class StatusChange:
    """What a successful ``change_status`` did to the order."""

    previous_status: OrderStatus
    new_status: OrderStatus
    version: int
    changed_at: datetime


@commerce.entity(part_of="Order")
class OrderItem:
    """A purchased line, priced and described as it was at checkout."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=20)
    color_code = String(max_length=20)
    color_name = String(max_length=50)
    unit_price = Integer(required=True, min_value=0)
    original_price = Integer(min_value=0)
    discount_amount = Integer(default=0)
    promotion_id = Identifier()
    promotion_name = String(max_length=255)

    def to_dict(self) -> dict:
        return {
            "item_id": str(self.id),
            "product_id": str(self.product_id),
            "variant_id": str(self.variant_id) if self.variant_id else None,
            "quantity": self.quantity,
            "size": self.size,
            "color_code": self.color_code,
            "color_name": self.color_name,
            "unit_price": self.unit_price,
            "original_price": self.original_price,
            "discount_amount": self.discount_amount,
            "promotion_id": str(self.promotion_id) if self.promotion_id else None,
            "promotion_name": self.promotion_name,
        }


@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    fulfillment_type = String(choices=FulfillmentType, default=FulfillmentType.SHIPPING.value)
    items = HasMany(OrderItem)
    subtotal = Integer(default=0, min_value=0)
    discount_total = Integer(default=0, min_value=0)
    total = Integer(default=0, min_value=0)
    coupon_code = String(max_length=50)

    payment_approved_at = DateTime()
    preparing_started_at = DateTime()
    ready_for_shipping_at = DateTime()
    ready_for_pickup_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()

    delivery_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    tracking_number = String(max_length=100)
    courier_name = String(max_length=100)
    shipping_notes = String(max_length=1000)
    delivery_attempts = Integer(default=0, min_value=0)
    last_attempt_at = DateTime()
    delivery_state = String(max_length=50)

    receipt_confirmed = Boolean(default=False)
    receipt_confirmed_at = DateTime()

    version = Integer(default=1, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id, items, fulfillment_type, subtotal, total, discount_total=0, coupon_code=None):
        now = datetime.now(UTC)
        order = cls(
            order_number=f"PAP-{int(time.time() * 1000)}",
            user_id=user_id,
            fulfillment_type=fulfillment_type,
            items=[OrderItem(**item) for item in items],
            subtotal=subtotal,
            discount_total=discount_total,
            total=total,
            coupon_code=coupon_code,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderCreated(
                order_id=order.id,
                order_number=order.order_number,
                user_id=user_id,
                fulfillment_type=order.fulfillment_type,
                items=json.dumps(order.items_data()),
                subtotal=subtotal,
                discount_total=discount_total,
                total=total,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def items_data(self) -> list[dict]:
        return [item.to_dict() for item in self.items]

    def transition_context(self, evidence: dict | None = None) -> TransitionContext:
        return TransitionContext(
            status=self.current_status,
            fulfillment_type=FulfillmentType(self.fulfillment_type),
            delivery_attempts=self.delivery_attempts or 0,
            evidence=evidence or {},
        )

    def to_dict(self) -> dict:
        def _ts(value):
            return value.isoformat() if value else None

        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "user_id": str(self.user_id),
            "status": self.status,
            "fulfillment_type": self.fulfillment_type,
            "subtotal": self.subtotal,
            "discount_total": self.discount_total,
            "total": self.total,
            "coupon_code": self.coupon_code,
            "version": self.version,
            "delivery_attempts": self.delivery_attempts,
            "delivery_state": self.delivery_state,
            "delivery_reason": self.delivery_reason,
            "cancellation_reason": self.cancellation_reason,
            "tracking_number": self.tracking_number,
            "courier_name": self.courier_name,
            "shipping_notes": self.shipping_notes,
            "receipt_confirmed": self.receipt_confirmed,
            "payment_approved_at": _ts(self.payment_approved_at),
            "preparing_started_at": _ts(self.preparing_started_at),
            "ready_for_shipping_at": _ts(self.ready_for_shipping_at),
            "ready_for_pickup_at": _ts(self.ready_for_pickup_at),
            "shipped_at": _ts(self.shipped_at),
            "delivered_at": _ts(self.delivered_at),
            "items": self.items_data(),
        }

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def change_status(
        self,
        target,
        cancellation_reason: str | None = None,
        delivery_reason: str | None = None,
        tracking_number: str | None = None,
        courier_name: str | None = None,
        shipping_notes: str | None = None,
    ) -> StatusChange:
        """Move the order to ``target`` or raise ``ValidationError``.

        A delivery failure reported once the attempt limit is reached becomes a
        pickup fallback. ``version`` is incremented exactly once per call.
        """
        previous = self.current_status
        target = resolve_target(previous, target, self.delivery_attempts or 0)
        evidence = {"cancellation_reason": cancellation_reason, "delivery_reason": delivery_reason}

        result = validate_transition(previous, target, self.transition_context(evidence))
        if not result.valid:
            raise ValidationError({"status": [result.error]})

        missing = missing_fields(previous, target, evidence)
        if missing:
            raise ValidationError(
                {name: [f"{name} is required to move from {previous.value} to {target.value}"] for name in missing}
            )

        now = datetime.now(UTC)
        self.status = target.value
        self.version = (self.version or 1) + 1
        self.updated_at = now

        timestamp_field = STATUS_TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            setattr(self, timestamp_field, now)
        if target in LEGACY_DELIVERY_STATE:
            self.delivery_state = LEGACY_DELIVERY_STATE[target].value

        if target == OrderStatus.NOT_DELIVERED:
            self.delivery_reason = delivery_reason
            self.delivery_attempts = (self.delivery_attempts or 0) + 1
            self.last_attempt_at = now
        if target == OrderStatus.CANCELLED:
            self.cancellation_reason = cancellation_reason
        if target == OrderStatus.READY_FOR_PICKUP and previous != OrderStatus.PREPARING:
            # Delivery attempts exhausted; the customer collects in store
            self.fulfillment_type = FulfillmentType.PICKUP.value
        if tracking_number:
            self.tracking_number = tracking_number
        if courier_name:
            self.courier_name = courier_name
        if target == OrderStatus.IN_TRANSIT and shipping_notes:
            self.shipping_notes = shipping_notes

        return StatusChange(previous_status=previous, new_status=target, version=self.version, changed_at=now)

    def reject_payment(self, reason: str) -> StatusChange:
        """Mark a still-pending order's payment as rejected."""
        if self.current_status != OrderStatus.PENDING:
            raise ValidationError(
                {"status": [f"Only PENDING orders can be rejected, order is {self.current_status.value}"]}
            )
        change = self.change_status(OrderStatus.PAYMENT_REJECTED)
        self.delivery_reason = reason
        return change

    def announce_status_change(self, change: StatusChange, changed_by: str | None, stock_restored: bool) -> None:
        self.raise_(
            OrderStatusChanged(
                order_id=self.id,
                order_number=self.order_number,
                user_id=self.user_id,
                previous_status=change.previous_status.value,
                new_status=change.new_status.value,
                order_version=change.version,
                changed_by=changed_by,
                items=json.dumps(self.items_data()),
                total=self.total,
                stock_restored="true" if stock_restored else "false",
                changed_at=change.changed_at,
            )
        )

    def confirm_receipt(self) -> None:
        if self.receipt_confirmed:
            raise ValidationError({"receipt_confirmed": ["Receipt was already confirmed for this order"]})
        if self.current_status == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["A cancelled order cannot be confirmed as received"]})
        self.receipt_confirmed = True
        self.receipt_confirmed_at = datetime.now(UTC)
