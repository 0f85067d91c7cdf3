"""Order lifecycle state machine.

Pure decision functions over a static transition table. Nothing here touches
storage: callers pass the current status and the facts about the order
(fulfillment type, delivery attempts, supplied evidence) and receive a verdict.

Shipping flow:
    PENDING → PAYMENT_APPROVED → PREPARING → READY_FOR_SHIPPING → IN_TRANSIT → DELIVERED
                                                       IN_TRANSIT ⇄ NOT_DELIVERED
Pickup flow:
    PENDING → PAYMENT_APPROVED → PREPARING → READY_FOR_PICKUP → DELIVERED

After two failed delivery attempts a shipping order falls back to pickup.
DELIVERED, CANCELLED and PAYMENT_REJECTED are terminal.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class OrderStatus(Enum):
    PENDING = "PENDING"
    PAYMENT_APPROVED = "PAYMENT_APPROVED"
    PAYMENT_REJECTED = "PAYMENT_REJECTED"
    PREPARING = "PREPARING"
    READY_FOR_SHIPPING = "READY_FOR_SHIPPING"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    IN_TRANSIT = "IN_TRANSIT"
    NOT_DELIVERED = "NOT_DELIVERED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class FulfillmentType(Enum):
    SHIPPING = "shipping"
    PICKUP = "pickup"


class DeliveryState(Enum):
    """Delivery tracking states mirrored on the order for older storefront screens."""

    PREPARANDO = "PREPARANDO"
    EN_CAMINO = "EN_CAMINO"
    ENTREGADO = "ENTREGADO"
    VISITADO_NO_ENTREGADO = "VISITADO_NO_ENTREGADO"
    RETIRO_EN_LOCAL = "RETIRO_EN_LOCAL"
    CANCELADO = "CANCELADO"


MAX_DELIVERY_ATTEMPTS = 2


@dataclass(frozen=True)
class Transition:
    """One allowed edge of the lifecycle graph and what it demands."""

    source: OrderStatus
    target: OrderStatus
    fulfillment_type: FulfillmentType | None = None
    required_fields: frozenset[str] = field(default_factory=frozenset)
    min_attempts: int = 0


_CANCEL = frozenset({"cancellation_reason"})

TRANSITIONS: tuple[Transition, ...] = (
    Transition(OrderStatus.PENDING, OrderStatus.PAYMENT_APPROVED),
    Transition(OrderStatus.PENDING, OrderStatus.PAYMENT_REJECTED),
    Transition(OrderStatus.PENDING, OrderStatus.CANCELLED, required_fields=_CANCEL),
    Transition(OrderStatus.PAYMENT_APPROVED, OrderStatus.PREPARING),
    Transition(OrderStatus.PAYMENT_APPROVED, OrderStatus.CANCELLED, required_fields=_CANCEL),
    Transition(OrderStatus.PREPARING, OrderStatus.READY_FOR_SHIPPING, fulfillment_type=FulfillmentType.SHIPPING),
    Transition(OrderStatus.PREPARING, OrderStatus.READY_FOR_PICKUP, fulfillment_type=FulfillmentType.PICKUP),
    Transition(OrderStatus.PREPARING, OrderStatus.CANCELLED, required_fields=_CANCEL),
    Transition(OrderStatus.READY_FOR_SHIPPING, OrderStatus.IN_TRANSIT),
    Transition(OrderStatus.READY_FOR_SHIPPING, OrderStatus.CANCELLED, required_fields=_CANCEL),
    Transition(OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED),
    Transition(OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED, required_fields=_CANCEL),
    Transition(OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED),
    Transition(OrderStatus.IN_TRANSIT, OrderStatus.NOT_DELIVERED, required_fields=frozenset({"delivery_reason"})),
    Transition(OrderStatus.IN_TRANSIT, OrderStatus.READY_FOR_PICKUP, min_attempts=MAX_DELIVERY_ATTEMPTS),
    Transition(OrderStatus.NOT_DELIVERED, OrderStatus.IN_TRANSIT),
    Transition(OrderStatus.NOT_DELIVERED, OrderStatus.READY_FOR_PICKUP, min_attempts=MAX_DELIVERY_ATTEMPTS),
    Transition(OrderStatus.NOT_DELIVERED, OrderStatus.CANCELLED, required_fields=_CANCEL),
)

_TABLE: MappingProxyType = MappingProxyType({(t.source, t.target): t for t in TRANSITIONS})

FINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.PAYMENT_REJECTED})

# Statuses an operator may no longer edit at all
IMMUTABLE_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.PAYMENT_REJECTED})

# Payment captured and stock committed
CONFIRMED_STATUSES = frozenset(
    {
        OrderStatus.PAYMENT_APPROVED,
        OrderStatus.PREPARING,
        OrderStatus.READY_FOR_SHIPPING,
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.IN_TRANSIT,
        OrderStatus.NOT_DELIVERED,
        OrderStatus.DELIVERED,
    }
)

# Terminal-negative statuses that give stock back if it had been committed
REFUNDABLE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.PAYMENT_REJECTED})

SHIPPING_FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_SHIPPING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)

PICKUP_FLOW: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PAYMENT_APPROVED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.DELIVERED,
)

STATUS_TIMESTAMP_FIELDS = MappingProxyType(
    {
        OrderStatus.PAYMENT_APPROVED: "payment_approved_at",
        OrderStatus.PREPARING: "preparing_started_at",
        OrderStatus.READY_FOR_SHIPPING: "ready_for_shipping_at",
        OrderStatus.READY_FOR_PICKUP: "ready_for_pickup_at",
        OrderStatus.IN_TRANSIT: "shipped_at",
        OrderStatus.DELIVERED: "delivered_at",
    }
)

LEGACY_DELIVERY_STATE = MappingProxyType(
    {
        OrderStatus.PAYMENT_APPROVED: DeliveryState.PREPARANDO,
        OrderStatus.PREPARING: DeliveryState.PREPARANDO,
        OrderStatus.READY_FOR_SHIPPING: DeliveryState.PREPARANDO,
        OrderStatus.READY_FOR_PICKUP: DeliveryState.RETIRO_EN_LOCAL,
        OrderStatus.IN_TRANSIT: DeliveryState.EN_CAMINO,
        OrderStatus.NOT_DELIVERED: DeliveryState.VISITADO_NO_ENTREGADO,
        OrderStatus.DELIVERED: DeliveryState.ENTREGADO,
        OrderStatus.CANCELLED: DeliveryState.CANCELADO,
    }
)


@dataclass(frozen=True)
class TransitionContext:
    """Facts about an order that transition constraints are evaluated against."""

    status: OrderStatus
    fulfillment_type: FulfillmentType = FulfillmentType.SHIPPING
    delivery_attempts: int = 0
    evidence: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    error: str | None = None


def _as_status(value) -> OrderStatus:
    return value if isinstance(value, OrderStatus) else OrderStatus(value)


def _as_fulfillment(value) -> FulfillmentType:
    return value if isinstance(value, FulfillmentType) else FulfillmentType(value)


def is_final_status(status) -> bool:
    return _as_status(status) in FINAL_STATUSES


def is_confirmed_status(status) -> bool:
    return _as_status(status) in CONFIRMED_STATUSES


def is_refundable_status(status) -> bool:
    return _as_status(status) in REFUNDABLE_STATUSES


def required_fields(current, target) -> frozenset[str]:
    """Evidence fields the caller must supply for ``current → target``."""
    transition = _TABLE.get((_as_status(current), _as_status(target)))
    return transition.required_fields if transition else frozenset()


def resolve_target(current, target, delivery_attempts: int):
    """Return the effective target for a requested transition.

    A delivery failure reported after the attempt limit has been reached is
    turned into a pickup fallback instead of being rejected.
    """
    current, target = _as_status(current), _as_status(target)
    if (
        target == OrderStatus.NOT_DELIVERED
        and current == OrderStatus.IN_TRANSIT
        and delivery_attempts >= MAX_DELIVERY_ATTEMPTS
    ):
        return OrderStatus.READY_FOR_PICKUP
    return target


def _constraint_error(transition: Transition, context: TransitionContext) -> str | None:
    fulfillment = _as_fulfillment(context.fulfillment_type)
    if transition.fulfillment_type is not None and fulfillment != transition.fulfillment_type:
        return (
            f"Transition {transition.source.value} → {transition.target.value} "
            f"requires fulfillment type '{transition.fulfillment_type.value}', order is '{fulfillment.value}'"
        )
    if context.delivery_attempts < transition.min_attempts:
        return (
            f"Transition {transition.source.value} → {transition.target.value} "
            f"requires at least {transition.min_attempts} delivery attempts"
        )
    return None


def validate_transition(current, target, context: TransitionContext | None = None) -> TransitionResult:
    """Decide whether ``current → target`` is allowed for an order in ``context``.

    Anything absent from the transition table is rejected. Missing evidence
    fields are reported through ``required_fields`` and checked separately.
    """
    current, target = _as_status(current), _as_status(target)
    if context is None:
        context = TransitionContext(status=current)

    if current == target:
        return TransitionResult(False, f"Order is already in status {current.value}")
    if current in FINAL_STATUSES:
        return TransitionResult(False, f"Order in final status {current.value} cannot change")

    transition = _TABLE.get((current, target))
    if transition is None:
        return TransitionResult(False, f"Invalid status transition: {current.value} → {target.value}")

    error = _constraint_error(transition, context)
    if error:
        return TransitionResult(False, error)
    return TransitionResult(True)


def missing_fields(current, target, evidence: dict) -> list[str]:
    return sorted(name for name in required_fields(current, target) if not (evidence.get(name) or "").strip())


def available_transitions(context: TransitionContext) -> list[OrderStatus]:
    """Targets reachable from ``context.status`` given fulfillment type and attempts.

    Evidence fields are not needed to list a transition, only to perform it.
    """
    current = _as_status(context.status)
    if current in FINAL_STATUSES:
        return []
    return [t.target for t in TRANSITIONS if t.source == current and _constraint_error(t, context) is None]


def flow_for(fulfillment_type) -> tuple[OrderStatus, ...]:
    return PICKUP_FLOW if _as_fulfillment(fulfillment_type) == FulfillmentType.PICKUP else SHIPPING_FLOW


def calculate_progress(status, fulfillment_type) -> int:
    """Percentage of the happy path an order has covered, 0 for dead ends."""
    status = _as_status(status)
    if status in REFUNDABLE_STATUSES:
        return 0
    flow = flow_for(fulfillment_type)
    if status == OrderStatus.NOT_DELIVERED:
        status = OrderStatus.IN_TRANSIT
    if status not in flow:
        return 0
    return round(flow.index(status) / (len(flow) - 1) * 100)


def can_be_cancelled(status) -> bool:
    return (_as_status(status), OrderStatus.CANCELLED) in _TABLE


def is_in_progress(status) -> bool:
    return _as_status(status) not in FINAL_STATUSES and _as_status(status) != OrderStatus.PENDING


def requires_user_confirmation(target) -> bool:
    return _as_status(target) == OrderStatus.CANCELLED
