"""Payment webhook reconciliation — commands and handler.

Webhook bodies are only a hint: the handler always asks the gateway for the
canonical payment status. Business effects (order approval and stock
reduction) run only when the locally stored payment moves from anything other
than APPROVED to APPROVED. Redelivering an approval is therefore a no-op, and
redelivering after a failure simply tries again.
"""

import json
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import GatewayError
from commerce.order.order import Order
from commerce.order.orchestration import apply_status_change
from commerce.order.state_machine import OrderStatus
from commerce.payment.adapters import get_adapter
from commerce.payment.events import PaymentReceived
from commerce.payment.gateway import get_gateway
from commerce.payment.gateway_config import Gateway
from commerce.payment.payment import (
    GATEWAY_TO_PAYMENT_STATUS,
    GatewayPayment,
    GatewayPaymentStatus,
    Payment,
    PaymentStatus,
    map_provider_status,
    payment_for_order,
)

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Payment")
class ReconcilePayment:
    """Reconcile a checkout payment reported by the gateway's webhook."""

    payment_external_id = String(required=True, max_length=255)
    topic = String(max_length=50)


@commerce.command(part_of="Payment")
class ReconcileGatewayPayment:
    """Reconcile a payment created through a configured gateway."""

    gateway_id = Identifier(required=True)
    external_id = String(required=True, max_length=255)


def _approve_order(order_id, payment: Payment, source: str) -> bool:
    """Move the order to PAYMENT_APPROVED, taking its stock. Returns False if the order refused."""
    order = current_domain.repository_for(Order).get(order_id)
    try:
        apply_status_change(order, OrderStatus.PAYMENT_APPROVED, changed_by="webhook", source=source)
    except ValidationError as exc:
        # The money arrived for an order that can no longer be approved (cancelled,
        # rejected). The payment is still recorded so it can be refunded by hand.
        logger.warning(
            "Approved payment for order that cannot accept it",
            order_id=str(order_id),
            order_status=order.status,
            error=exc.messages,
        )
        return False

    payment.raise_(
        PaymentReceived(
            payment_id=payment.id,
            order_id=order.id,
            order_number=order.order_number,
            amount=payment.amount or order.total,
            external_payment_id=payment.external_payment_id,
            received_at=datetime.now(UTC),
        )
    )
    return True


def apply_payment_status(payment: Payment, status: PaymentStatus, external_id, raw: dict, source: str) -> dict:
    """Persist a gateway-reported status and run the approval path once."""
    if payment.is_approved:
        logger.info("Payment already approved, ignoring redelivery", payment_id=str(payment.id))
        return {"status": payment.status, "processed": False}

    payment.record_gateway_status(status, external_id, raw)

    order_approved = False
    if status == PaymentStatus.APPROVED:
        order_approved = _approve_order(payment.order_id, payment, source)

    current_domain.repository_for(Payment).add(payment)
    logger.info(
        "Payment reconciled",
        payment_id=str(payment.id),
        order_id=str(payment.order_id),
        status=status.value,
        order_approved=order_approved,
    )
    return {"status": status.value, "processed": True, "order_approved": order_approved}


@commerce.command_handler(part_of=Payment)
class PaymentWebhookHandler:
    @handle(ReconcilePayment)
    def reconcile_payment(self, command):
        lookup = get_gateway().get_payment(command.payment_external_id)
        if not lookup.success:
            logger.error(
                "Gateway payment lookup failed",
                payment_external_id=command.payment_external_id,
                reason=lookup.failure_reason,
            )
            raise GatewayError(f"Could not fetch payment {command.payment_external_id}")

        payment = payment_for_order(lookup.external_reference)
        if payment is None:
            raise ObjectNotFoundError(f"No payment recorded for order {lookup.external_reference}")

        return apply_payment_status(
            payment,
            map_provider_status(lookup.status),
            lookup.external_id,
            lookup.raw,
            source="webhook",
        )

    @handle(ReconcileGatewayPayment)
    def reconcile_gateway_payment(self, command):
        gateway = current_domain.repository_for(Gateway).get(command.gateway_id)
        repo = current_domain.repository_for(GatewayPayment)
        gateway_payment = repo._dao.query.filter(
            gateway_id=str(gateway.id),
            external_id=command.external_id,
        ).all().first
        if gateway_payment is None:
            raise ObjectNotFoundError(f"Gateway payment {command.external_id} not found")

        config = json.loads(gateway.config) if gateway.config else {}
        result = get_adapter(gateway.adapter).query_payment(config, command.external_id)
        if not result.success:
            logger.error(
                "Gateway payment query failed",
                gateway=gateway.name,
                external_id=command.external_id,
                reason=result.error_message,
            )
            raise GatewayError(f"Could not query payment {command.external_id}")

        status = GatewayPaymentStatus(result.status)
        gateway_payment.record_query(status, result.metadata)
        repo.add(gateway_payment)

        payment_status = GATEWAY_TO_PAYMENT_STATUS.get(status)
        payment = payment_for_order(gateway_payment.order_id)
        if payment_status is None or payment is None:
            return {"status": status.value, "processed": False}

        outcome = apply_payment_status(
            payment,
            payment_status,
            command.external_id,
            {"gateway_id": str(gateway.id), "gateway_status": status.value, **result.metadata},
            source=f"gateway:{gateway.name}",
        )
        return {**outcome, "status": status.value}
