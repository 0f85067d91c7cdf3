"""FastAPI routes for orders, payment webhooks, gateways and pricing."""

import hashlib
import hmac
import json
import os

import pydantic
import structlog
from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from protean.utils.globals import current_domain

from commerce.api.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    ConfirmReceiptRequest,
    GatewayCheckoutRequest,
    GatewayWebhook,
    PaymentWebhook,
    PriceQuoteRequest,
    PriceQuoteResponse,
    RejectOrderRequest,
    TransitionsResponse,
    UpdateStatusRequest,
    WebhookAck,
)
from commerce.domain import commerce
from commerce.order.audit import get_order_audit
from commerce.order.checkout import CreateGatewayCheckout, CreateOrderAndPreference, quote_price
from commerce.order.orchestration import (
    ConfirmReceipt,
    RejectOrder,
    UpdateOrderStatus,
    get_available_transitions,
    get_order_tracking,
)
from commerce.order.order import Order
from commerce.payment.webhook import ReconcileGatewayPayment, ReconcilePayment

logger = structlog.get_logger(__name__)

SIGNATURE_HEADERS = ("x-hub-signature-256", "x-hub-signature", "x-signature")

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest) -> CheckoutResponse:
    command = CreateOrderAndPreference(
        user_id=body.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        fulfillment_type=body.fulfillment_type,
        coupon_code=body.coupon_code,
        payer_email=body.payer_email,
    )
    result = current_domain.process(command, asynchronous=False)
    return CheckoutResponse(**result)


@order_router.patch("/{order_id}/status")
async def update_order_status(order_id: str, body: UpdateStatusRequest) -> dict:
    command = UpdateOrderStatus(
        order_id=order_id,
        new_status=body.status,
        changed_by=body.changed_by,
        expected_version=body.expected_version,
        cancellation_reason=body.cancellation_reason,
        delivery_reason=body.delivery_reason,
        tracking_number=body.tracking_number,
        courier_name=body.courier_name,
        shipping_notes=body.shipping_notes,
    )
    return current_domain.process(command, asynchronous=False)


@order_router.post("/{order_id}/reject")
async def reject_order(order_id: str, body: RejectOrderRequest) -> dict:
    command = RejectOrder(order_id=order_id, reason=body.reason, changed_by=body.changed_by)
    return current_domain.process(command, asynchronous=False)


@order_router.post("/{order_id}/confirm-receipt")
async def confirm_receipt(order_id: str, body: ConfirmReceiptRequest) -> dict:
    command = ConfirmReceipt(order_id=order_id, user_id=body.user_id)
    return current_domain.process(command, asynchronous=False)


@order_router.get("/{order_id}/transitions", response_model=TransitionsResponse)
async def order_transitions(order_id: str) -> TransitionsResponse:
    return TransitionsResponse(**get_available_transitions(order_id))


@order_router.get("/{order_id}/audit")
async def order_audit(order_id: str) -> list[dict]:
    # 404 for unknown orders rather than an empty history
    current_domain.repository_for(Order).get(order_id)
    return get_order_audit(order_id)


@order_router.get("/{order_id}/tracking")
async def order_tracking(order_id: str, user_id: str | None = None) -> dict:
    return get_order_tracking(order_id, user_id=user_id)


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _signature_valid(body: bytes, headers) -> bool:
    """HMAC-SHA256 check. With a secret configured, unsigned bodies are refused."""
    secret = os.getenv("WEBHOOK_SECRET")
    signature = next((headers[name] for name in SIGNATURE_HEADERS if name in headers), None)
    if not secret:
        return True
    if not signature:
        return False
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, f"sha256={digest}")


def reconcile_in_background(command) -> None:
    """Run a reconciliation command after the webhook has been acknowledged.

    Providers retry on anything but 2xx, so failures are logged here and the
    next delivery gets another chance.
    """
    with commerce.domain_context():
        try:
            commerce.process(command, asynchronous=False)
        except Exception:
            logger.exception("Webhook reconciliation failed", command=command.__class__.__name__)


async def _read_webhook(request: Request, schema):
    body = await request.body()
    if not _signature_valid(body, request.headers):
        logger.warning("Webhook signature mismatch", path=request.url.path)
        raise HTTPException(status_code=400, detail="Invalid signature")
    try:
        return schema.model_validate_json(body or b"{}")
    except pydantic.ValidationError as exc:
        logger.warning("Unreadable webhook payload", path=request.url.path, errors=exc.error_count())
        return None


@webhook_router.post("/payments", response_model=WebhookAck)
async def payment_webhook(request: Request, background_tasks: BackgroundTasks) -> WebhookAck:
    payload = await _read_webhook(request, PaymentWebhook)
    if payload is None or not payload.is_payment or not payload.external_id:
        return WebhookAck()

    command = ReconcilePayment(payment_external_id=payload.external_id, topic=payload.type or payload.action)
    background_tasks.add_task(reconcile_in_background, command)
    return WebhookAck()


@webhook_router.post("/gateways/{gateway_id}", response_model=WebhookAck)
async def gateway_webhook(gateway_id: str, request: Request, background_tasks: BackgroundTasks) -> WebhookAck:
    payload = await _read_webhook(request, GatewayWebhook)
    if payload is None or not payload.resolved_id:
        return WebhookAck()

    command = ReconcileGatewayPayment(gateway_id=gateway_id, external_id=payload.resolved_id)
    background_tasks.add_task(reconcile_in_background, command)
    return WebhookAck()


# ---------------------------------------------------------------------------
# Gateway Router
# ---------------------------------------------------------------------------
gateway_router = APIRouter(prefix="/gateways", tags=["gateways"])


@gateway_router.post("/{gateway_id}/checkout", status_code=201)
async def gateway_checkout(gateway_id: str, body: GatewayCheckoutRequest) -> dict:
    command = CreateGatewayCheckout(order_id=body.order_id, gateway_id=gateway_id)
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Pricing Router
# ---------------------------------------------------------------------------
pricing_router = APIRouter(prefix="/pricing", tags=["pricing"])


@pricing_router.post("/quote", response_model=PriceQuoteResponse)
async def price_quote(body: PriceQuoteRequest) -> PriceQuoteResponse:
    quote = quote_price(body.base_price, body.gateway_id, body.product_id, body.category_id)
    return PriceQuoteResponse(**quote)
