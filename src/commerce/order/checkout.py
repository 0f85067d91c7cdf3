"""Checkout — create the order and its gateway payment.

Stock is validated before anything is written or any gateway is called, so a
shortage can never leave a half-created order or an orphan preference behind.
The order is created in PENDING and stock is only taken once the payment is
approved.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.catalogue.inventory import validate_stock_availability
from commerce.catalogue.product import Product
from commerce.catalogue.promotion import Coupon, Promotion
from commerce.domain import commerce
from commerce.errors import GatewayError, InsufficientStock
from commerce.order.order import Order
from commerce.order.state_machine import FulfillmentType, OrderStatus
from commerce.payment.adapters import get_adapter
from commerce.payment.gateway import get_gateway
from commerce.payment.gateway_config import Gateway
from commerce.payment.payment import GatewayPayment, GatewayPaymentStatus, Payment
from commerce.pricing.checkout import checkout_totals, price_line
from commerce.pricing.rules import calculate_final_price

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class CreateOrderAndPreference:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_id, quantity, size, color_code, color_name, variant_id}]
    fulfillment_type = String(choices=FulfillmentType, default=FulfillmentType.SHIPPING.value)
    coupon_code = String(max_length=50)
    payer_email = String(max_length=255)


@commerce.command(part_of="Order")
class CreateGatewayCheckout:
    """Start a payment for a pending order through a configured gateway."""

    order_id = Identifier(required=True)
    gateway_id = Identifier(required=True)


def _quantity(line: dict) -> int:
    try:
        quantity = int(line.get("quantity") or 0)
    except (TypeError, ValueError):
        raise ValidationError({"items": [f"Quantity for product {line['product_id']} must be a number"]}) from None
    if quantity < 1:
        raise ValidationError({"items": [f"Quantity for product {line['product_id']} must be at least 1"]})
    return quantity


def _parse_lines(raw: str) -> list[dict]:
    try:
        lines = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError({"items": ["Items must be valid JSON"]}) from None

    if not isinstance(lines, list) or not lines:
        raise ValidationError({"items": ["An order needs at least one item"]})
    for line in lines:
        if not isinstance(line, dict) or not line.get("product_id"):
            raise ValidationError({"items": ["Every item needs a product_id"]})
        line["quantity"] = _quantity(line)
    return lines


def _require_variant_choice(lines: list[dict]) -> None:
    """Lines for a product with variants must say which variant they take."""
    repo = current_domain.repository_for(Product)
    for line in lines:
        if line.get("variant_id") or line.get("color_code"):
            continue
        try:
            product = repo.get(line["product_id"])
        except ObjectNotFoundError:
            continue
        if product.has_variants:
            raise ValidationError({"items": [f"Choose a colour and size for {product.name}"]})


def _active_promotion(product: Product):
    if not product.promotion_id:
        return None
    try:
        return current_domain.repository_for(Promotion).get(product.promotion_id)
    except ObjectNotFoundError:
        return None


def _redeem_coupon(code: str | None):
    if not code:
        return None
    repo = current_domain.repository_for(Coupon)
    coupon = repo._dao.query.filter(code=code).all().first
    if coupon is None or not coupon.is_redeemable:
        raise ValidationError({"coupon_code": [f"Coupon {code} is not valid"]})
    coupon.redeem()
    repo.add(coupon)
    return coupon


@commerce.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(CreateOrderAndPreference)
    def create_order_and_preference(self, command):
        lines = _parse_lines(command.items)
        _require_variant_choice(lines)

        check = validate_stock_availability(lines)
        if not check.is_valid:
            logger.warning(
                "Checkout rejected for insufficient stock",
                user_id=str(command.user_id),
                shortfalls=len(check.insufficient_items),
            )
            raise InsufficientStock([shortfall.to_dict() for shortfall in check.insufficient_items])

        product_repo = current_domain.repository_for(Product)
        priced = []
        for line in lines:
            product = product_repo.get(line["product_id"])
            variant = None
            if product.has_variants and (line.get("variant_id") or line.get("color_code")):
                variant = product.find_variant(
                    color_code=line.get("color_code"),
                    size=line.get("size"),
                    variant_id=line.get("variant_id"),
                )
            priced.append(
                price_line(
                    product,
                    int(line["quantity"]),
                    promotion=_active_promotion(product),
                    variant_id=str(variant.id) if variant else None,
                    size=line.get("size"),
                    color_code=line.get("color_code"),
                    color_name=line.get("color_name") or (variant.color_name if variant else None),
                )
            )

        coupon = _redeem_coupon(command.coupon_code)
        totals = checkout_totals(priced, coupon)

        order = Order.create(
            user_id=command.user_id,
            items=[
                {
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "quantity": line.quantity,
                    "size": line.size,
                    "color_code": line.color_code,
                    "color_name": line.color_name,
                    "unit_price": line.unit_price,
                    "original_price": line.original_price,
                    "discount_amount": line.discount_amount,
                    "promotion_id": line.promotion_id,
                    "promotion_name": line.promotion_name,
                }
                for line in priced
            ],
            fulfillment_type=command.fulfillment_type,
            subtotal=totals.subtotal,
            discount_total=totals.coupon_discount,
            total=totals.total,
            coupon_code=coupon.code if coupon else None,
        )

        preference = get_gateway().create_preference(
            order_id=str(order.id),
            order_number=order.order_number,
            items=order.items_data(),
            total=order.total,
            payer={"email": command.payer_email} if command.payer_email else None,
        )
        if not preference.success:
            logger.error(
                "Checkout preference creation failed",
                order_number=order.order_number,
                reason=preference.failure_reason,
            )
            raise GatewayError("Could not start the payment, please try again")

        current_domain.repository_for(Order).add(order)
        current_domain.repository_for(Payment).add(
            Payment(order_id=order.id, amount=order.total, preference_id=preference.preference_id)
        )

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
            coupon_discount=totals.coupon_discount,
        )
        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "checkout_url": preference.init_point,
            "preference_id": preference.preference_id,
            "subtotal": totals.subtotal,
            "discount_total": totals.coupon_discount,
            "total": order.total,
        }

    @handle(CreateGatewayCheckout)
    def create_gateway_checkout(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        gateway = current_domain.repository_for(Gateway).get(command.gateway_id)

        if order.current_status != OrderStatus.PENDING:
            raise ValidationError({"order_id": [f"Order {order.order_number} is not awaiting payment"]})
        if not gateway.active:
            raise ValidationError({"gateway_id": [f"Gateway {gateway.name} is not active"]})

        product_repo = current_domain.repository_for(Product)
        amount = 0
        breakdowns = []
        for item in order.items:
            try:
                category_id = product_repo.get(item.product_id).category_id
            except ObjectNotFoundError:
                category_id = None
            breakdown = calculate_final_price(item.unit_price, gateway, item.product_id, category_id)
            amount += breakdown.final_price * item.quantity
            breakdowns.append({"item_id": str(item.id), **breakdown.to_dict()})

        config = json.loads(gateway.config) if gateway.config else {}
        result = get_adapter(gateway.adapter).create_payment(
            config,
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "amount": amount,
                "currency": gateway.currency,
                "description": f"Order {order.order_number}",
                "items": order.items_data(),
            },
        )

        details = {"pricing": breakdowns, **result.metadata}
        if not result.success:
            details["error"] = result.error_message
            logger.error(
                "Gateway payment creation failed",
                order_id=str(order.id),
                gateway=gateway.name,
                reason=result.error_message,
            )

        gateway_payment = GatewayPayment(
            order_id=order.id,
            gateway_id=gateway.id,
            external_id=result.external_id,
            external_reference=result.external_reference or order.order_number,
            amount=amount,
            currency=gateway.currency,
            status=(GatewayPaymentStatus.PENDING if result.success else GatewayPaymentStatus.FAILED).value,
            checkout_url=result.checkout_url,
            details=json.dumps(details, default=str),
        )
        current_domain.repository_for(GatewayPayment).add(gateway_payment)
        return gateway_payment.to_dict()


def quote_price(base_price: int, gateway_id, product_id=None, category_id=None) -> dict:
    gateway = current_domain.repository_for(Gateway).get(gateway_id)
    return calculate_final_price(base_price, gateway, product_id, category_id).to_dict()
