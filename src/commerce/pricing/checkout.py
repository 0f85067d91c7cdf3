"""Checkout line pricing and coupon layering.

A line's own promotion (or, failing that, clearance) is priced first. Lines
carrying such a discount are excluded from the coupon, which is computed only
over the subtotal and quantity of the remaining lines.
"""

from dataclasses import dataclass, field
from types import MappingProxyType

from commerce.catalogue.promotion import CouponBundle, PromotionKind
from commerce.pricing.rules import round_amount

# (take, pay) per bundle coupon
BUNDLES = MappingProxyType(
    {
        CouponBundle.DOS_POR_UNO: (2, 1),
        CouponBundle.TRES_POR_DOS: (3, 2),
        CouponBundle.CUATRO_POR_TRES: (4, 3),
        CouponBundle.CINCO_POR_DOS: (5, 2),
        CouponBundle.CINCO_POR_TRES: (5, 3),
    }
)


@dataclass
class PricedLine:
    product_id: str
    quantity: int
    unit_price: int
    original_price: int
    discount_amount: int = 0
    promotion_id: str | None = None
    promotion_name: str | None = None
    variant_id: str | None = None
    size: str | None = None
    color_code: str | None = None
    color_name: str | None = None

    @property
    def has_active_promotion(self) -> bool:
        return self.promotion_id is not None or self.discount_amount > 0

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass
class CheckoutTotals:
    lines: list[PricedLine] = field(default_factory=list)
    subtotal: int = 0
    coupon_discount: int = 0
    total: int = 0
    eligible_quantity: int = 0


def price_line(product, quantity: int, promotion=None, moment=None, **line_fields) -> PricedLine:
    """Price one cart line against the product's promotion or clearance."""
    price = product.price
    line = PricedLine(
        product_id=str(product.id),
        quantity=quantity,
        unit_price=price,
        original_price=price,
        **line_fields,
    )

    if promotion is not None and promotion.is_active_at(moment):
        if PromotionKind(promotion.kind) == PromotionKind.PERCENTAGE:
            line.discount_amount = round_amount(price * promotion.value / 100)
            line.promotion_name = f"{promotion.name} ({promotion.value}% OFF)"
        else:
            free = quantity // 2
            unit = round_amount(price * (quantity - free) / quantity)
            line.discount_amount = price - unit
            line.promotion_name = f"{promotion.name} (2x1)"
        line.promotion_id = str(promotion.id)
        line.unit_price = price - line.discount_amount
        return line

    if product.on_clearance and product.clearance_percent:
        line.discount_amount = round_amount(price * product.clearance_percent / 100)
        line.unit_price = price - line.discount_amount
        line.promotion_name = f"Clearance ({product.clearance_percent}% OFF)"
    return line


def _bundle_discount(bundle, eligible_subtotal: int, eligible_quantity: int) -> int:
    take, pay = BUNDLES[CouponBundle(bundle)]
    average = eligible_subtotal / eligible_quantity
    groups, remainder = divmod(eligible_quantity, take)
    paid = groups * pay * average + remainder * average
    return round_amount(eligible_subtotal - paid)


def _flat_discount(coupon, base: int) -> int:
    if coupon.discount_percent:
        return round_amount(base * coupon.discount_percent / 100)
    return min(coupon.discount_amount or 0, base)


def coupon_discount(lines: list[PricedLine], coupon) -> tuple[int, int]:
    """Return ``(discount, eligible_quantity)`` for ``coupon`` over ``lines``."""
    eligible = [line for line in lines if not line.has_active_promotion]
    eligible_subtotal = sum(line.line_total for line in eligible)
    eligible_quantity = sum(line.quantity for line in eligible)
    if coupon is None or not eligible_quantity:
        return 0, eligible_quantity

    has_flat = bool(coupon.discount_percent or coupon.discount_amount)
    if coupon.bundle and has_flat:
        bundle = _bundle_discount(coupon.bundle, eligible_subtotal, eligible_quantity)
        if coupon.combinable:
            return bundle + _flat_discount(coupon, eligible_subtotal - bundle), eligible_quantity
        return max(bundle, _flat_discount(coupon, eligible_subtotal)), eligible_quantity
    if coupon.bundle:
        return _bundle_discount(coupon.bundle, eligible_subtotal, eligible_quantity), eligible_quantity
    return _flat_discount(coupon, eligible_subtotal), eligible_quantity


def checkout_totals(lines: list[PricedLine], coupon=None) -> CheckoutTotals:
    subtotal = sum(line.line_total for line in lines)
    discount, eligible_quantity = coupon_discount(lines, coupon)
    return CheckoutTotals(
        lines=lines,
        subtotal=subtotal,
        coupon_discount=discount,
        total=max(0, subtotal - discount),
        eligible_quantity=eligible_quantity,
    )
