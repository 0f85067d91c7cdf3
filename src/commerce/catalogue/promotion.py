"""Promotions attached to products and coupons redeemed at checkout."""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String

from commerce.domain import commerce


class PromotionKind(Enum):
    PERCENTAGE = "PERCENTAGE"
    DOS_POR_UNO = "DOS_POR_UNO"


class CouponBundle(Enum):
    DOS_POR_UNO = "DOS_POR_UNO"
    TRES_POR_DOS = "TRES_POR_DOS"
    CUATRO_POR_TRES = "CUATRO_POR_TRES"
    CINCO_POR_DOS = "CINCO_POR_DOS"
    CINCO_POR_TRES = "CINCO_POR_TRES"


@commerce.aggregate
class Promotion:
    name = String(required=True, max_length=255)
    kind = String(choices=PromotionKind, default=PromotionKind.PERCENTAGE.value)
    value = Integer(default=0, min_value=0, max_value=100)
    starts_at = DateTime()
    ends_at = DateTime()
    active = Boolean(default=True)

    def is_active_at(self, moment: datetime | None = None) -> bool:
        if not self.active:
            return False
        moment = moment or datetime.now(UTC)
        if self.starts_at and moment < _aware(self.starts_at):
            return False
        if self.ends_at and moment > _aware(self.ends_at):
            return False
        return True


@commerce.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    discount_percent = Integer(min_value=0, max_value=100)
    discount_amount = Integer(min_value=0)
    bundle = String(choices=CouponBundle)
    combinable = Boolean(default=False)
    active = Boolean(default=True)
    max_uses = Integer(min_value=0)
    uses = Integer(default=0, min_value=0)

    @invariant.post
    def must_grant_something(self):
        if not (self.discount_percent or self.discount_amount or self.bundle):
            raise ValidationError({"code": ["Coupon must define a percentage, an amount or a bundle"]})

    @property
    def is_redeemable(self) -> bool:
        if not self.active:
            return False
        return self.max_uses is None or (self.uses or 0) < self.max_uses

    def redeem(self) -> None:
        if not self.is_redeemable:
            raise ValidationError({"coupon_code": [f"Coupon {self.code} is no longer valid"]})
        self.uses = (self.uses or 0) + 1


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=UTC)
