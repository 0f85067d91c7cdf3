"""Gateway price rules.

``calculate_final_price`` is a pure function: it takes a base price in minor
units and a gateway (anything exposing ``rules``, ``fees_fixed`` and
``fees_percent``) and returns the charge together with a breakdown of every
rule and fee that contributed to it.

Rules are filtered by scope, sorted by priority (highest first) and applied in
one explicit pass. Gateway fees are added after all rules. The final price is
never negative.
"""

import math
from dataclasses import dataclass, field
from enum import Enum


class RuleScope(Enum):
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
    GLOBAL = "GLOBAL"


class RuleAction(Enum):
    DISCOUNT = "DISCOUNT"
    CHARGE = "CHARGE"


@dataclass(frozen=True)
class AppliedRule:
    id: str
    description: str
    action: str
    amount: int  # negative for discounts


@dataclass(frozen=True)
class GatewayFees:
    fixed: int
    percent: int
    total: int


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int
    final_price: int
    applied_rules: list[AppliedRule] = field(default_factory=list)
    gateway_fees: GatewayFees = GatewayFees(0, 0, 0)

    def to_dict(self) -> dict:
        return {
            "base_price": self.base_price,
            "final_price": self.final_price,
            "applied_rules": [vars(rule) for rule in self.applied_rules],
            "gateway_fees": vars(self.gateway_fees),
        }


def round_amount(value: float) -> int:
    """Round half up to whole minor units."""
    return int(math.floor(value + 0.5))


def _in_scope(rule, product_id, category_id) -> bool:
    scope = RuleScope(rule.scope)
    if scope == RuleScope.PRODUCT:
        return bool(product_id) and str(rule.scope_id) == str(product_id)
    if scope == RuleScope.CATEGORY:
        return bool(category_id) and str(rule.scope_id) == str(category_id)
    return not rule.scope_id


def applicable_rules(rules, product_id=None, category_id=None) -> list:
    """Active, in-scope rules ordered by priority, highest first.

    ``sorted`` is stable, so rules sharing a priority keep their stored order.
    """
    candidates = [r for r in rules if r.active and _in_scope(r, product_id, category_id)]
    return sorted(candidates, key=lambda r: r.priority or 0, reverse=True)


def calculate_final_price(base_price: int, gateway, product_id=None, category_id=None) -> PriceBreakdown:
    current = base_price
    applied: list[AppliedRule] = []

    for rule in applicable_rules(gateway.rules, product_id, category_id):
        if rule.amount:
            amount = rule.amount
        elif rule.percent:
            amount = round_amount(current * rule.percent / 100)
        else:
            continue

        if RuleAction(rule.action) == RuleAction.DISCOUNT:
            current -= amount
            applied.append(
                AppliedRule(str(rule.id), rule.description or f"Discount {rule.percent or 0}%", rule.action, -amount)
            )
        else:
            current += amount
            applied.append(
                AppliedRule(str(rule.id), rule.description or f"Charge {rule.percent or 0}%", rule.action, amount)
            )

    fees_fixed = gateway.fees_fixed or 0
    fees_percent = round_amount(current * (gateway.fees_percent or 0) / 100)
    current += fees_fixed + fees_percent

    return PriceBreakdown(
        base_price=base_price,
        final_price=max(0, current),
        applied_rules=applied,
        gateway_fees=GatewayFees(fixed=fees_fixed, percent=fees_percent, total=fees_fixed + fees_percent),
    )
