"""Tests for gateway price rules — scope, priority order and fees."""

from commerce.payment.gateway_config import Gateway
from commerce.pricing.rules import applicable_rules, calculate_final_price, round_amount


def _gateway(rules=(), **kwargs):
    gateway = Gateway(name="Tarjeta", adapter="card", **kwargs)
    for rule in rules:
        gateway.add_rule(**rule)
    return gateway


class TestRoundAmount:
    def test_halves_round_up(self):
        assert round_amount(2.5) == 3
        assert round_amount(3.5) == 4

    def test_below_half_rounds_down(self):
        assert round_amount(10.49) == 10


class TestApplicableRules:
    def test_filters_by_scope_and_active(self):
        gateway = _gateway(
            [
                {"description": "global", "percent": 10.0},
                {"description": "prod", "scope": "PRODUCT", "scope_id": "prod-1", "amount": 100},
                {"description": "other prod", "scope": "PRODUCT", "scope_id": "prod-2", "amount": 100},
                {"description": "cat", "scope": "CATEGORY", "scope_id": "cat-1", "amount": 50},
                {"description": "off", "percent": 50.0, "active": False},
            ]
        )
        names = [r.description for r in applicable_rules(gateway.rules, "prod-1", "cat-1")]
        assert sorted(names) == ["cat", "global", "prod"]

    def test_priority_descending_keeps_insertion_order_for_ties(self):
        gateway = _gateway(
            [
                {"description": "low", "amount": 1, "priority": 1},
                {"description": "first high", "amount": 1, "priority": 5},
                {"description": "second high", "amount": 1, "priority": 5},
            ]
        )
        names = [r.description for r in applicable_rules(gateway.rules)]
        assert names == ["first high", "second high", "low"]


class TestCalculateFinalPrice:
    def test_no_rules_no_fees(self):
        breakdown = calculate_final_price(10000, _gateway())
        assert breakdown.final_price == 10000
        assert breakdown.applied_rules == []
        assert breakdown.gateway_fees.total == 0

    def test_percentage_rules_compound_in_priority_order(self):
        gateway = _gateway(
            [
                {"description": "surcharge", "action": "CHARGE", "percent": 10.0, "priority": 1},
                {"description": "promo", "action": "DISCOUNT", "percent": 20.0, "priority": 10},
            ]
        )
        breakdown = calculate_final_price(10000, gateway)

        # 10000 - 20% = 8000, then + 10% = 8800
        assert breakdown.final_price == 8800
        assert [rule.amount for rule in breakdown.applied_rules] == [-2000, 800]

    def test_fees_are_applied_after_rules(self):
        gateway = _gateway(
            [{"description": "promo", "amount": 1000}],
            fees_fixed=100,
            fees_percent=5.0,
        )
        breakdown = calculate_final_price(10000, gateway)

        # 9000 after the rule, fee 100 + 450
        assert breakdown.gateway_fees.fixed == 100
        assert breakdown.gateway_fees.percent == 450
        assert breakdown.final_price == 9550

    def test_final_price_is_clamped_at_zero(self):
        gateway = _gateway([{"description": "huge", "amount": 50000}])
        assert calculate_final_price(10000, gateway).final_price == 0

    def test_category_rule_only_applies_to_its_category(self):
        gateway = _gateway([{"description": "cat", "scope": "CATEGORY", "scope_id": "cat-1", "amount": 500}])
        assert calculate_final_price(10000, gateway, category_id="cat-1").final_price == 9500
        assert calculate_final_price(10000, gateway, category_id="cat-2").final_price == 10000

    def test_breakdown_serialises(self):
        gateway = _gateway([{"description": "promo", "amount": 1000}], fees_fixed=100)
        data = calculate_final_price(10000, gateway).to_dict()
        assert data["final_price"] == 9100
        assert data["applied_rules"][0]["description"] == "promo"
        assert data["gateway_fees"] == {"fixed": 100, "percent": 0, "total": 100}
