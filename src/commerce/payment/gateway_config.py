"""Configured payment gateways and their price rules."""

from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, HasMany, Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.pricing.rules import RuleAction, RuleScope


class AdapterKind(Enum):
    FAKE = "fake"
    MERCADOPAGO = "mercadopago"
    CARD = "card"
    TRANSFER = "transfer"


@commerce.entity(part_of="Gateway")
class GatewayRule:
    """A discount or surcharge applied to prices charged through a gateway."""

    description = String(max_length=255)
    scope = String(choices=RuleScope, default=RuleScope.GLOBAL.value)
    scope_id = Identifier()
    action = String(choices=RuleAction, default=RuleAction.DISCOUNT.value)
    amount = Integer(min_value=0)
    percent = Float(min_value=0.0)
    priority = Integer(default=0)
    active = Boolean(default=True)

    @invariant.post
    def scope_id_matches_scope(self):
        if self.scope == RuleScope.GLOBAL.value and self.scope_id:
            raise ValidationError({"scope_id": ["Global rules cannot target a product or category"]})
        if self.scope != RuleScope.GLOBAL.value and not self.scope_id:
            raise ValidationError({"scope_id": [f"{self.scope} rules need a scope_id"]})


@commerce.aggregate
class Gateway:
    name = String(required=True, max_length=100)
    adapter = String(choices=AdapterKind, default=AdapterKind.FAKE.value)
    active = Boolean(default=True)
    fees_fixed = Integer(default=0, min_value=0)
    fees_percent = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="ARS")
    config = Text()  # JSON credentials and adapter settings
    rules = HasMany(GatewayRule)

    def add_rule(self, **rule) -> GatewayRule:
        entry = GatewayRule(**rule)
        self.add_rules(entry)
        return entry
