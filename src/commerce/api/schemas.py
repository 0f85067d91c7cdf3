"""Pydantic request/response schemas for the commerce API.

These are external contracts, kept separate from the protean commands they
are translated into.
"""

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    size: str | None = None
    color_code: str | None = None
    color_name: str | None = None
    variant_id: str | None = None


class CheckoutRequest(BaseModel):
    user_id: str
    items: list[CheckoutItemSchema] = Field(min_length=1)
    fulfillment_type: str = "shipping"
    coupon_code: str | None = None
    payer_email: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "items": [{"product_id": "prod-001", "quantity": 2, "size": "38", "color_code": "#FF0000"}],
                    "fulfillment_type": "shipping",
                    "coupon_code": "BIENVENIDA10",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    checkout_url: str | None = None
    preference_id: str | None = None
    subtotal: int
    discount_total: int
    total: int


# ---------------------------------------------------------------------------
# Order status
# ---------------------------------------------------------------------------
class UpdateStatusRequest(BaseModel):
    status: str
    changed_by: str
    expected_version: int | None = Field(default=None, ge=1)
    cancellation_reason: str | None = None
    delivery_reason: str | None = None
    tracking_number: str | None = None
    courier_name: str | None = None
    shipping_notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "IN_TRANSIT",
                    "changed_by": "admin@example.com",
                    "expected_version": 4,
                    "tracking_number": "AR123456789",
                    "courier_name": "Andreani",
                }
            ]
        }
    }


class RejectOrderRequest(BaseModel):
    reason: str
    changed_by: str


class ConfirmReceiptRequest(BaseModel):
    user_id: str


class TransitionsResponse(BaseModel):
    current_status: str
    available_transitions: list[str]
    is_final: bool


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
class WebhookData(BaseModel):
    id: str | int | None = None


class PaymentWebhook(BaseModel):
    """Provider notification. Only the payment id is trusted; status is re-queried."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str | None = None
    action: str | None = None
    data: WebhookData | None = None
    payment_external_id: str | int | None = Field(default=None, alias="paymentExternalId")

    @property
    def is_payment(self) -> bool:
        return self.type == "payment" or (self.action or "").startswith("payment.")

    @property
    def external_id(self) -> str | None:
        raw = self.data.id if self.data and self.data.id is not None else self.payment_external_id
        return str(raw) if raw is not None else None


class GatewayWebhook(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    external_id: str | int | None = Field(default=None, alias="externalId")
    data: WebhookData | None = None

    @property
    def resolved_id(self) -> str | None:
        raw = self.external_id if self.external_id is not None else (self.data.id if self.data else None)
        return str(raw) if raw is not None else None


class WebhookAck(BaseModel):
    received: bool = True


# ---------------------------------------------------------------------------
# Gateways and pricing
# ---------------------------------------------------------------------------
class PriceQuoteRequest(BaseModel):
    base_price: int = Field(ge=0)
    gateway_id: str
    product_id: str | None = None
    category_id: str | None = None


class AppliedRuleSchema(BaseModel):
    id: str
    description: str
    action: str
    amount: int


class GatewayFeesSchema(BaseModel):
    fixed: int
    percent: int
    total: int


class PriceQuoteResponse(BaseModel):
    base_price: int
    final_price: int
    applied_rules: list[AppliedRuleSchema]
    gateway_fees: GatewayFeesSchema


class GatewayCheckoutRequest(BaseModel):
    order_id: str
