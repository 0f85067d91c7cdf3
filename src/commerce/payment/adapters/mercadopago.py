"""MercadoPago adapter for the multi-gateway path.

Delegates to the active checkout gateway client so both payment paths talk to
the provider through the same client.
"""

from commerce.payment.adapters.port import CreatePaymentResult, GatewayAdapter, PaymentQueryResult
from commerce.payment.gateway import get_gateway

# Provider vocabulary → gateway payment status
_STATUS_MAP = {
    "approved": "SUCCESS",
    "authorized": "PROCESSING",
    "in_process": "PROCESSING",
    "in_mediation": "PROCESSING",
    "pending": "PENDING",
    "rejected": "FAILED",
    "cancelled": "CANCELLED",
    "refunded": "REFUNDED",
    "charged_back": "REFUNDED",
}


class MercadoPagoAdapter(GatewayAdapter):
    def test_connection(self, config: dict) -> tuple[bool, str]:
        if config.get("access_token"):
            return True, "MercadoPago credentials present"
        return False, "Missing access token"

    def create_payment(self, config: dict, data: dict) -> CreatePaymentResult:
        result = get_gateway().create_preference(
            order_id=data["order_id"],
            order_number=data.get("order_number", ""),
            items=data.get("items", []),
            total=data["amount"],
        )
        if not result.success:
            return CreatePaymentResult(success=False, error_message=result.failure_reason)
        return CreatePaymentResult(
            success=True,
            checkout_url=result.init_point,
            external_id=result.preference_id,
            external_reference=data["order_id"],
        )

    def query_payment(self, config: dict, external_id: str) -> PaymentQueryResult:
        lookup = get_gateway().get_payment(external_id)
        if not lookup.success:
            return PaymentQueryResult(success=False, error_message=lookup.failure_reason)
        return PaymentQueryResult(
            success=True,
            status=_STATUS_MAP.get((lookup.status or "").lower(), "PENDING"),
            external_id=lookup.external_id,
            amount=lookup.amount,
            metadata={"provider_status": lookup.status},
        )
