"""Generic card processor adapter.

Hands the customer to the storefront's card form; the processor integration
behind that form reports results out of band, so queries stay PENDING.
"""

import os

from commerce.payment.adapters.port import CreatePaymentResult, GatewayAdapter, PaymentQueryResult


class CardAdapter(GatewayAdapter):
    supports_webhooks = False

    def test_connection(self, config: dict) -> tuple[bool, str]:
        if config.get("api_key") or config.get("public_key"):
            return True, "Card configuration is valid"
        return False, "Missing API credentials"

    def create_payment(self, config: dict, data: dict) -> CreatePaymentResult:
        app_url = os.environ.get("APP_URL", "http://localhost:3000")
        return CreatePaymentResult(
            success=True,
            checkout_url=f"{app_url}/checkout/card-payment/{data['order_id']}",
            external_reference=data.get("order_number"),
            metadata={"amount": data.get("amount"), "currency": data.get("currency")},
        )

    def query_payment(self, config: dict, external_id: str) -> PaymentQueryResult:
        return PaymentQueryResult(
            success=True,
            status="PENDING",
            metadata={"message": "Card payment status is reported by the processor"},
        )
