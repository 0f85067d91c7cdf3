"""Bank transfer adapter.

No external integration: creating a payment produces transfer instructions
and the status is settled manually from the back office.
"""

from commerce.payment.adapters.port import CreatePaymentResult, GatewayAdapter, PaymentQueryResult


class TransferAdapter(GatewayAdapter):
    supports_webhooks = False

    def test_connection(self, config: dict) -> tuple[bool, str]:
        if config.get("account") and config.get("cbu") and config.get("alias"):
            return True, "Transfer configuration is valid"
        return False, "Missing bank account details"

    def create_payment(self, config: dict, data: dict) -> CreatePaymentResult:
        instructions = {
            "bank": config.get("bank", "Unspecified bank"),
            "holder": config.get("holder"),
            "cbu": config.get("cbu"),
            "alias": config.get("alias"),
            "amount": data.get("amount"),
            "currency": data.get("currency"),
            "reference": data.get("order_number"),
        }
        return CreatePaymentResult(
            success=True,
            external_reference=data.get("order_number"),
            metadata={"instructions": instructions, "message": "Awaiting transfer confirmation"},
        )

    def query_payment(self, config: dict, external_id: str) -> PaymentQueryResult:
        return PaymentQueryResult(
            success=True,
            status="PENDING",
            metadata={"message": "Transfers are confirmed manually"},
        )
