"""In-process gateway adapter for development and testing."""

from uuid import uuid4

from commerce.payment.adapters.port import CreatePaymentResult, GatewayAdapter, PaymentQueryResult


class FakeAdapter(GatewayAdapter):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.statuses: dict[str, str] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def set_status(self, external_id: str, status: str) -> None:
        self.statuses[str(external_id)] = status

    def test_connection(self, config: dict) -> tuple[bool, str]:
        return True, "Fake gateway ready"

    def create_payment(self, config: dict, data: dict) -> CreatePaymentResult:
        self.calls.append({"method": "create_payment", **data})
        if not self.should_succeed:
            return CreatePaymentResult(success=False, error_message=self.failure_reason)

        external_id = f"fake_gw_{uuid4().hex[:12]}"
        self.statuses.setdefault(external_id, "PENDING")
        return CreatePaymentResult(
            success=True,
            checkout_url=f"https://gateway.example.test/checkout/{external_id}",
            external_id=external_id,
            external_reference=data.get("order_number"),
        )

    def query_payment(self, config: dict, external_id: str) -> PaymentQueryResult:
        self.calls.append({"method": "query_payment", "external_id": external_id})
        if not self.should_succeed:
            return PaymentQueryResult(success=False, error_message=self.failure_reason)
        return PaymentQueryResult(
            success=True,
            status=self.statuses.get(str(external_id), "PENDING"),
            external_id=str(external_id),
        )
