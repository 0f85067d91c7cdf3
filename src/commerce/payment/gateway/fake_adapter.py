"""Configurable fake checkout gateway for development and testing.

Simulates a hosted-checkout provider without external calls. Tests seed the
payments the gateway "knows about" with ``register_payment`` and flip failure
behaviour with ``configure``.
"""

from uuid import uuid4

from commerce.payment.gateway.port import CheckoutGateway, PaymentLookup, PreferenceResult


class FakeGateway(CheckoutGateway):
    """Configurable fake checkout gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.payments: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def register_payment(self, external_id: str, status: str, external_reference: str, amount: int = 0) -> None:
        """Record a payment as the gateway would report it."""
        self.payments[str(external_id)] = {
            "id": str(external_id),
            "status": status,
            "external_reference": str(external_reference),
            "transaction_amount": amount,
        }

    def create_preference(
        self,
        order_id: str,
        order_number: str,
        items: list[dict],
        total: int,
        payer: dict | None = None,
    ) -> PreferenceResult:
        self.calls.append(
            {
                "method": "create_preference",
                "order_id": order_id,
                "order_number": order_number,
                "items": items,
                "total": total,
                "payer": payer,
            }
        )

        if not self.should_succeed:
            return PreferenceResult(success=False, failure_reason=self.failure_reason)

        preference_id = f"fake_pref_{uuid4().hex[:12]}"
        return PreferenceResult(
            success=True,
            preference_id=preference_id,
            init_point=f"https://checkout.example.test/pay/{preference_id}",
        )

    def get_payment(self, external_id: str) -> PaymentLookup:
        self.calls.append({"method": "get_payment", "external_id": external_id})

        if not self.should_succeed:
            return PaymentLookup(success=False, failure_reason=self.failure_reason)

        payment = self.payments.get(str(external_id))
        if payment is None:
            return PaymentLookup(success=False, failure_reason=f"Payment {external_id} not found")

        return PaymentLookup(
            success=True,
            external_id=payment["id"],
            status=payment["status"],
            external_reference=payment["external_reference"],
            amount=payment["transaction_amount"],
            raw=dict(payment),
        )
