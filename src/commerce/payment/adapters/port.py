"""Multi-gateway adapter port.

Each configured ``Gateway`` names an adapter. Adapters receive the gateway's
settings on every call, so one adapter instance serves many gateways.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CreatePaymentResult:
    success: bool
    checkout_url: str | None = None
    external_id: str | None = None
    external_reference: str | None = None
    error_message: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentQueryResult:
    success: bool
    status: str = "PENDING"  # PENDING, PROCESSING, SUCCESS, FAILED, CANCELLED, REFUNDED
    external_id: str | None = None
    amount: int | None = None
    error_message: str | None = None
    metadata: dict = field(default_factory=dict)


class GatewayAdapter(ABC):
    supports_webhooks: bool = True

    @abstractmethod
    def test_connection(self, config: dict) -> tuple[bool, str]:
        """Check that ``config`` carries what the adapter needs."""
        ...

    @abstractmethod
    def create_payment(self, config: dict, data: dict) -> CreatePaymentResult:
        """Start a payment for ``data`` (amount, currency, order_id, order_number, items)."""
        ...

    @abstractmethod
    def query_payment(self, config: dict, external_id: str) -> PaymentQueryResult:
        """Report the gateway-side status of a payment."""
        ...
