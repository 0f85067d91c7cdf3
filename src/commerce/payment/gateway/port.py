"""Checkout gateway port (abstract interface).

The contract the single-gateway checkout path needs from a payment provider:
create a hosted checkout preference and report a payment's canonical status.
Adapters never raise for business outcomes; they return a result object with
``success=False`` instead.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PreferenceResult:
    """Result of creating a hosted checkout preference."""

    success: bool
    preference_id: str | None = None
    init_point: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class PaymentLookup:
    """Canonical state of a payment as reported by the gateway."""

    success: bool
    external_id: str | None = None
    status: str | None = None  # approved, pending, in_process, rejected, cancelled
    external_reference: str | None = None
    amount: int | None = None
    raw: dict = field(default_factory=dict)
    failure_reason: str | None = None


class CheckoutGateway(ABC):
    """Abstract checkout gateway interface."""

    @abstractmethod
    def create_preference(
        self,
        order_id: str,
        order_number: str,
        items: list[dict],
        total: int,
        payer: dict | None = None,
    ) -> PreferenceResult:
        """Create a checkout preference whose external reference is ``order_id``."""
        ...

    @abstractmethod
    def get_payment(self, external_id: str) -> PaymentLookup:
        """Fetch the canonical status of a payment by its gateway id."""
        ...
