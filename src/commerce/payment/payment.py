"""Payment aggregates.

``Payment`` is the single-gateway record kept 1:1 with an order.
``GatewayPayment`` belongs to the pluggable multi-gateway path; an order may
have any number of them, and reconciling one keeps the order's ``Payment`` in
step.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce


class PaymentStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class GatewayPaymentStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


# Gateway vocabulary → order payment status
GATEWAY_TO_PAYMENT_STATUS = {
    GatewayPaymentStatus.SUCCESS: PaymentStatus.APPROVED,
    GatewayPaymentStatus.FAILED: PaymentStatus.REJECTED,
    GatewayPaymentStatus.CANCELLED: PaymentStatus.REJECTED,
}


def map_provider_status(provider_status: str | None) -> PaymentStatus:
    """Map a checkout provider's payment status to the three-valued internal one."""
    status = (provider_status or "").lower()
    if status == "approved":
        return PaymentStatus.APPROVED
    if status in ("rejected", "cancelled"):
        return PaymentStatus.REJECTED
    return PaymentStatus.PENDING


@commerce.aggregate
class Payment:
    order_id = Identifier(required=True, unique=True)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount = Integer(default=0, min_value=0)
    preference_id = String(max_length=255)
    external_payment_id = String(max_length=255)
    raw = Text()  # JSON of the last gateway payload
    created_at = DateTime(default=lambda: datetime.now(UTC))
    updated_at = DateTime(default=lambda: datetime.now(UTC))

    @property
    def is_approved(self) -> bool:
        return self.status == PaymentStatus.APPROVED.value

    def record_gateway_status(self, status: PaymentStatus, external_payment_id: str | None, raw: dict | None) -> None:
        self.status = status.value
        if external_payment_id:
            self.external_payment_id = str(external_payment_id)
        self.raw = json.dumps(raw or {}, default=str)
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict:
        return {
            "payment_id": str(self.id),
            "order_id": str(self.order_id),
            "status": self.status,
            "amount": self.amount,
            "preference_id": self.preference_id,
            "external_payment_id": self.external_payment_id,
        }


@commerce.aggregate
class GatewayPayment:
    order_id = Identifier(required=True)
    gateway_id = Identifier(required=True)
    external_id = String(max_length=255)
    external_reference = String(max_length=255)
    amount = Integer(default=0, min_value=0)
    currency = String(max_length=3, default="ARS")
    status = String(choices=GatewayPaymentStatus, default=GatewayPaymentStatus.PENDING.value)
    checkout_url = String(max_length=1000)
    details = Text()  # JSON metadata
    created_at = DateTime(default=lambda: datetime.now(UTC))
    updated_at = DateTime(default=lambda: datetime.now(UTC))

    @property
    def details_data(self) -> dict:
        return json.loads(self.details) if self.details else {}

    def record_query(self, status: GatewayPaymentStatus, extra: dict | None = None) -> None:
        merged = {**self.details_data, **(extra or {}), "last_webhook_at": datetime.now(UTC).isoformat()}
        self.status = status.value
        self.details = json.dumps(merged, default=str)
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict:
        return {
            "gateway_payment_id": str(self.id),
            "order_id": str(self.order_id),
            "gateway_id": str(self.gateway_id),
            "external_id": self.external_id,
            "external_reference": self.external_reference,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "checkout_url": self.checkout_url,
            "metadata": self.details_data,
        }


def payment_for_order(order_id) -> Payment | None:
    return current_domain.repository_for(Payment)._dao.query.filter(order_id=str(order_id)).all().first
