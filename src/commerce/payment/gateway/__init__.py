"""Checkout gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- MercadoPagoGateway when MERCADOPAGO_ACCESS_TOKEN is set
- FakeGateway for development and testing otherwise
"""

import os

from commerce.payment.gateway.fake_adapter import FakeGateway
from commerce.payment.gateway.mercadopago_adapter import MercadoPagoGateway
from commerce.payment.gateway.port import CheckoutGateway

_current_gateway: CheckoutGateway | None = None


def gateway_from_env() -> CheckoutGateway:
    access_token = os.environ.get("MERCADOPAGO_ACCESS_TOKEN")
    if not access_token:
        return FakeGateway()
    return MercadoPagoGateway(
        access_token=access_token,
        notification_url=os.environ.get("MERCADOPAGO_NOTIFICATION_URL"),
        back_url=os.environ.get("APP_URL"),
    )


def get_gateway() -> CheckoutGateway:
    """Return the current checkout gateway, building it from the environment on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = gateway_from_env()
    return _current_gateway


def set_gateway(gateway: CheckoutGateway) -> None:
    """Override the active checkout gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
