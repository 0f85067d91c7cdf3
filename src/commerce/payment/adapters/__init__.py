"""Gateway adapter registry.

Maps a ``Gateway.adapter`` key to the adapter instance that talks to it.
Tests swap entries with register_adapter() and restore defaults with
reset_adapters().
"""

from commerce.payment.adapters.card import CardAdapter
from commerce.payment.adapters.fake import FakeAdapter
from commerce.payment.adapters.mercadopago import MercadoPagoAdapter
from commerce.payment.adapters.port import GatewayAdapter
from commerce.payment.adapters.transfer import TransferAdapter

_adapters: dict[str, GatewayAdapter] = {}


def _defaults() -> dict[str, GatewayAdapter]:
    return {
        "fake": FakeAdapter(),
        "mercadopago": MercadoPagoAdapter(),
        "card": CardAdapter(),
        "transfer": TransferAdapter(),
    }


def get_adapter(kind: str) -> GatewayAdapter:
    """Return the adapter registered for ``kind``."""
    if not _adapters:
        _adapters.update(_defaults())
    try:
        return _adapters[kind]
    except KeyError:
        raise ValueError(f"Unsupported gateway adapter: {kind}") from None


def register_adapter(kind: str, adapter: GatewayAdapter) -> None:
    if not _adapters:
        _adapters.update(_defaults())
    _adapters[kind] = adapter


def reset_adapters() -> None:
    _adapters.clear()
