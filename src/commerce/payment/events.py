"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Payment")
class PaymentReceived:
    """The gateway confirmed the money for an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Integer(required=True)
    external_payment_id = String()
    received_at = DateTime(required=True)
