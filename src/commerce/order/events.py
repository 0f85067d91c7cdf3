"""Domain events for the Order aggregate.

Events are raised inside the unit of work and dispatched to event handlers
only after it commits, so a handler never observes a change that could still
be rolled back.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderCreated:
    """A customer checked out and the order is awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    fulfillment_type = String(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Integer(required=True)
    discount_total = Integer()
    total = Integer(required=True)
    created_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderStatusChanged:
    """An order moved between lifecycle statuses."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    order_version = Integer(required=True)
    changed_by = String()
    items = Text(required=True)  # JSON: list of item dicts
    total = Integer(required=True)
    stock_restored = String()  # "true"/"false"
    changed_at = DateTime(required=True)
