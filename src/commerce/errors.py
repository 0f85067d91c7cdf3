"""Domain errors that callers must be able to tell apart.

Business-rule violations use protean's ``ValidationError`` and missing records
use ``ObjectNotFoundError``. The errors below carry extra structure the HTTP
layer and retrying callers rely on.
"""


class ConcurrencyConflict(Exception):
    """An order was written with a version that is no longer current."""

    def __init__(self, order_id: str, expected_version: int) -> None:
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order {order_id} was modified concurrently (expected version {expected_version}); re-read and retry"
        )


class InsufficientStock(Exception):
    """One or more order lines cannot be served from current stock."""

    def __init__(self, shortfalls: list[dict]) -> None:
        self.shortfalls = shortfalls
        super().__init__(f"Insufficient stock for {len(shortfalls)} item(s)")


class GatewayError(Exception):
    """The payment gateway could not create or report a payment."""
