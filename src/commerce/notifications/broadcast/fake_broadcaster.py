"""In-memory broadcaster — records every message for test assertions."""

from commerce.notifications.broadcast.port import BroadcastPort


class FakeBroadcaster(BroadcastPort):
    """Broadcaster that keeps messages in memory instead of pushing them."""

    def __init__(self):
        self.messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Broadcast failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Broadcast failed"):
        """Configure the fake broadcaster behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _emit(self, event: str, payload: dict) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.messages.append({"event": event, "payload": payload})

    def events(self, name: str | None = None) -> list[dict]:
        return [m for m in self.messages if name is None or m["event"] == name]

    def order_created(self, order: dict) -> None:
        self._emit("order_created", order)

    def order_updated(self, order: dict) -> None:
        self._emit("order_updated", order)

    def order_status_changed(self, order_id: str, previous_status: str, new_status: str) -> None:
        self._emit(
            "order_status_changed",
            {"order_id": order_id, "previous_status": previous_status, "new_status": new_status},
        )

    def sale_completed(self, order: dict) -> None:
        self._emit("sale_completed", order)

    def product_sold(self, product_id: str, quantity: int, amount: int) -> None:
        self._emit("product_sold", {"product_id": product_id, "quantity": quantity, "amount": amount})

    def payment_received(self, payment: dict) -> None:
        self._emit("payment_received", payment)

    def reset(self):
        """Clear recorded messages (useful between tests)."""
        self.messages.clear()
