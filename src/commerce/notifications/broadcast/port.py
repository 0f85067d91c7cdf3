"""Broadcast port — abstract interface for real-time order notifications.

The core calls these methods after a unit of work commits. Implementations
must treat every call as fire-and-forget.
"""

from abc import ABC, abstractmethod


class BroadcastPort(ABC):
    """Abstract interface for pushing order events to connected clients."""

    @abstractmethod
    def order_created(self, order: dict) -> None: ...

    @abstractmethod
    def order_updated(self, order: dict) -> None: ...

    @abstractmethod
    def order_status_changed(self, order_id: str, previous_status: str, new_status: str) -> None: ...

    @abstractmethod
    def sale_completed(self, order: dict) -> None: ...

    @abstractmethod
    def product_sold(self, product_id: str, quantity: int, amount: int) -> None: ...

    @abstractmethod
    def payment_received(self, payment: dict) -> None: ...
