"""Broadcaster registry.

Provides singleton access to the broadcaster the core notifies after commit.
Uses the in-memory fake by default; a WebSocket-backed implementation can be
installed with set_broadcaster() at application start-up.
"""

from commerce.notifications.broadcast.port import BroadcastPort

_broadcaster: BroadcastPort | None = None


def get_broadcaster() -> BroadcastPort:
    """Return the configured broadcaster (singleton)."""
    global _broadcaster
    if _broadcaster is None:
        from commerce.notifications.broadcast.fake_broadcaster import FakeBroadcaster

        _broadcaster = FakeBroadcaster()
    return _broadcaster


def set_broadcaster(broadcaster: BroadcastPort) -> None:
    global _broadcaster
    _broadcaster = broadcaster


def reset_broadcaster():
    """Reset the broadcaster singleton (useful for testing)."""
    global _broadcaster
    _broadcaster = None
