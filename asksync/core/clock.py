"""
Clock
=====

Epoch-millisecond time helpers. Services take a ``clock`` callable so tests
can pin "now".
"""

from datetime import datetime, timezone


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
