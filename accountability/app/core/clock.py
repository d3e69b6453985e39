"""
Epoch-second clock used for all stored timestamps.
"""

import time
from datetime import datetime, timezone


def now_epoch() -> int:
    """Current time as whole epoch seconds."""
    return int(time.time())


def to_epoch(value: datetime) -> int:
    """Convert a datetime to epoch seconds. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())
