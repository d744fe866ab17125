"""Clock helpers shared by the pollers.

Chain data is expressed in unix seconds, logs in naive UTC datetimes. Both
are read through these helpers so tests can patch a single place.
"""

import time
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a naive (tzinfo=None) datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def unix_now() -> int:
    """Current wall-clock time in whole unix seconds."""
    return int(time.time())


def format_countdown(seconds: int) -> str:
    """Render a remaining duration as ``"1d 2h 3m"``; days are omitted when zero."""
    seconds = max(0, int(seconds))
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    mins = (seconds % 3600) // 60
    prefix = f"{days}d " if days > 0 else ""
    return f"{prefix}{hours}h {mins}m"
