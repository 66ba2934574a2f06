"""
Time sources for the dispatcher.

Flush deadlines are measured on a monotonic clock so wall-clock jumps never
reorder or drop them. Alert timestamps (``starts_at`` / ``ends_at``) are
wall-clock UTC datetimes.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def monotonic(self) -> float: ...

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by ``time.monotonic`` and the system UTC time."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
