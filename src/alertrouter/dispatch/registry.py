"""
The registry of tracked alerts and active groups.

One ``AlertRegistry`` is owned by the dispatcher for the lifetime of the
process: opened at startup, closed (drained) at shutdown. Inserts and
deletes take the exclusive side of ``lock``; lookups and iteration the
shared side.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field

import structlog

from alertrouter.alerts.models import Alert
from alertrouter.dispatch.grouper import AlertGroup, GroupKey
from alertrouter.dispatch.locks import ReadWriteLock

logger = structlog.get_logger()


@dataclass(order=True)
class TimerEntry:
    deadline: float
    seq: int
    key: GroupKey = field(compare=False)
    generation: int = field(compare=False)


class AlertRegistry:
    def __init__(self) -> None:
        self.lock = ReadWriteLock()
        self.alerts: dict[str, Alert] = {}
        self.groups: dict[GroupKey, AlertGroup] = {}
        self.memberships: dict[str, set[GroupKey]] = {}
        self._timers: list[TimerEntry] = []
        self._seq = itertools.count()
        self._generations = itertools.count(1)
        self.is_open = False

    def open(self) -> None:
        self.is_open = True
        logger.debug("registry_opened")

    def close(self) -> None:
        logger.info(
            "registry_closed",
            alerts=len(self.alerts),
            groups=len(self.groups),
        )
        self.alerts.clear()
        self.groups.clear()
        self.memberships.clear()
        self._timers.clear()
        self.is_open = False

    def next_generation(self) -> int:
        return next(self._generations)

    def schedule(self, group: AlertGroup) -> None:
        """Push a timer for the group's current deadline. Caller holds the group lock."""
        if group.next_flush_at is None:
            return
        heapq.heappush(
            self._timers,
            TimerEntry(group.next_flush_at, next(self._seq), group.key, group.generation),
        )

    def pop_due(self, now: float) -> list[AlertGroup]:
        """
        Pop timers whose deadline has passed and return their live groups.

        Entries for retired groups (generation moved on) or rescheduled
        deadlines are stale and dropped. A deadline missed by any margin is
        simply due now.
        """
        due: list[AlertGroup] = []
        seen: set[GroupKey] = set()
        while self._timers and self._timers[0].deadline <= now:
            entry = heapq.heappop(self._timers)
            group = self.groups.get(entry.key)
            if group is None or group.generation != entry.generation:
                continue
            if group.next_flush_at != entry.deadline or entry.key in seen:
                continue
            seen.add(entry.key)
            due.append(group)
        return due

    def next_deadline(self) -> float | None:
        while self._timers:
            entry = self._timers[0]
            group = self.groups.get(entry.key)
            if group is not None and group.generation == entry.generation and group.next_flush_at == entry.deadline:
                return entry.deadline
            heapq.heappop(self._timers)
        return None

    def groups_for(self, fingerprint: str) -> list[GroupKey]:
        return sorted(self.memberships.get(fingerprint, ()))
