"""
Alert grouping.

Alerts routed to the same receiver by the same route and sharing their
``group_by`` label values are batched into one ``AlertGroup`` and notified
together.

Group lifecycle:

    IDLE ──first alert──▶ WAITING ──group_wait──▶ SENT ──change──▶ SENT ...
                                                   │
                                     members gone ─┴─▶ RETIRED

- A new group flushes ``group_wait`` after its first alert arrived.
- A change to a notified group flushes no sooner than ``group_interval``
  after the previous flush.
- An unchanged group with firing alerts re-notifies every
  ``repeat_interval``.
- Resolved alerts are reported once and then dropped from the group.

Deadlines are monotonic-clock seconds.
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Iterable

import structlog

from alertrouter.alerts.models import Alert
from alertrouter.routing.tree import GroupingConfig, RouteMatch

if TYPE_CHECKING:
    from alertrouter.dispatch.registry import AlertRegistry

logger = structlog.get_logger()


class GroupState(StrEnum):
    IDLE = "idle"
    WAITING = "waiting"
    SENT = "sent"
    RETIRED = "retired"


class FlushDecision(StrEnum):
    SEND = "send"
    SKIP = "skip"
    RETIRE = "retire"


@dataclass(frozen=True, order=True)
class GroupKey:
    route_id: str
    receiver: str
    labels: tuple[tuple[str, str], ...] = ()

    @classmethod
    def for_alert(cls, match: RouteMatch, alert: Alert) -> "GroupKey":
        return cls(match.route_id, match.receiver, match.grouping.group_labels(alert.labels))

    def __str__(self) -> str:
        rendered = ",".join(f'{name}="{value}"' for name, value in self.labels)
        return f"{self.route_id}:{self.receiver}:{{{rendered}}}"


def payload_fingerprint(alerts: Iterable[Alert]) -> str:
    """Identity of a notification payload: member fingerprints and their status."""
    digest = hashlib.sha256()
    for fp, status in sorted((a.fingerprint, a.status.value) for a in alerts):
        digest.update(f"{fp}:{status};".encode())
    return digest.hexdigest()[:16]


@dataclass
class AlertGroup:
    """
    A batch of alerts notified together.

    All mutations go through the group's own lock; callers hold it for the
    whole read-decide-update sequence of a flush.
    """

    key: GroupKey
    grouping: GroupingConfig
    created_at: float
    generation: int = 0
    state: GroupState = GroupState.IDLE
    alerts: dict[str, Alert] = field(default_factory=dict)
    last_notified_at: float | None = None
    next_flush_at: float | None = None
    last_sent_fingerprint: str | None = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_empty(self) -> bool:
        return not self.alerts

    @property
    def has_firing(self) -> bool:
        return any(a.is_firing for a in self.alerts.values())

    @property
    def notified(self) -> bool:
        return self.last_notified_at is not None

    def sorted_alerts(self) -> list[Alert]:
        return sorted(self.alerts.values(), key=lambda a: (a.starts_at, a.fingerprint))

    def add(self, alert: Alert, now: float) -> bool:
        """Add or update a member. Returns True when the payload changed."""
        previous = self.alerts.get(alert.fingerprint)
        self.alerts[alert.fingerprint] = alert
        changed = previous is None or previous.status != alert.status

        if self.state == GroupState.IDLE:
            self.state = GroupState.WAITING
            self.next_flush_at = now + self.grouping.group_wait.total_seconds()
        elif changed:
            self._schedule_change(now)
        return changed

    def remove(self, fingerprint: str, now: float) -> bool:
        """Drop a member without reporting it resolved. Returns True if it was present."""
        if self.alerts.pop(fingerprint, None) is None:
            return False
        if self.alerts:
            self._schedule_change(now)
        return True

    def _schedule_change(self, now: float) -> None:
        if self.state != GroupState.SENT or self.last_notified_at is None:
            return
        earliest = max(now, self.last_notified_at + self.grouping.group_interval.total_seconds())
        if self.next_flush_at is None or earliest < self.next_flush_at:
            self.next_flush_at = earliest

    def is_due(self, now: float) -> bool:
        return self.next_flush_at is not None and self.next_flush_at <= now

    def decide(self, now: float) -> FlushDecision:
        """What a flush at ``now`` should do."""
        if not self.alerts:
            return FlushDecision.RETIRE
        if not self.notified and not self.has_firing:
            return FlushDecision.RETIRE
        if payload_fingerprint(self.alerts.values()) != self.last_sent_fingerprint:
            return FlushDecision.SEND
        if not self.has_firing:
            return FlushDecision.RETIRE
        if self.last_notified_at is None:
            return FlushDecision.SEND
        if now >= self.last_notified_at + self.grouping.repeat_interval.total_seconds():
            return FlushDecision.SEND
        return FlushDecision.SKIP

    def mark_sent(self, now: float) -> list[str]:
        """Record a flush; resolved members are acknowledged and dropped."""
        self.last_notified_at = now
        self.state = GroupState.SENT
        acknowledged = [fp for fp, a in self.alerts.items() if a.is_resolved]
        for fingerprint in acknowledged:
            del self.alerts[fingerprint]
        self.last_sent_fingerprint = payload_fingerprint(self.alerts.values())
        if self.alerts:
            self.next_flush_at = now + self.grouping.repeat_interval.total_seconds()
        else:
            self.next_flush_at = None
        return acknowledged

    def mark_skipped(self) -> None:
        if self.last_notified_at is None:
            self.next_flush_at = None
            return
        self.next_flush_at = self.last_notified_at + self.grouping.repeat_interval.total_seconds()

    def retire(self, generation: int) -> None:
        self.state = GroupState.RETIRED
        self.next_flush_at = None
        self.generation = generation

    def to_dict(self) -> dict[str, object]:
        return {
            "key": str(self.key),
            "receiver": self.key.receiver,
            "route": self.key.route_id,
            "labels": dict(self.key.labels),
            "state": self.state.value,
            "alerts": [a.fingerprint for a in self.sorted_alerts()],
            "notified": self.notified,
        }


class Grouper:
    """
    Assigns alerts to groups inside a registry.

    The caller holds the registry's exclusive lock; the grouper takes each
    group's own lock for the mutation itself.
    """

    def __init__(self, registry: AlertRegistry) -> None:
        self.registry = registry

    def assign(self, match: RouteMatch, alert: Alert, now: float) -> AlertGroup:
        key = GroupKey.for_alert(match, alert)
        group = self.registry.groups.get(key)
        created = group is None
        if group is None:
            group = AlertGroup(
                key=key,
                grouping=match.grouping,
                created_at=now,
                generation=self.registry.next_generation(),
            )
            self.registry.groups[key] = group
            logger.debug("group_created", group=str(key))

        with group.lock:
            changed = group.add(alert, now)
            if created or changed:
                self.registry.schedule(group)
        self.registry.memberships.setdefault(alert.fingerprint, set()).add(key)
        if changed:
            logger.debug("group_member_changed", group=str(key), alert=alert.fingerprint)
        return group

    def revoke(self, key: GroupKey, fingerprint: str, now: float) -> None:
        members = self.registry.memberships.get(fingerprint)
        if members is not None:
            members.discard(key)
            if not members:
                del self.registry.memberships[fingerprint]

        group = self.registry.groups.get(key)
        if group is None:
            return
        with group.lock:
            group.remove(fingerprint, now)
            emptied = group.is_empty
            if not emptied:
                self.registry.schedule(group)
        if emptied:
            self.retire(group)

    def retire(self, group: AlertGroup) -> None:
        with group.lock:
            group.retire(self.registry.next_generation())
        if self.registry.groups.get(group.key) is group:
            del self.registry.groups[group.key]
        for fingerprint in list(self.registry.memberships):
            members = self.registry.memberships[fingerprint]
            members.discard(group.key)
            if not members:
                del self.registry.memberships[fingerprint]
        logger.debug("group_retired", group=str(group.key))

