"""
Dispatcher orchestration.

Wires the inhibitor, silencer, route tree and grouper into a single
state-change entry point (``process``) and a timer-driven flush loop
(``flush_due`` / ``run``).

For every alert state change:

1. Store the alert in the registry.
2. Recompute muting (inhibition, silences) for every tracked alert. Muted
   alerts leave their groups but stay tracked so they return once unmuted.
3. Resolve routes for each unmuted alert and move it between groups:
   old memberships are revoked and new ones assigned under one exclusive
   registry lock.
4. When a group's deadline passes, decide whether to emit a Notification
   Job, skip an unchanged payload, or retire the group.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from alertrouter.alerts.models import Alert, AlertStatus
from alertrouter.config.models import RoutingConfig
from alertrouter.core.clock import Clock, SystemClock
from alertrouter.core.errors import NotificationError
from alertrouter.dispatch.grouper import AlertGroup, FlushDecision, GroupKey, Grouper
from alertrouter.dispatch.registry import AlertRegistry
from alertrouter.logging import bind_context
from alertrouter.notify.models import NotificationJob
from alertrouter.notify.transport import LoggingTransport, NotificationTransport
from alertrouter.routing.inhibit import Inhibitor
from alertrouter.routing.silences import Silence, Silencer
from alertrouter.routing.tree import RouteMatch, RouteTree

logger = structlog.get_logger()


@dataclass
class AlertView:
    """Read-only status of one tracked alert."""

    alert: Alert
    inhibited_by: list[str] = field(default_factory=list)
    silenced_by: list[str] = field(default_factory=list)
    groups: list[GroupKey] = field(default_factory=list)
    receivers: list[str] = field(default_factory=list)

    @property
    def state(self) -> str:
        if self.inhibited_by or self.silenced_by:
            return "suppressed"
        return "active"

    def to_dict(self) -> dict[str, Any]:
        data = self.alert.to_dict()
        data["status"] = {
            "state": self.state,
            "inhibitedBy": self.inhibited_by,
            "silencedBy": self.silenced_by,
        }
        data["receivers"] = [{"name": name} for name in self.receivers]
        data["groups"] = [str(key) for key in self.groups]
        return data


@dataclass
class DispatchStats:
    processed: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    flushes_suppressed: int = 0
    alerts_expired: int = 0


class Dispatcher:
    """
    Routes alert state changes into groups and emits Notification Jobs.

    Usage:
        dispatcher = Dispatcher(config, transport=InMemoryTransport())
        dispatcher.start()
        dispatcher.process(alert)
        jobs = dispatcher.flush_due()
        dispatcher.drain()
    """

    def __init__(
        self,
        config: RoutingConfig,
        transport: NotificationTransport | None = None,
        clock: Clock | None = None,
        silencer: Silencer | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        self.clock = clock or SystemClock()
        self.transport = transport or LoggingTransport()
        self.silencer = silencer or Silencer()
        self.tick_interval = tick_interval
        self.registry = AlertRegistry()
        self.grouper = Grouper(self.registry)
        self.stats = DispatchStats()
        self.config = config
        self.route_tree: RouteTree = config.route
        self.inhibitor = Inhibitor(config.inhibit_rules)
        self._next_silence_check: datetime | None = None
        self._stopping: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.registry.open()
        logger.info("dispatcher_started", receivers=sorted(self.config.receivers))

    def drain(self) -> list[NotificationJob]:
        """Flush every group with unsent changes, then clear the registry."""
        with self.registry.lock.exclusive():
            groups = list(self.registry.groups.values())
            jobs = self._flush_groups(groups, self.clock.monotonic(), force=True)
        self._deliver(jobs)
        with self.registry.lock.exclusive():
            self.registry.close()
        logger.info("dispatcher_drained", flushed=len(jobs))
        return jobs

    async def run(self) -> None:
        """Timer loop: sleep until the next deadline, bounded by ``tick_interval``."""
        self._stopping = asyncio.Event()
        logger.info("dispatch_loop_started", tick_interval=self.tick_interval)
        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.tick)
            except Exception as exc:
                logger.exception("dispatch_tick_failed", error=str(exc))
            delay = self.tick_interval
            next_deadline = self.next_deadline()
            if next_deadline is not None:
                delay = min(delay, max(0.0, next_deadline - self.clock.monotonic()))
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        logger.info("dispatch_loop_stopped")

    def stop(self) -> None:
        if self._stopping is not None:
            self._stopping.set()

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def process(self, alert: Alert) -> None:
        """Handle one alert state change (new, re-firing, updated or resolved)."""
        self.process_many([alert])

    def process_many(self, alerts: list[Alert]) -> None:
        now = self.clock.monotonic()
        with self.registry.lock.exclusive():
            resolved: list[Alert] = []
            for alert in alerts:
                self.stats.processed += 1
                fingerprint = alert.fingerprint
                if alert.is_resolved:
                    if self.registry.alerts.pop(fingerprint, None) is None and not self.registry.memberships.get(
                        fingerprint
                    ):
                        logger.debug("resolved_alert_untracked", alert=fingerprint)
                        continue
                    resolved.append(alert)
                else:
                    self.registry.alerts[fingerprint] = alert

            for alert in resolved:
                # A resolution is reported to the groups that announced the alert.
                for key in self.registry.groups_for(alert.fingerprint):
                    group = self.registry.groups.get(key)
                    if group is None:
                        continue
                    with group.lock:
                        if group.add(alert, now):
                            self.registry.schedule(group)
            self._reconcile(now)

    def expire(self) -> int:
        """Resolve firing alerts whose ``ends_at`` has passed."""
        wall = self.clock.now()
        with self.registry.lock.shared():
            expired = [a for a in self.registry.alerts.values() if a.has_expired(wall)]
        if expired:
            self.stats.alerts_expired += len(expired)
            logger.info("alerts_expired", count=len(expired))
            self.process_many([a.with_status(AlertStatus.RESOLVED) for a in expired])
        return len(expired)

    def apply_config(self, config: RoutingConfig) -> None:
        """Swap in a new routing configuration and re-route every tracked alert."""
        now = self.clock.monotonic()
        with self.registry.lock.exclusive():
            self.config = config
            self.route_tree = config.route
            self.inhibitor = Inhibitor(config.inhibit_rules)
            for group in list(self.registry.groups.values()):
                node = self.route_tree.find(group.key.route_id)
                if node is not None and node.receiver == group.key.receiver:
                    with group.lock:
                        group.grouping = node.grouping
            self._reconcile(now)
        logger.info("dispatcher_config_applied", groups=len(self.registry.groups))

    def add_silence(self, silence: Silence) -> str:
        silence_id = self.silencer.add(silence)
        self._resilence()
        return silence_id

    def expire_silence(self, silence_id: str) -> bool:
        expired = self.silencer.expire(silence_id, self.clock.now())
        if expired:
            self._resilence()
        return expired

    def _resilence(self) -> None:
        now = self.clock.monotonic()
        with self.registry.lock.exclusive():
            self._reconcile(now)

    def _muted(self, alert: Alert, tracked: list[Alert], wall: datetime) -> bool:
        return self.inhibitor.is_inhibited(alert, tracked) or self.silencer.is_silenced(alert, wall)

    def _reconcile(self, now: float) -> None:
        """Bring group memberships in line with routing and muting. Caller holds the exclusive lock."""
        wall = self.clock.now()
        tracked = list(self.registry.alerts.values())
        for alert in tracked:
            fingerprint = alert.fingerprint
            desired: dict[GroupKey, RouteMatch] = {}
            if not self._muted(alert, tracked, wall):
                for match in self.route_tree.resolve(alert):
                    desired[GroupKey.for_alert(match, alert)] = match

            current = set(self.registry.memberships.get(fingerprint, ()))
            for key in sorted(current - set(desired)):
                self.grouper.revoke(key, fingerprint, now)
            for key, match in desired.items():
                group = self.registry.groups.get(key)
                if key in current and group is not None and group.alerts.get(fingerprint) is alert:
                    continue
                self.grouper.assign(match, alert, now)
        self._next_silence_check = self.silencer.next_transition(wall)

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def tick(self) -> list[NotificationJob]:
        """One loop iteration: expire stale alerts, re-check silences, flush due groups."""
        self.expire()
        if self._next_silence_check is not None and self.clock.now() >= self._next_silence_check:
            self._resilence()
        return self.flush_due()

    def flush_due(self) -> list[NotificationJob]:
        """Emit jobs for every group whose deadline has passed."""
        now = self.clock.monotonic()
        with self.registry.lock.exclusive():
            jobs = self._flush_groups(self.registry.pop_due(now), now)
        self._deliver(jobs)
        return jobs

    def flush(self) -> list[NotificationJob]:
        """Evaluate every group now, ignoring deadlines; unchanged groups stay quiet."""
        now = self.clock.monotonic()
        with self.registry.lock.exclusive():
            groups = list(self.registry.groups.values())
            jobs = self._flush_groups(groups, now, force=True)
        self._deliver(jobs)
        return jobs

    def _flush_groups(self, groups: list[AlertGroup], now: float, force: bool = False) -> list[NotificationJob]:
        jobs: list[NotificationJob] = []
        retired: list[AlertGroup] = []
        emitted_at = self.clock.now()
        for group in groups:
            with group.lock:
                if not force and not group.is_due(now):
                    continue
                decision = group.decide(now)
                if decision == FlushDecision.SEND:
                    jobs.append(
                        NotificationJob(
                            receiver=group.key.receiver,
                            alerts=tuple(group.sorted_alerts()),
                            group_key=str(group.key),
                            emitted_at=emitted_at,
                            group_labels=group.key.labels,
                        )
                    )
                    acknowledged = group.mark_sent(now)
                    for fingerprint in acknowledged:
                        self._forget_membership(fingerprint, group.key)
                    if group.is_empty:
                        retired.append(group)
                    else:
                        self.registry.schedule(group)
                elif decision == FlushDecision.SKIP:
                    self.stats.flushes_suppressed += 1
                    group.mark_skipped()
                    self.registry.schedule(group)
                else:
                    retired.append(group)
        for group in retired:
            self.grouper.retire(group)
        return jobs

    def _forget_membership(self, fingerprint: str, key: GroupKey) -> None:
        members = self.registry.memberships.get(fingerprint)
        if members is None:
            return
        members.discard(key)
        if not members:
            del self.registry.memberships[fingerprint]

    def _deliver(self, jobs: list[NotificationJob]) -> None:
        for job in jobs:
            log = bind_context(receiver=job.receiver, group_key=job.group_key)
            try:
                self.transport.send(job)
            except NotificationError as exc:
                self.stats.notifications_failed += 1
                log.error("notification_failed", message=exc.message)
                continue
            self.stats.notifications_sent += 1
            log.info("notification_sent", status=job.status.value, alerts=len(job.alerts))

    # ------------------------------------------------------------------
    # Query interface
    # ------------------------------------------------------------------

    def next_deadline(self) -> float | None:
        with self.registry.lock.exclusive():
            return self.registry.next_deadline()

    def alert_statuses(self) -> list[AlertView]:
        wall = self.clock.now()
        with self.registry.lock.shared():
            tracked = list(self.registry.alerts.values())
            views = []
            for alert in sorted(tracked, key=lambda a: (a.starts_at, a.fingerprint)):
                keys = self.registry.groups_for(alert.fingerprint)
                views.append(
                    AlertView(
                        alert=alert,
                        inhibited_by=self.inhibitor.inhibited_by(alert, tracked),
                        silenced_by=self.silencer.silenced_by(alert, wall),
                        groups=keys,
                        receivers=sorted({key.receiver for key in keys}),
                    )
                )
        return views

    def groups(self) -> list[dict[str, Any]]:
        with self.registry.lock.shared():
            groups = sorted(self.registry.groups.values(), key=lambda g: g.key)
            return [group.to_dict() for group in groups]

    def snapshot(self) -> dict[str, Any]:
        with self.registry.lock.shared():
            return {
                "alerts": len(self.registry.alerts),
                "groups": len(self.registry.groups),
                "processed": self.stats.processed,
                "notifications_sent": self.stats.notifications_sent,
                "notifications_failed": self.stats.notifications_failed,
                "flushes_suppressed": self.stats.flushes_suppressed,
                "alerts_expired": self.stats.alerts_expired,
            }
