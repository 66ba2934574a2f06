from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from alertrouter.alerts.models import Alert, AlertStatus, format_timestamp


@dataclass(frozen=True, slots=True)
class NotificationJob:
    """One batch of alerts handed to the notification transport."""

    receiver: str
    alerts: tuple[Alert, ...]
    group_key: str
    emitted_at: datetime
    group_labels: tuple[tuple[str, str], ...] = ()

    @property
    def status(self) -> AlertStatus:
        if any(alert.is_firing for alert in self.alerts):
            return AlertStatus.FIRING
        return AlertStatus.RESOLVED

    @property
    def firing(self) -> list[Alert]:
        return [a for a in self.alerts if a.is_firing]

    @property
    def resolved(self) -> list[Alert]:
        return [a for a in self.alerts if a.is_resolved]

    def _common(self, attr: str) -> dict[str, str]:
        if not self.alerts:
            return {}
        maps = [getattr(alert, attr) for alert in self.alerts]
        first = maps[0]
        return {k: v for k, v in first.items() if all(m.get(k) == v for m in maps[1:])}

    def to_webhook_payload(self) -> dict[str, Any]:
        """Render the Alertmanager webhook (version 4) body."""
        return {
            "version": "4",
            "groupKey": self.group_key,
            "status": self.status.value,
            "receiver": self.receiver,
            "groupLabels": dict(self.group_labels),
            "commonLabels": self._common("labels"),
            "commonAnnotations": self._common("annotations"),
            "truncatedAlerts": 0,
            "alerts": [
                {
                    "status": alert.status.value,
                    "labels": dict(alert.labels),
                    "annotations": dict(alert.annotations),
                    "startsAt": format_timestamp(alert.starts_at),
                    "endsAt": format_timestamp(alert.ends_at) if alert.is_resolved else "0001-01-01T00:00:00Z",
                    "generatorURL": alert.generator_url,
                    "fingerprint": alert.fingerprint,
                }
                for alert in self.alerts
            ],
            "emittedAt": format_timestamp(self.emitted_at),
        }
