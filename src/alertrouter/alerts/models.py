"""
Alert Models

Immutable snapshots of alert state as seen by the router.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Mapping

_FRACTION_RE = re.compile(r"(\.\d+)")


class AlertStatus(StrEnum):
    """Alert status."""

    FIRING = "firing"
    RESOLVED = "resolved"


def label_fingerprint(labels: Mapping[str, str]) -> str:
    """Stable hash of a label set, independent of insertion order."""
    digest = hashlib.sha256()
    for name in sorted(labels):
        digest.update(name.encode())
        digest.update(b"\xff")
        digest.update(labels[name].encode())
        digest.update(b"\xff")
    return digest.hexdigest()[:16]


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # Go emits nanosecond precision; datetime stops at microseconds
        text = _FRACTION_RE.sub(lambda m: m.group(1)[:7], text)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Alert:
    """
    A single firing or resolved alert instance.

    Labels identify the alert (its fingerprint is derived from them);
    annotations carry free-form context such as ``summary`` and
    ``description``. Instances are never mutated: a state change is a new
    ``Alert`` produced with ``with_status`` or ``dataclasses.replace``.
    """

    labels: Mapping[str, str]
    annotations: Mapping[str, str] = field(default_factory=dict)
    status: AlertStatus = AlertStatus.FIRING
    starts_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ends_at: datetime | None = None
    generator_url: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))
        object.__setattr__(self, "annotations", MappingProxyType(dict(self.annotations)))

    @property
    def fingerprint(self) -> str:
        return label_fingerprint(self.labels)

    @property
    def name(self) -> str:
        return self.labels.get("alertname", "")

    @property
    def is_firing(self) -> bool:
        return self.status == AlertStatus.FIRING

    @property
    def is_resolved(self) -> bool:
        return self.status == AlertStatus.RESOLVED

    def has_expired(self, now: datetime) -> bool:
        """True when a firing alert's ``ends_at`` has passed."""
        return self.is_firing and self.ends_at is not None and self.ends_at <= now

    def with_status(self, status: AlertStatus, at: datetime | None = None) -> "Alert":
        if status == AlertStatus.RESOLVED:
            return replace(self, status=status, ends_at=at or self.ends_at)
        return replace(self, status=status)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], now: datetime | None = None) -> "Alert":
        """
        Parse an alert from the Alertmanager v2 API shape.

        Example input:
            {
                "labels": {"alertname": "LibertyServerDown", "instance": "app-1"},
                "annotations": {"summary": "Liberty server is down"},
                "startsAt": "2024-05-01T10:00:00Z",
                "endsAt": "2024-05-01T10:05:00Z",
                "generatorURL": "http://prometheus:9090/graph"
            }

        An ``endsAt`` at or before ``now`` yields a resolved alert unless an
        explicit ``status`` is given.
        """
        now = now or datetime.now(timezone.utc)
        starts_at = parse_timestamp(data.get("startsAt")) or now
        ends_at = parse_timestamp(data.get("endsAt"))

        raw_status = data.get("status")
        if isinstance(raw_status, Mapping):
            raw_status = raw_status.get("state")
        if raw_status:
            status = AlertStatus(str(raw_status))
        elif ends_at is not None and ends_at <= now:
            status = AlertStatus.RESOLVED
        else:
            status = AlertStatus.FIRING

        return cls(
            labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
            annotations={str(k): str(v) for k, v in (data.get("annotations") or {}).items()},
            status=status,
            starts_at=starts_at,
            ends_at=ends_at,
            generator_url=data.get("generatorURL", "") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "labels": dict(self.labels),
            "annotations": dict(self.annotations),
            "status": self.status.value,
            "startsAt": format_timestamp(self.starts_at),
            "fingerprint": self.fingerprint,
        }
        if self.ends_at is not None:
            data["endsAt"] = format_timestamp(self.ends_at)
        if self.generator_url:
            data["generatorURL"] = self.generator_url
        return data

    def __repr__(self) -> str:
        return f"Alert(name='{self.name}', status='{self.status.value}', fingerprint='{self.fingerprint}')"
