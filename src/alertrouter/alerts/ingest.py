"""
Alert ingestion boundary.

Validates raw alert payloads before they reach the route tree. Malformed
alerts are rejected and counted; they never raise out of ``ingest_batch``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Sequence

from alertrouter.alerts.models import Alert, format_timestamp
from alertrouter.core.clock import Clock, SystemClock
from alertrouter.core.errors import AlertValidationError
from alertrouter.logging import bind_context
from alertrouter.routing.matchers import LABEL_NAME_RE


@dataclass
class IngestResult:
    """Outcome of ingesting a batch of raw alerts."""

    accepted: list[Alert] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": len(self.accepted),
            "rejected": self.rejected,
            "errors": self.errors,
        }


class AlertIngestor:
    """
    Turn raw alert dicts into validated ``Alert`` snapshots.

    Firing alerts that arrive without ``endsAt`` are given one of
    ``received + resolve_timeout`` so they resolve on their own if the
    sender stops re-sending them.
    """

    def __init__(
        self,
        required_labels: Sequence[str] = ("alertname",),
        resolve_timeout: timedelta = timedelta(minutes=5),
        clock: Clock | None = None,
    ) -> None:
        self.required_labels = tuple(required_labels)
        self.resolve_timeout = resolve_timeout
        self.clock = clock or SystemClock()
        self.rejected_total = 0
        self.accepted_total = 0

    def validate(self, data: Mapping[str, Any]) -> None:
        """Raise ``AlertValidationError`` if the payload is malformed."""
        labels = data.get("labels")
        if not isinstance(labels, Mapping) or not labels:
            raise AlertValidationError("alert has no labels")

        for name, value in labels.items():
            if not isinstance(name, str) or not LABEL_NAME_RE.match(name):
                raise AlertValidationError("invalid label name", {"label": name})
            if value is None or str(value) == "":
                raise AlertValidationError("empty label value", {"label": name})

        for name in self.required_labels:
            if name not in labels:
                raise AlertValidationError("missing required label", {"label": name})

        annotations = data.get("annotations")
        if annotations is not None and not isinstance(annotations, Mapping):
            raise AlertValidationError("annotations must be a mapping")

    def ingest(self, data: Mapping[str, Any], now: datetime | None = None) -> Alert:
        """Validate and parse a single raw alert."""
        self.validate(data)
        now = now or self.clock.now()
        try:
            alert = Alert.from_dict(data, now=now)
        except (TypeError, ValueError) as exc:
            raise AlertValidationError("unparseable alert", {"error": str(exc)}) from exc

        if alert.ends_at is not None and alert.ends_at < alert.starts_at:
            raise AlertValidationError(
                "endsAt before startsAt", {"alertname": alert.name}
            )

        if alert.is_firing and alert.ends_at is None:
            alert = replace(alert, ends_at=now + self.resolve_timeout)
        return alert

    def ingest_batch(self, payload: Iterable[Mapping[str, Any]]) -> IngestResult:
        """Ingest many alerts, counting instead of raising on bad ones."""
        result = IngestResult()
        now = self.clock.now()
        log = bind_context(received_at=format_timestamp(now))
        for index, data in enumerate(payload):
            try:
                if not isinstance(data, Mapping):
                    raise AlertValidationError("alert must be an object")
                alert = self.ingest(data, now=now)
            except AlertValidationError as exc:
                self.rejected_total += 1
                result.errors.append(f"alert {index}: {exc.message}")
                log.warning("alert_rejected", index=index, reason=exc.message, **exc.details)
                continue
            self.accepted_total += 1
            result.accepted.append(alert)
        return result
