"""
Silences.

A silence mutes every alert matching its matchers between ``starts_at`` and
``ends_at``. Muted alerts stay tracked and come back as soon as the silence
expires or is expired by hand.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any, Mapping

import structlog

from alertrouter.alerts.models import Alert, format_timestamp, parse_timestamp
from alertrouter.core.errors import AlertValidationError
from alertrouter.routing.matchers import Matcher, MatchType, matches, parse_matcher

logger = structlog.get_logger()


class SilenceState(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Silence:
    matchers: tuple[Matcher, ...]
    starts_at: datetime
    ends_at: datetime
    created_by: str = ""
    comment: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def state(self, now: datetime) -> SilenceState:
        if now < self.starts_at:
            return SilenceState.PENDING
        if now >= self.ends_at:
            return SilenceState.EXPIRED
        return SilenceState.ACTIVE

    def mutes(self, alert: Alert, now: datetime) -> bool:
        return self.state(now) == SilenceState.ACTIVE and matches(alert.labels, self.matchers)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], now: datetime) -> "Silence":
        """
        Parse the v2 API shape::

            {
                "matchers": [{"name": "alertname", "value": "TestAlert", "isRegex": false}],
                "startsAt": "...", "endsAt": "...",
                "createdBy": "makefile", "comment": "Silenced via Makefile"
            }

        String matchers (``'alertname="TestAlert"'``) are accepted as well.
        """
        raw_matchers = data.get("matchers") or []
        matchers: list[Matcher] = []
        for raw in raw_matchers:
            if isinstance(raw, str):
                matchers.append(parse_matcher(raw))
                continue
            is_regex = bool(raw.get("isRegex", False))
            is_equal = bool(raw.get("isEqual", True))
            if is_regex:
                match_type = MatchType.REGEX if is_equal else MatchType.NOT_REGEX
            else:
                match_type = MatchType.EQUAL if is_equal else MatchType.NOT_EQUAL
            matchers.append(Matcher(name=str(raw["name"]), type=match_type, value=str(raw.get("value", ""))))

        try:
            starts_at = parse_timestamp(data.get("startsAt")) or now
            ends_at = parse_timestamp(data.get("endsAt"))
        except (TypeError, ValueError) as exc:
            raise AlertValidationError("invalid silence timestamp", {"error": str(exc)}) from exc
        if ends_at is None:
            raise AlertValidationError("silence has no endsAt")

        kwargs: dict[str, Any] = {}
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        return cls(
            matchers=tuple(matchers),
            starts_at=starts_at,
            ends_at=ends_at,
            created_by=str(data.get("createdBy", "")),
            comment=str(data.get("comment", "")),
            **kwargs,
        )

    def to_dict(self, now: datetime) -> dict[str, Any]:
        return {
            "id": self.id,
            "matchers": [
                {
                    "name": m.name,
                    "value": m.value,
                    "isRegex": m.type.is_regex,
                    "isEqual": m.type in (MatchType.EQUAL, MatchType.REGEX),
                }
                for m in self.matchers
            ],
            "startsAt": format_timestamp(self.starts_at),
            "endsAt": format_timestamp(self.ends_at),
            "createdBy": self.created_by,
            "comment": self.comment,
            "status": {"state": self.state(now).value},
        }


class Silencer:
    """In-memory silence store."""

    def __init__(self) -> None:
        self._silences: dict[str, Silence] = {}
        self._lock = threading.Lock()

    def add(self, silence: Silence) -> str:
        if not silence.matchers:
            raise AlertValidationError("silence needs at least one matcher")
        if silence.ends_at <= silence.starts_at:
            raise AlertValidationError("silence ends before it starts", {"silence": silence.id})
        with self._lock:
            self._silences[silence.id] = silence
        logger.info(
            "silence_added",
            silence=silence.id,
            matchers=[str(m) for m in silence.matchers],
            created_by=silence.created_by,
        )
        return silence.id

    def expire(self, silence_id: str, now: datetime) -> bool:
        """End a silence now. Returns False for unknown or already expired silences."""
        with self._lock:
            silence = self._silences.get(silence_id)
            if silence is None or silence.state(now) == SilenceState.EXPIRED:
                return False
            if silence.state(now) == SilenceState.PENDING:
                silence = replace(silence, starts_at=now)
            self._silences[silence_id] = replace(silence, ends_at=now)
        logger.info("silence_expired", silence=silence_id)
        return True

    def get(self, silence_id: str) -> Silence | None:
        with self._lock:
            return self._silences.get(silence_id)

    def list_silences(self) -> list[Silence]:
        with self._lock:
            return sorted(self._silences.values(), key=lambda s: (s.starts_at, s.id))

    def silenced_by(self, alert: Alert, now: datetime) -> list[str]:
        with self._lock:
            silences = list(self._silences.values())
        return sorted(s.id for s in silences if s.mutes(alert, now))

    def is_silenced(self, alert: Alert, now: datetime) -> bool:
        return bool(self.silenced_by(alert, now))

    def next_transition(self, now: datetime) -> datetime | None:
        """Earliest future start or end of any silence."""
        with self._lock:
            instants = [
                t
                for s in self._silences.values()
                for t in (s.starts_at, s.ends_at)
                if t > now
            ]
        return min(instants, default=None)
