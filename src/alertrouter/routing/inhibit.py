"""
Inhibition rules.

A firing *source* alert suppresses *target* alerts that agree with it on
every label listed in ``equal``:

    inhibit_rules:
      - source_matchers: ['alertname="LibertyServerDown"']
        target_matchers: ['alertname=~"Liberty.*"']
        equal: [instance]

An alert never inhibits itself. Inhibition is evaluated against the alert
set as it is at the moment of the call; nothing is cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from alertrouter.alerts.models import Alert
from alertrouter.core.errors import ConfigurationError
from alertrouter.routing.matchers import (
    Matcher,
    matchers_from_legacy,
    matches,
    parse_matchers,
)


@dataclass(frozen=True)
class InhibitRule:
    source_matchers: tuple[Matcher, ...]
    target_matchers: tuple[Matcher, ...]
    equal: tuple[str, ...] = ()

    def source_matches(self, alert: Alert) -> bool:
        return alert.is_firing and matches(alert.labels, self.source_matchers)

    def target_matches(self, alert: Alert) -> bool:
        return matches(alert.labels, self.target_matchers)

    def equal_labels_match(self, source: Alert, target: Alert) -> bool:
        return all(source.labels.get(name, "") == target.labels.get(name, "") for name in self.equal)

    def inhibits(self, source: Alert, target: Alert) -> bool:
        return (
            source.fingerprint != target.fingerprint
            and self.source_matches(source)
            and self.target_matches(target)
            and self.equal_labels_match(source, target)
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InhibitRule":
        if not isinstance(data, Mapping):
            raise ConfigurationError("inhibit rule must be a mapping")

        source = list(matchers_from_legacy(data.get("source_match"), data.get("source_match_re")))
        source.extend(parse_matchers(data.get("source_matchers") or []))
        target = list(matchers_from_legacy(data.get("target_match"), data.get("target_match_re")))
        target.extend(parse_matchers(data.get("target_matchers") or []))

        equal = data.get("equal") or []
        if not isinstance(equal, (list, tuple)):
            raise ConfigurationError("equal must be a list", {"equal": equal})

        return cls(
            source_matchers=tuple(source),
            target_matchers=tuple(target),
            equal=tuple(str(name) for name in equal),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "source_matchers": [str(m) for m in self.source_matchers],
            "target_matchers": [str(m) for m in self.target_matchers],
        }
        if self.equal:
            data["equal"] = list(self.equal)
        return data


def is_inhibited(
    candidate: Alert,
    all_active_alerts: Iterable[Alert],
    rules: Sequence[InhibitRule],
) -> bool:
    """True when any firing alert inhibits ``candidate`` under any rule."""
    return bool(inhibited_by(candidate, all_active_alerts, rules))


def inhibited_by(
    candidate: Alert,
    all_active_alerts: Iterable[Alert],
    rules: Sequence[InhibitRule],
) -> list[str]:
    """Fingerprints of the source alerts currently inhibiting ``candidate``."""
    applicable = [rule for rule in rules if rule.target_matches(candidate)]
    if not applicable:
        return []

    sources: list[str] = []
    for source in all_active_alerts:
        if any(rule.inhibits(source, candidate) for rule in applicable):
            sources.append(source.fingerprint)
    return sorted(set(sources))


class Inhibitor:
    """Holds the active rule set and answers inhibition queries."""

    def __init__(self, rules: Sequence[InhibitRule] = ()) -> None:
        self.rules = tuple(rules)

    def is_inhibited(self, candidate: Alert, all_active_alerts: Iterable[Alert]) -> bool:
        return is_inhibited(candidate, all_active_alerts, self.rules)

    def inhibited_by(self, candidate: Alert, all_active_alerts: Iterable[Alert]) -> list[str]:
        return inhibited_by(candidate, all_active_alerts, self.rules)
