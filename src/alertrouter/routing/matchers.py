"""
Label matchers.

A matcher compares one label of an alert against a value or pattern.
Matcher sets are conjunctions: every matcher must hold.

Syntax (as in Alertmanager ``matchers:`` lists):
    alertname="LibertyServerDown"
    severity!=info
    instance=~"app-[0-9]+"
    job!~"batch-.*"

Regex patterns are anchored on both ends, so ``=~"app"`` does not match
``app-1``. A label the alert does not carry reads as the empty string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Mapping, Sequence

from alertrouter.core.errors import ConfigurationError

LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# Longest operators first so "=~" is not read as "=" followed by "~".
_MATCHER_RE = re.compile(r"^\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*(=~|!~|!=|=)\s*(.*?)\s*$", re.DOTALL)


class MatchType(StrEnum):
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX = "=~"
    NOT_REGEX = "!~"

    @property
    def is_regex(self) -> bool:
        return self in (MatchType.REGEX, MatchType.NOT_REGEX)


@dataclass(frozen=True)
class Matcher:
    """One (label name, operator, value) triple."""

    name: str
    type: MatchType
    value: str
    _pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not LABEL_NAME_RE.match(self.name):
            raise ConfigurationError("invalid label name in matcher", {"label": self.name})
        object.__setattr__(self, "type", MatchType(self.type))
        if self.type.is_regex:
            try:
                pattern = re.compile(f"^(?:{self.value})$")
            except re.error as exc:
                raise ConfigurationError(
                    "invalid regex in matcher",
                    {"label": self.name, "pattern": self.value, "error": str(exc)},
                ) from exc
            object.__setattr__(self, "_pattern", pattern)

    def matches(self, labels: Mapping[str, str]) -> bool:
        value = labels.get(self.name, "")
        if self.type == MatchType.EQUAL:
            return value == self.value
        if self.type == MatchType.NOT_EQUAL:
            return value != self.value
        found = self._pattern is not None and self._pattern.match(value) is not None
        return found if self.type == MatchType.REGEX else not found

    def __str__(self) -> str:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'{self.name}{self.type.value}"{escaped}"'


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
        body = raw[1:-1]
        out = []
        i = 0
        while i < len(body):
            char = body[i]
            if char == "\\" and i + 1 < len(body):
                nxt = body[i + 1]
                out.append({"n": "\n", "t": "\t"}.get(nxt, nxt))
                i += 2
                continue
            out.append(char)
            i += 1
        return "".join(out)
    return raw


def parse_matcher(text: str) -> Matcher:
    """Parse ``name<op>value`` into a ``Matcher``."""
    found = _MATCHER_RE.match(text)
    if not found:
        raise ConfigurationError("unparseable matcher", {"matcher": text})
    name, op, raw_value = found.groups()
    return Matcher(name=name, type=MatchType(op), value=_unquote(raw_value))


def parse_matchers(items: Iterable[str]) -> tuple[Matcher, ...]:
    return tuple(parse_matcher(item) for item in items)


def matchers_from_legacy(
    match: Mapping[str, str] | None = None,
    match_re: Mapping[str, str] | None = None,
) -> tuple[Matcher, ...]:
    """Convert the legacy ``match`` / ``match_re`` maps into matchers."""
    result: list[Matcher] = []
    for name, value in sorted((match or {}).items()):
        result.append(Matcher(name=str(name), type=MatchType.EQUAL, value=str(value)))
    for name, value in sorted((match_re or {}).items()):
        result.append(Matcher(name=str(name), type=MatchType.REGEX, value=str(value)))
    return tuple(result)


def matches(alert_labels: Mapping[str, str], matcher_set: Sequence[Matcher]) -> bool:
    """True when every matcher holds for the label set."""
    return all(m.matches(alert_labels) for m in matcher_set)
