"""Prometheus-style duration strings (``30s``, ``5m``, ``1h30m``)."""

from __future__ import annotations

import re
from datetime import timedelta

from alertrouter.core.errors import ConfigurationError

_UNITS: dict[str, float] = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
    "y": 31536000,
}

_PART_RE = re.compile(r"(\d+)(ms|s|m|h|d|w|y)")
_ORDER = ["y", "w", "d", "h", "m", "s", "ms"]


def parse_duration(value: str | int | float | timedelta) -> timedelta:
    """
    Parse a duration such as ``30s`` or ``1h30m``.

    Bare numbers are taken as seconds. Units must appear largest first and
    at most once each.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigurationError("invalid duration", {"duration": value})
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigurationError("negative duration", {"duration": value})
        return timedelta(seconds=value)

    text = str(value).strip()
    if text == "0":
        return timedelta(0)

    pos = 0
    total = 0.0
    last_unit = -1
    for part in _PART_RE.finditer(text):
        if part.start() != pos:
            break
        unit_index = _ORDER.index(part.group(2))
        if unit_index <= last_unit:
            raise ConfigurationError("invalid duration", {"duration": text})
        last_unit = unit_index
        total += int(part.group(1)) * _UNITS[part.group(2)]
        pos = part.end()

    if pos == 0 or pos != len(text):
        raise ConfigurationError("invalid duration", {"duration": text})
    return timedelta(seconds=total)


def format_duration(value: timedelta) -> str:
    """Render a timedelta in the shortest unit form ``parse_duration`` reads."""
    millis = round(value.total_seconds() * 1000)
    if millis == 0:
        return "0s"
    parts = []
    for unit in _ORDER:
        size = round(_UNITS[unit] * 1000)
        count, millis = divmod(millis, size)
        if count:
            parts.append(f"{count}{unit}")
    return "".join(parts)
