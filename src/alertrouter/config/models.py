"""
Routing configuration models.

The layout mirrors an Alertmanager configuration file:

    global:
      resolve_timeout: 5m
    route: {...}
    receivers:
      - name: default
        webhook_configs: [...]
    inhibit_rules: [...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

from alertrouter.core.errors import ConfigurationError
from alertrouter.routing.durations import format_duration, parse_duration
from alertrouter.routing.inhibit import InhibitRule
from alertrouter.routing.tree import RouteTree

DEFAULT_RESOLVE_TIMEOUT = timedelta(minutes=5)


@dataclass(frozen=True)
class Receiver:
    """
    A named notification destination.

    Channel settings (``slack_configs``, ``webhook_configs``...) are kept
    as opaque metadata for the transport; an empty receiver is a null sink.
    """

    name: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Receiver":
        if not isinstance(data, Mapping) or not data.get("name"):
            raise ConfigurationError("receiver has no name")
        metadata = {k: v for k, v in data.items() if k != "name"}
        return cls(name=str(data["name"]), metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, **dict(self.metadata)}


@dataclass
class RoutingConfig:
    """A validated, ready-to-activate routing configuration."""

    route: RouteTree
    receivers: dict[str, Receiver]
    inhibit_rules: list[InhibitRule] = field(default_factory=list)
    resolve_timeout: timedelta = DEFAULT_RESOLVE_TIMEOUT
    resolve_timeout_set: bool = False

    def validate(self) -> None:
        """
        Check cross references.

        Raises:
            ConfigurationError: if a route references an undeclared receiver.
        """
        declared = set(self.receivers)
        for node in self.route.root.walk():
            if node.receiver not in declared:
                raise ConfigurationError(
                    "route references undefined receiver",
                    {"receiver": node.receiver, "route": node.route_id},
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoutingConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError("configuration must be a mapping")
        if "route" not in data:
            raise ConfigurationError("configuration has no route")

        receivers: dict[str, Receiver] = {}
        for raw in data.get("receivers") or []:
            receiver = Receiver.from_dict(raw)
            if receiver.name in receivers:
                raise ConfigurationError("duplicate receiver", {"receiver": receiver.name})
            receivers[receiver.name] = receiver

        global_section = data.get("global") or {}
        resolve_timeout_set = "resolve_timeout" in global_section
        resolve_timeout = (
            parse_duration(global_section["resolve_timeout"])
            if resolve_timeout_set
            else DEFAULT_RESOLVE_TIMEOUT
        )

        config = cls(
            route=RouteTree.from_dict(data["route"]),
            receivers=receivers,
            inhibit_rules=[InhibitRule.from_dict(r) for r in data.get("inhibit_rules") or []],
            resolve_timeout=resolve_timeout,
            resolve_timeout_set=resolve_timeout_set,
        )
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.resolve_timeout_set:
            data["global"] = {"resolve_timeout": format_duration(self.resolve_timeout)}
        data["route"] = self.route.to_dict()
        data["receivers"] = [r.to_dict() for r in self.receivers.values()]
        if self.inhibit_rules:
            data["inhibit_rules"] = [r.to_dict() for r in self.inhibit_rules]
        return data
