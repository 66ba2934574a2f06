"""
Route tree.

Decides which receivers an alert is dispatched to. The tree is walked
depth-first in declaration order starting at the root, which matches every
alert:

    route:
      receiver: default
      group_by: [alertname, severity]
      routes:
        - receiver: pagerduty
          matchers: ['severity="critical"']
          continue: true
        - receiver: slack-critical
          matchers: ['severity="critical"']

An alert is offered to the children of every node it matches. When a child
matches, evaluation of that node's later siblings stops unless the child
sets ``continue: true``. A matching node none of whose children match
contributes its own receiver, so an alert matching nothing below the root
lands on the root receiver.

Grouping settings (``group_by``, ``group_wait``, ``group_interval``,
``repeat_interval``) and the receiver are inherited from the nearest
ancestor that sets them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterator, Mapping

from alertrouter.alerts.models import Alert
from alertrouter.core.errors import ConfigurationError
from alertrouter.routing.durations import format_duration, parse_duration
from alertrouter.routing.matchers import (
    Matcher,
    matchers_from_legacy,
    matches,
    parse_matchers,
)

GROUP_BY_ALL = "..."

_GROUPING_KEYS = ("group_by", "group_wait", "group_interval", "repeat_interval")


@dataclass(frozen=True)
class GroupingConfig:
    """Effective grouping and throttling settings for a route."""

    group_by: tuple[str, ...] = ()
    group_wait: timedelta = timedelta(seconds=30)
    group_interval: timedelta = timedelta(minutes=5)
    repeat_interval: timedelta = timedelta(hours=4)

    @property
    def group_by_all(self) -> bool:
        return GROUP_BY_ALL in self.group_by

    def group_labels(self, labels: Mapping[str, str]) -> tuple[tuple[str, str], ...]:
        """The (name, value) pairs that key an alert's group under this config."""
        if self.group_by_all:
            return tuple(sorted(labels.items()))
        return tuple((name, labels[name]) for name in sorted(self.group_by) if name in labels)

    def override(self, data: Mapping[str, Any]) -> "GroupingConfig":
        group_by = self.group_by
        if "group_by" in data:
            raw = data["group_by"] or []
            if not isinstance(raw, (list, tuple)):
                raise ConfigurationError("group_by must be a list", {"group_by": raw})
            group_by = tuple(str(name) for name in raw)
            if GROUP_BY_ALL in group_by and len(group_by) > 1:
                raise ConfigurationError(
                    "'...' cannot be combined with other group_by labels",
                    {"group_by": list(group_by)},
                )
        group_interval = (
            parse_duration(data["group_interval"]) if "group_interval" in data else self.group_interval
        )
        repeat_interval = (
            parse_duration(data["repeat_interval"]) if "repeat_interval" in data else self.repeat_interval
        )
        # group_wait may be zero; the other two pace re-sends and may not
        for name, value in (("group_interval", group_interval), ("repeat_interval", repeat_interval)):
            if value <= timedelta(0):
                raise ConfigurationError(f"{name} cannot be zero", {name: data.get(name)})
        return GroupingConfig(
            group_by=group_by,
            group_wait=parse_duration(data["group_wait"]) if "group_wait" in data else self.group_wait,
            group_interval=group_interval,
            repeat_interval=repeat_interval,
        )


@dataclass(frozen=True)
class RouteMatch:
    """One receiver an alert resolves to, with the settings of the route that produced it."""

    route_id: str
    receiver: str
    grouping: GroupingConfig


@dataclass(frozen=True)
class Terminal:
    """A matching node with ``continue: false``; later siblings are skipped."""

    matches: tuple[RouteMatch, ...]


@dataclass(frozen=True)
class Continue:
    """A matching node with ``continue: true``; later siblings are still evaluated."""

    matches: tuple[RouteMatch, ...]


Outcome = Terminal | Continue


@dataclass
class RouteNode:
    """A node of the route tree with its effective (inherited) settings."""

    receiver: str
    matchers: tuple[Matcher, ...] = ()
    routes: list["RouteNode"] = field(default_factory=list)
    continue_: bool = False
    grouping: GroupingConfig = field(default_factory=GroupingConfig)
    route_id: str = "0"
    # Keys set on this node itself, kept so serialization does not
    # flatten inherited values into every child.
    overrides: dict[str, Any] = field(default_factory=dict)

    def evaluate(self, alert: Alert) -> Outcome | None:
        """Evaluate this subtree; ``None`` when the node does not match."""
        if not matches(alert.labels, self.matchers):
            return None

        collected: list[RouteMatch] = []
        for child in self.routes:
            outcome = child.evaluate(alert)
            if outcome is None:
                continue
            collected.extend(outcome.matches)
            if isinstance(outcome, Terminal):
                break

        if not collected:
            collected.append(RouteMatch(self.route_id, self.receiver, self.grouping))

        result = tuple(collected)
        return Continue(result) if self.continue_ else Terminal(result)

    def walk(self) -> Iterator["RouteNode"]:
        yield self
        for child in self.routes:
            yield from child.walk()

    def receivers(self) -> set[str]:
        return {node.receiver for node in self.walk()}

    def find(self, route_id: str) -> "RouteNode | None":
        for node in self.walk():
            if node.route_id == route_id:
                return node
        return None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        parent: "RouteNode | None" = None,
        route_id: str = "0",
        _seen: frozenset[int] = frozenset(),
    ) -> "RouteNode":
        """
        Build a subtree from its Alertmanager YAML form.

        Raises:
            ConfigurationError: on cyclic references (YAML aliases pointing at
                an ancestor), bad matchers or bad durations.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("route must be a mapping", {"route": route_id})
        if id(data) in _seen:
            raise ConfigurationError("cyclic route reference", {"route": route_id})
        seen = _seen | {id(data)}

        is_root = parent is None
        receiver = data.get("receiver") or (parent.receiver if parent else None)
        if not receiver:
            raise ConfigurationError("route has no receiver", {"route": route_id})

        matcher_list: list[Matcher] = list(
            matchers_from_legacy(data.get("match"), data.get("match_re"))
        )
        matcher_list.extend(parse_matchers(data.get("matchers") or []))
        if is_root and matcher_list:
            raise ConfigurationError("root route must not have matchers")
        if is_root and data.get("continue"):
            raise ConfigurationError("root route cannot set continue")

        base = parent.grouping if parent else GroupingConfig()
        grouping = base.override(data)
        overrides = {key: data[key] for key in _GROUPING_KEYS if key in data}
        if "receiver" in data:
            overrides["receiver"] = data["receiver"]

        node = cls(
            receiver=str(receiver),
            matchers=tuple(matcher_list),
            continue_=bool(data.get("continue", False)),
            grouping=grouping,
            route_id=route_id,
            overrides=overrides,
        )

        children = data.get("routes") or []
        if not isinstance(children, list):
            raise ConfigurationError("routes must be a list", {"route": route_id})
        node.routes = [
            cls.from_dict(child, parent=node, route_id=f"{route_id}.{index}", _seen=seen)
            for index, child in enumerate(children)
        ]
        return node

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if "receiver" in self.overrides:
            data["receiver"] = self.receiver
        if "group_by" in self.overrides:
            data["group_by"] = list(self.grouping.group_by)
        for key in ("group_wait", "group_interval", "repeat_interval"):
            if key in self.overrides:
                data[key] = format_duration(getattr(self.grouping, key))
        if self.matchers:
            data["matchers"] = [str(m) for m in self.matchers]
        if self.continue_:
            data["continue"] = True
        if self.routes:
            data["routes"] = [child.to_dict() for child in self.routes]
        return data


class RouteTree:
    """The routing tree with a single always-matching root."""

    def __init__(self, root: RouteNode) -> None:
        if root.matchers:
            raise ConfigurationError("root route must not have matchers")
        self.root = root

    def resolve(self, alert: Alert) -> list[RouteMatch]:
        """Ordered receivers (with grouping settings) for an alert."""
        outcome = self.root.evaluate(alert)
        if outcome is None:
            return [RouteMatch(self.root.route_id, self.root.receiver, self.root.grouping)]
        return list(outcome.matches)

    def receivers(self) -> set[str]:
        return self.root.receivers()

    def find(self, route_id: str) -> RouteNode | None:
        return self.root.find(route_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RouteTree":
        return cls(RouteNode.from_dict(data))

    def to_dict(self) -> dict[str, Any]:
        return self.root.to_dict()
