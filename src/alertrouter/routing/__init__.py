"""
Routing: label matchers, the route tree, inhibition rules and silences.
"""

from alertrouter.routing.durations import format_duration, parse_duration
from alertrouter.routing.inhibit import InhibitRule, Inhibitor, inhibited_by, is_inhibited
from alertrouter.routing.matchers import (
    Matcher,
    MatchType,
    matchers_from_legacy,
    matches,
    parse_matcher,
    parse_matchers,
)
from alertrouter.routing.silences import Silence, Silencer, SilenceState
from alertrouter.routing.tree import (
    Continue,
    GroupingConfig,
    RouteMatch,
    RouteNode,
    RouteTree,
    Terminal,
)

__all__ = [
    "Continue",
    "GroupingConfig",
    "InhibitRule",
    "Inhibitor",
    "Matcher",
    "MatchType",
    "RouteMatch",
    "RouteNode",
    "RouteTree",
    "Silence",
    "Silencer",
    "SilenceState",
    "Terminal",
    "format_duration",
    "inhibited_by",
    "is_inhibited",
    "matchers_from_legacy",
    "matches",
    "parse_duration",
    "parse_matcher",
    "parse_matchers",
]
