"""
Alert grouping, flush scheduling and notification dispatch.
"""

from alertrouter.dispatch.dispatcher import AlertView, DispatchStats, Dispatcher
from alertrouter.dispatch.grouper import (
    AlertGroup,
    FlushDecision,
    Grouper,
    GroupKey,
    GroupState,
    payload_fingerprint,
)
from alertrouter.dispatch.registry import AlertRegistry

__all__ = [
    "AlertGroup",
    "AlertRegistry",
    "AlertView",
    "DispatchStats",
    "Dispatcher",
    "FlushDecision",
    "Grouper",
    "GroupKey",
    "GroupState",
    "payload_fingerprint",
]
