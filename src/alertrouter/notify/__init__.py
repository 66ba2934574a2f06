from __future__ import annotations

from alertrouter.notify.models import NotificationJob
from alertrouter.notify.transport import (
    InMemoryTransport,
    LoggingTransport,
    NotificationTransport,
    WebhookTransport,
)

__all__ = [
    "InMemoryTransport",
    "LoggingTransport",
    "NotificationJob",
    "NotificationTransport",
    "WebhookTransport",
]
