"""
Notification transports.

The dispatcher hands every Notification Job to a transport and logs the
outcome. Channel formatting, retries and backoff belong to the transport's
side of the boundary.
"""

from __future__ import annotations

import threading
from typing import Protocol

import httpx
import structlog

from alertrouter.core.errors import NotificationError
from alertrouter.notify.models import NotificationJob

logger = structlog.get_logger()


class NotificationTransport(Protocol):
    def send(self, job: NotificationJob) -> None: ...


class InMemoryTransport:
    """Collects jobs in a list for local development and tests."""

    def __init__(self) -> None:
        self.jobs: list[NotificationJob] = []
        self._lock = threading.Lock()

    def send(self, job: NotificationJob) -> None:
        with self._lock:
            self.jobs.append(job)

    def for_receiver(self, receiver: str) -> list[NotificationJob]:
        with self._lock:
            return [job for job in self.jobs if job.receiver == receiver]

    def clear(self) -> None:
        with self._lock:
            self.jobs.clear()

    def size(self) -> int:
        return len(self.jobs)


class LoggingTransport:
    """Writes jobs to the log instead of delivering them."""

    def send(self, job: NotificationJob) -> None:
        logger.info(
            "notification_logged",
            receiver=job.receiver,
            group_key=job.group_key,
            status=job.status.value,
            firing=len(job.firing),
            resolved=len(job.resolved),
        )


class WebhookTransport:
    """POST jobs to a webhook as Alertmanager webhook payloads."""

    def __init__(self, url: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def send(self, job: NotificationJob) -> None:
        """
        Deliver one job.

        Raises:
            NotificationError: If the webhook cannot be reached or answers
                with an error status
        """
        payload = job.to_webhook_payload()
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(
                f"Failed to deliver notification: {exc}",
                {"receiver": job.receiver, "group_key": job.group_key},
            ) from exc
