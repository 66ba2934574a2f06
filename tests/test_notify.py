"""Tests for notification jobs and transports."""

from datetime import datetime, timezone

import httpx
import pytest
import respx
from alertrouter.alerts.models import Alert, AlertStatus
from alertrouter.core.errors import NotificationError
from alertrouter.notify import InMemoryTransport, LoggingTransport, NotificationJob, WebhookTransport

WEBHOOK_URL = "http://hooks.example.com/alerts"
EMITTED = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def job():
    alerts = (
        Alert(labels={"alertname": "HighLatency", "instance": "a"}, annotations={"summary": "slow"}),
        Alert(labels={"alertname": "HighLatency", "instance": "b"}, annotations={"summary": "slow"}).with_status(
            AlertStatus.RESOLVED, at=EMITTED
        ),
    )
    return NotificationJob(
        receiver="default",
        alerts=alerts,
        group_key='0:default:{alertname="HighLatency"}',
        emitted_at=EMITTED,
        group_labels=(("alertname", "HighLatency"),),
    )


class TestNotificationJob:
    def test_status_is_firing_while_any_alert_fires(self, job):
        assert job.status == AlertStatus.FIRING
        assert len(job.firing) == 1
        assert len(job.resolved) == 1

    def test_webhook_payload(self, job):
        payload = job.to_webhook_payload()

        assert payload["version"] == "4"
        assert payload["receiver"] == "default"
        assert payload["groupLabels"] == {"alertname": "HighLatency"}
        assert payload["commonLabels"] == {"alertname": "HighLatency"}
        assert payload["commonAnnotations"] == {"summary": "slow"}
        assert [a["status"] for a in payload["alerts"]] == ["firing", "resolved"]
        assert payload["alerts"][1]["endsAt"] == "2025-01-01T00:00:00Z"


class TestTransports:
    def test_in_memory(self, job):
        transport = InMemoryTransport()
        transport.send(job)
        assert transport.size() == 1
        assert transport.for_receiver("default") == [job]
        assert transport.for_receiver("other") == []
        transport.clear()
        assert transport.size() == 0

    def test_logging_transport_does_not_raise(self, job):
        LoggingTransport().send(job)

    @respx.mock
    def test_webhook_posts_payload(self, job):
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(200))

        WebhookTransport(WEBHOOK_URL).send(job)

        assert route.called
        body = route.calls.last.request.content
        assert b'"groupKey"' in body

    @respx.mock
    def test_webhook_error_status_raises(self, job):
        respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(NotificationError) as exc_info:
            WebhookTransport(WEBHOOK_URL).send(job)
        assert exc_info.value.details["receiver"] == "default"

    @respx.mock
    def test_webhook_connection_error_raises(self, job):
        respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NotificationError):
            WebhookTransport(WEBHOOK_URL).send(job)

    @respx.mock
    def test_webhook_uses_shared_client(self, job):
        route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(202))

        with httpx.Client() as client:
            WebhookTransport(WEBHOOK_URL, client=client).send(job)

        assert route.call_count == 1
