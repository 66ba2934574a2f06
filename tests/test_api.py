"""Tests for the HTTP API."""

from datetime import timedelta

import pytest
import pytest_asyncio
from alertrouter.alerts.models import format_timestamp
from alertrouter.api.deps import build_state
from alertrouter.api.main import create_app
from alertrouter.config import ConfigManager, Settings
from alertrouter.notify import InMemoryTransport
from httpx import ASGITransport, AsyncClient


@pytest.fixture
def transport():
    return InMemoryTransport()


@pytest.fixture
def state(liberty_config_file, transport, clock):
    settings = Settings(_env_file=None, config_file=str(liberty_config_file))
    manager = ConfigManager(settings.config_file)
    manager.reload()
    state = build_state(settings, manager, transport=transport, clock=clock)
    state.dispatcher.start()
    return state


@pytest_asyncio.fixture
async def client(state):
    app = create_app(state=state)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


LIBERTY_DOWN = {
    "labels": {"alertname": "LibertyServerDown", "instance": "app-1", "severity": "critical"},
    "annotations": {"summary": "Liberty server is down"},
}
LIBERTY_HEAP = {
    "labels": {"alertname": "LibertyHighHeap", "instance": "app-1", "severity": "warning"},
}


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/-/healthy")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready(self, client):
        response = await client.get("/-/ready")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_not_ready_after_drain(self, client, state):
        state.dispatcher.drain()
        response = await client.get("/-/ready")
        assert response.status_code == 503


class TestAlertsEndpoint:
    """Tests for POST/GET /api/v2/alerts."""

    @pytest.mark.asyncio
    async def test_post_counts_rejections(self, client):
        response = await client.post(
            "/api/v2/alerts",
            json=[LIBERTY_DOWN, {"labels": {"instance": "app-2"}}, {"labels": {"alertname": ""}}],
        )
        assert response.status_code == 200
        body = response.json()
        assert body["accepted"] == 1
        assert body["rejected"] == 2
        assert len(body["errors"]) == 2

    @pytest.mark.asyncio
    async def test_non_string_timestamp_is_rejected_not_crashed(self, client):
        response = await client.post(
            "/api/v2/alerts",
            json=[{"labels": {"alertname": "X"}, "startsAt": 123}, LIBERTY_DOWN],
        )
        assert response.status_code == 200
        assert response.json()["accepted"] == 1
        assert response.json()["rejected"] == 1

    @pytest.mark.asyncio
    async def test_non_list_body_rejected(self, client):
        response = await client.post("/api/v2/alerts", json={"labels": {"alertname": "X"}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_shows_inhibition(self, client):
        await client.post("/api/v2/alerts", json=[LIBERTY_DOWN, LIBERTY_HEAP])

        response = await client.get("/api/v2/alerts")
        alerts = {a["labels"]["alertname"]: a for a in response.json()}

        assert alerts["LibertyServerDown"]["status"]["state"] == "active"
        assert alerts["LibertyServerDown"]["receivers"] == [{"name": "critical"}]
        heap = alerts["LibertyHighHeap"]
        assert heap["status"]["state"] == "suppressed"
        assert heap["status"]["inhibitedBy"] == [alerts["LibertyServerDown"]["fingerprint"]]

    @pytest.mark.asyncio
    async def test_filters(self, client):
        await client.post("/api/v2/alerts", json=[LIBERTY_DOWN, LIBERTY_HEAP])

        not_inhibited = (await client.get("/api/v2/alerts", params={"inhibited": "false"})).json()
        assert [a["labels"]["alertname"] for a in not_inhibited] == ["LibertyServerDown"]

        by_receiver = (await client.get("/api/v2/alerts", params={"receiver": "warning"})).json()
        assert by_receiver == []

    @pytest.mark.asyncio
    async def test_groups_and_flush(self, client, state, transport, clock):
        await client.post("/api/v2/alerts", json=[LIBERTY_DOWN])

        groups = (await client.get("/api/v2/alerts/groups")).json()
        assert [g["receiver"] for g in groups] == ["critical"]
        assert groups[0]["labels"] == {"alertname": "LibertyServerDown", "severity": "critical"}

        clock.advance(30)
        state.dispatcher.flush_due()
        assert [job.receiver for job in transport.jobs] == ["critical"]


class TestSilencesEndpoint:
    @pytest.mark.asyncio
    async def test_create_get_expire(self, client, clock):
        payload = {
            "matchers": [{"name": "alertname", "value": "TestAlert", "isRegex": False}],
            "endsAt": format_timestamp(clock.now() + timedelta(hours=1)),
            "createdBy": "makefile",
            "comment": "Silenced via Makefile",
        }
        created = await client.post("/api/v2/silences", json=payload)
        assert created.status_code == 200
        silence_id = created.json()["silenceID"]

        fetched = (await client.get(f"/api/v2/silence/{silence_id}")).json()
        assert fetched["status"]["state"] == "active"
        assert fetched["createdBy"] == "makefile"

        listed = (await client.get("/api/v2/silences")).json()
        assert [s["id"] for s in listed] == [silence_id]

        deleted = await client.delete(f"/api/v2/silence/{silence_id}")
        assert deleted.json() == {"status": "expired"}
        again = await client.delete(f"/api/v2/silence/{silence_id}")
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_silence_mutes_alert(self, client, clock):
        await client.post(
            "/api/v2/silences",
            json={
                "matchers": ['alertname="TestAlert"'],
                "endsAt": format_timestamp(clock.now() + timedelta(hours=1)),
            },
        )
        await client.post("/api/v2/alerts", json=[{"labels": {"alertname": "TestAlert"}}])

        alerts = (await client.get("/api/v2/alerts")).json()
        assert alerts[0]["status"]["state"] == "suppressed"
        assert len(alerts[0]["status"]["silencedBy"]) == 1
        assert alerts[0]["groups"] == []

    @pytest.mark.asyncio
    async def test_invalid_silence(self, client):
        response = await client.post("/api/v2/silences", json={"matchers": []})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_silence_with_numeric_ends_at(self, client):
        response = await client.post(
            "/api/v2/silences",
            json={"matchers": ['alertname="TestAlert"'], "endsAt": 1735689600},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_silence(self, client):
        response = await client.get("/api/v2/silence/does-not-exist")
        assert response.status_code == 404


class TestStatusAndReload:
    @pytest.mark.asyncio
    async def test_status(self, client):
        await client.post("/api/v2/alerts", json=[LIBERTY_DOWN, {"labels": {}}])

        body = (await client.get("/api/v2/status")).json()

        assert "LibertyServerDown" in body["config"]["original"]
        assert body["dispatcher"]["alerts"] == 1
        assert body["ingestion"] == {"accepted": 1, "rejected": 1}
        assert body["reload"]["lastError"] is None

    @pytest.mark.asyncio
    async def test_reload_applies_new_config(self, client, state, liberty_config_file):
        await client.post("/api/v2/alerts", json=[LIBERTY_HEAP])
        liberty_config_file.write_text(
            "route:\n  receiver: default\nreceivers:\n  - name: default\n"
        )

        response = await client.post("/-/reload")

        assert response.status_code == 200
        groups = (await client.get("/api/v2/alerts/groups")).json()
        assert [g["receiver"] for g in groups] == ["default"]

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_serving(self, client, state, liberty_config_file):
        liberty_config_file.write_text("route:\n  receiver: ghost\nreceivers: []\n")

        response = await client.post("/-/reload")

        assert response.status_code == 500
        assert "undefined receiver" in response.json()["detail"]
        status = (await client.get("/api/v2/status")).json()
        assert status["reload"]["failed"] == 1
        assert "critical" in status["config"]["original"]
