"""Tests for silences."""

from datetime import timedelta

import pytest
from alertrouter.alerts.models import Alert
from alertrouter.core.errors import AlertValidationError
from alertrouter.routing.matchers import parse_matchers
from alertrouter.routing.silences import Silence, Silencer, SilenceState


@pytest.fixture
def now(clock):
    return clock.now()


def make_silence(now, start=0, end=3600, matchers=('alertname="TestAlert"',)):
    return Silence(
        matchers=parse_matchers(list(matchers)),
        starts_at=now + timedelta(seconds=start),
        ends_at=now + timedelta(seconds=end),
        created_by="makefile",
        comment="Silenced via Makefile",
    )


class TestSilence:
    def test_states(self, now):
        silence = make_silence(now, start=60, end=120)
        assert silence.state(now) == SilenceState.PENDING
        assert silence.state(now + timedelta(seconds=60)) == SilenceState.ACTIVE
        assert silence.state(now + timedelta(seconds=120)) == SilenceState.EXPIRED

    def test_mutes_only_while_active(self, now):
        silence = make_silence(now, start=60, end=120)
        test_alert = Alert(labels={"alertname": "TestAlert"})

        assert not silence.mutes(test_alert, now)
        assert silence.mutes(test_alert, now + timedelta(seconds=90))
        assert not silence.mutes(Alert(labels={"alertname": "Other"}), now + timedelta(seconds=90))

    def test_from_dict_api_shape(self, now):
        silence = Silence.from_dict(
            {
                "matchers": [
                    {"name": "alertname", "value": "TestAlert", "isRegex": False},
                    {"name": "instance", "value": "app-.*", "isRegex": True, "isEqual": False},
                ],
                "startsAt": "2025-01-01T00:00:00Z",
                "endsAt": "2025-01-01T01:00:00.123456789Z",
                "createdBy": "makefile",
                "comment": "Silenced via Makefile",
            },
            now=now,
        )
        assert [str(m) for m in silence.matchers] == ['alertname="TestAlert"', 'instance!~"app-.*"']
        assert silence.ends_at - silence.starts_at == timedelta(hours=1, microseconds=123456)

    def test_from_dict_requires_ends_at(self, now):
        with pytest.raises(AlertValidationError):
            Silence.from_dict({"matchers": ['alertname="TestAlert"']}, now=now)

    def test_from_dict_rejects_numeric_ends_at(self, now):
        with pytest.raises(AlertValidationError):
            Silence.from_dict({"matchers": ['alertname="TestAlert"'], "endsAt": 1735689600}, now=now)

    def test_to_dict(self, now):
        data = make_silence(now).to_dict(now)
        assert data["status"] == {"state": "active"}
        assert data["matchers"] == [{"name": "alertname", "value": "TestAlert", "isRegex": False, "isEqual": True}]


class TestSilencer:
    def test_add_and_query(self, now):
        silencer = Silencer()
        silence_id = silencer.add(make_silence(now))
        test_alert = Alert(labels={"alertname": "TestAlert"})

        assert silencer.get(silence_id) is not None
        assert silencer.silenced_by(test_alert, now) == [silence_id]
        assert silencer.is_silenced(test_alert, now)

    def test_add_rejects_empty_matchers(self, now):
        with pytest.raises(AlertValidationError):
            Silencer().add(make_silence(now, matchers=()))

    def test_add_rejects_inverted_window(self, now):
        with pytest.raises(AlertValidationError):
            Silencer().add(make_silence(now, start=100, end=50))

    def test_expire_active(self, now):
        silencer = Silencer()
        silence_id = silencer.add(make_silence(now))
        test_alert = Alert(labels={"alertname": "TestAlert"})

        assert silencer.expire(silence_id, now)
        assert not silencer.is_silenced(test_alert, now)
        assert not silencer.expire(silence_id, now)

    def test_expire_pending(self, now):
        silencer = Silencer()
        silence_id = silencer.add(make_silence(now, start=600, end=1200))

        assert silencer.expire(silence_id, now)
        assert silencer.get(silence_id).state(now) == SilenceState.EXPIRED

    def test_expire_unknown(self, now):
        assert not Silencer().expire("missing", now)

    def test_next_transition(self, now):
        silencer = Silencer()
        silencer.add(make_silence(now, start=60, end=120))
        silencer.add(make_silence(now, start=-60, end=30))

        assert silencer.next_transition(now) == now + timedelta(seconds=30)
        assert silencer.next_transition(now + timedelta(seconds=200)) is None

    def test_list_is_ordered_by_start(self, now):
        silencer = Silencer()
        later = silencer.add(make_silence(now, start=60, end=120))
        earlier = silencer.add(make_silence(now, start=0, end=120))
        assert [s.id for s in silencer.list_silences()] == [earlier, later]
