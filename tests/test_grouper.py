"""Tests for alert groups, the grouper and the timer registry."""

from datetime import timedelta

from alertrouter.alerts.models import Alert, AlertStatus
from alertrouter.dispatch.grouper import (
    AlertGroup,
    FlushDecision,
    Grouper,
    GroupKey,
    GroupState,
    payload_fingerprint,
)
from alertrouter.dispatch.registry import AlertRegistry
from alertrouter.routing.tree import GroupingConfig, RouteMatch

GROUPING = GroupingConfig(
    group_by=("alertname",),
    group_wait=timedelta(seconds=30),
    group_interval=timedelta(minutes=5),
    repeat_interval=timedelta(hours=4),
)
MATCH = RouteMatch(route_id="0", receiver="default", grouping=GROUPING)


def firing(name="HighLatency", **labels):
    return Alert(labels={"alertname": name, **labels})


def new_group() -> AlertGroup:
    return AlertGroup(key=GroupKey("0", "default", (("alertname", "HighLatency"),)), grouping=GROUPING, created_at=0)


class TestGroupKey:
    def test_for_alert_uses_group_by_labels(self):
        key = GroupKey.for_alert(MATCH, firing(instance="a"))
        assert key == GroupKey("0", "default", (("alertname", "HighLatency"),))
        assert str(key) == '0:default:{alertname="HighLatency"}'

    def test_alerts_differing_outside_group_by_share_key(self):
        assert GroupKey.for_alert(MATCH, firing(instance="a")) == GroupKey.for_alert(MATCH, firing(instance="b"))


class TestPayloadFingerprint:
    def test_order_independent(self):
        a, b = firing(instance="a"), firing(instance="b")
        assert payload_fingerprint([a, b]) == payload_fingerprint([b, a])

    def test_status_changes_fingerprint(self):
        a = firing(instance="a")
        assert payload_fingerprint([a]) != payload_fingerprint([a.with_status(AlertStatus.RESOLVED)])


class TestAlertGroup:
    """Tests for the group state machine."""

    def test_first_alert_waits_group_wait(self):
        group = new_group()
        assert group.add(firing(instance="a"), now=10)
        assert group.state == GroupState.WAITING
        assert group.next_flush_at == 40

    def test_second_alert_does_not_extend_wait(self):
        group = new_group()
        group.add(firing(instance="a"), now=0)
        group.add(firing(instance="b"), now=20)
        assert group.next_flush_at == 30

    def test_re_adding_same_alert_is_not_a_change(self):
        group = new_group()
        alert = firing(instance="a")
        group.add(alert, now=0)
        assert not group.add(alert, now=1)

    def test_new_unsent_group_sends(self):
        group = new_group()
        group.add(firing(), now=0)
        assert group.decide(30) == FlushDecision.SEND

    def test_unchanged_payload_skips_until_repeat_interval(self):
        group = new_group()
        group.add(firing(), now=0)
        group.mark_sent(30)

        assert group.next_flush_at == 30 + 4 * 3600
        assert group.decide(100) == FlushDecision.SKIP
        assert group.decide(30 + 4 * 3600) == FlushDecision.SEND

    def test_change_after_send_respects_group_interval(self):
        group = new_group()
        group.add(firing(instance="a"), now=0)
        group.mark_sent(30)

        group.add(firing(instance="b"), now=60)
        assert group.next_flush_at == 330

        group.mark_sent(330)
        group.add(firing(instance="c"), now=1000)
        assert group.next_flush_at == 1000

    def test_resolved_alerts_are_dropped_after_send(self):
        group = new_group()
        alert = firing(instance="a")
        group.add(alert, now=0)
        group.add(firing(instance="b"), now=0)
        group.mark_sent(30)

        group.add(alert.with_status(AlertStatus.RESOLVED), now=100)
        assert group.decide(330) == FlushDecision.SEND
        acknowledged = group.mark_sent(330)

        assert acknowledged == [alert.fingerprint]
        assert list(group.alerts) == [firing(instance="b").fingerprint]

    def test_never_notified_resolved_group_retires(self):
        group = new_group()
        group.add(firing().with_status(AlertStatus.RESOLVED), now=0)
        assert group.decide(30) == FlushDecision.RETIRE

    def test_empty_group_retires(self):
        group = new_group()
        assert group.decide(0) == FlushDecision.RETIRE

    def test_all_resolved_group_empties_after_send(self):
        group = new_group()
        alert = firing()
        group.add(alert, now=0)
        group.mark_sent(30)
        group.add(alert.with_status(AlertStatus.RESOLVED), now=40)

        assert group.decide(330) == FlushDecision.SEND
        group.mark_sent(330)
        assert group.is_empty
        assert group.next_flush_at is None

    def test_unnotified_group_sends_even_with_recorded_fingerprint(self):
        group = new_group()
        group.add(firing(), now=0)
        group.last_sent_fingerprint = payload_fingerprint(group.alerts.values())
        assert group.decide(30) == FlushDecision.SEND

    def test_skip_before_first_send_clears_deadline(self):
        group = new_group()
        group.add(firing(), now=0)
        group.mark_skipped()
        assert group.next_flush_at is None


class TestGrouper:
    def test_assign_creates_and_schedules(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        alert = firing(instance="a")

        group = grouper.assign(MATCH, alert, now=0)

        assert registry.groups[group.key] is group
        assert registry.groups_for(alert.fingerprint) == [group.key]
        assert registry.next_deadline() == 30

    def test_revoke_last_member_retires_group(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        alert = firing()
        group = grouper.assign(MATCH, alert, now=0)
        generation = group.generation

        grouper.revoke(group.key, alert.fingerprint, now=5)

        assert group.key not in registry.groups
        assert group.state == GroupState.RETIRED
        assert group.generation != generation
        assert registry.groups_for(alert.fingerprint) == []


class TestRegistryTimers:
    """Timers for retired or rescheduled groups are dropped."""

    def test_pop_due_returns_due_groups_once(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        grouper.assign(MATCH, firing(instance="a"), now=0)
        grouper.assign(MATCH, firing(instance="b"), now=10)

        assert registry.pop_due(29) == []
        due = registry.pop_due(30)
        assert len(due) == 1
        assert registry.pop_due(31) == []

    def test_retired_group_timer_is_stale(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        alert = firing()
        group = grouper.assign(MATCH, alert, now=0)
        grouper.revoke(group.key, alert.fingerprint, now=1)

        assert registry.pop_due(1000) == []
        assert registry.next_deadline() is None

    def test_recreated_group_ignores_old_generation(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        alert = firing()
        old = grouper.assign(MATCH, alert, now=0)
        grouper.revoke(old.key, alert.fingerprint, now=1)
        new = grouper.assign(MATCH, alert, now=100)

        assert registry.pop_due(30) == []
        assert registry.pop_due(130) == [new]

    def test_rescheduled_deadline_supersedes_old_entry(self):
        registry = AlertRegistry()
        grouper = Grouper(registry)
        group = grouper.assign(MATCH, firing(), now=0)
        with group.lock:
            group.next_flush_at = 100
            registry.schedule(group)

        assert registry.pop_due(30) == []
        assert registry.pop_due(100) == [group]

    def test_close_clears_state(self):
        registry = AlertRegistry()
        registry.open()
        Grouper(registry).assign(MATCH, firing(), now=0)
        registry.close()

        assert not registry.is_open
        assert registry.groups == {}
        assert registry.next_deadline() is None
