"""
Dispatcher tests - per-kind flow, send gate, pacing and failure isolation.
"""
from datetime import date, datetime, timedelta

from alerts.models import AlertStatus, MetricSnapshot, Severity
from alerts.store import AlertStore
from scheduler.dispatcher import NotificationDispatcher, NotificationKind
from scheduler.send_gate import SendGate
from utils.time_utils import JST_TZ

from conftest import FakeMetricsSource, FakeSettingsProvider, FakeSink, MemoryRepository, make_alert

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=JST_TZ)
TODAY = date(2026, 10, 18)


class Harness:
    def __init__(self, users=None, snapshots=None, sink=None, disabled=None, failing=None, stored=None):
        self.clock_value = NOW
        self.sleeps = []
        self.provider = FakeSettingsProvider(users, disabled)
        self.source = FakeMetricsSource(snapshots or {}, failing=failing)
        self.repository = MemoryRepository(stored)
        self.store = AlertStore(self.repository, clock=lambda: self.clock_value)
        self.sink = sink or FakeSink()
        self.dispatcher = NotificationDispatcher(
            self.provider,
            self.source,
            self.store,
            self.sink,
            send_gate=SendGate(),
            sleep=self.sleeps.append,
            clock=lambda: self.clock_value,
            dashboard_url="https://dash/",
        )

    def run(self, kind):
        return self.dispatcher.run_dispatch_cycle(kind)


def today(**values):
    return MetricSnapshot(date=TODAY, values=values)


def test_alert_cycle_evaluates_stores_and_sends_digest():
    h = Harness(users={"u1": {"ctr": 2.0}}, snapshots={"u1": today(ctr=1.0)})

    summary = h.run(NotificationKind.ALERT)

    assert (summary.total, summary.sent, summary.skipped, summary.failed) == (1, 1, 0, 0)
    assert len(h.sink.sent) == 1
    room, message = h.sink.sent[0]
    assert room == "room-u1"
    assert "🔴 CTR: target 2.0% → actual 1.0%" in message
    stored = h.store.query("u1", AlertStatus.ACTIVE)
    assert [a.severity for a in stored] == [Severity.CRITICAL]


def test_second_cycle_in_the_same_hour_sends_nothing():
    h = Harness(users={"u1": {"ctr": 2.0}}, snapshots={"u1": today(ctr=1.0)})

    h.run(NotificationKind.ALERT)
    second = h.run(NotificationKind.ALERT)

    assert len(h.sink.sent) == 1
    assert (second.sent, second.skipped) == (0, 1)


def test_next_hour_sends_again():
    h = Harness(users={"u1": {"ctr": 2.0}}, snapshots={"u1": today(ctr=1.0)})
    h.run(NotificationKind.ALERT)

    h.clock_value = NOW + timedelta(hours=1)
    h.run(NotificationKind.ALERT)

    assert len(h.sink.sent) == 2
    assert len(h.store.query("u1")) == 1


def test_no_active_alerts_skips_without_using_the_bucket():
    h = Harness(users={"u1": {"ctr": 2.0}}, snapshots={"u1": today(ctr=3.0)})

    summary = h.run(NotificationKind.ALERT)
    assert (summary.sent, summary.skipped) == (0, 1)
    assert h.sink.sent == []

    h.source.snapshots["u1"] = today(ctr=1.0)
    h.run(NotificationKind.ALERT)
    assert len(h.sink.sent) == 1


def test_stored_alerts_are_sent_when_metrics_are_unavailable():
    h = Harness(users={"u1": {"ctr": 2.0}}, stored=[make_alert(bucket_date=TODAY, timestamp=NOW)])

    summary = h.run(NotificationKind.ALERT)

    assert summary.sent == 1


def test_daily_report_uses_the_prior_day():
    yesterday = MetricSnapshot(date=date(2026, 10, 17), values={"spend": 5000, "ctr": 1.23})
    h = Harness(snapshots={"u1": yesterday})

    summary = h.run(NotificationKind.DAILY)

    assert summary.sent == 1
    assert h.source.calls == [("u1", "yesterday")]
    message = h.sink.sent[0][1]
    assert "(2026/10/17)" in message
    assert "Spend (total): 5,000" in message
    assert "CTR (avg): 1.2%" in message


def test_daily_report_without_data_is_skipped():
    h = Harness()

    summary = h.run(NotificationKind.DAILY)

    assert (summary.sent, summary.skipped) == (0, 1)
    assert h.sink.sent == []


def test_update_notification_needs_no_data():
    h = Harness(users={"u1": {}, "u2": {}})

    summary = h.run("update")

    assert summary.sent == 2
    assert h.source.calls == []
    assert all("https://dash/" in message for _, message in h.sink.sent)


def test_disabled_kind_is_skipped():
    h = Harness(users={"u1": {}, "u2": {}}, disabled={"u1": ["update"]})

    summary = h.run(NotificationKind.UPDATE)

    assert (summary.sent, summary.skipped) == (1, 1)
    assert [room for room, _ in h.sink.sent] == ["room-u2"]


def test_failures_do_not_stop_the_batch():
    users = {"u1": {"ctr": 2.0}, "u2": {"ctr": 2.0}, "u3": {"ctr": 2.0}}
    snapshots = {"u2": today(ctr=1.0), "u3": today(ctr=1.0)}
    sink = FakeSink(raise_for=["room-u3"])
    h = Harness(users=users, snapshots=snapshots, sink=sink, failing=["u1"])

    summary = h.run(NotificationKind.ALERT)

    assert (summary.total, summary.sent, summary.skipped, summary.failed) == (3, 1, 0, 2)
    assert [room for room, _ in h.sink.sent] == ["room-u2"]


def test_rejected_send_counts_as_failed():
    h = Harness(users={"u1": {}}, sink=FakeSink(result=False))

    summary = h.run(NotificationKind.UPDATE)

    assert summary.failed == 1


def test_pacing_between_users():
    h = Harness(users={"u1": {}, "u2": {}, "u3": {}})

    h.run(NotificationKind.UPDATE)

    assert h.sleeps == [1.0, 1.0]


def test_store_write_failure_still_sends_stored_alerts():
    h = Harness(users={"u1": {"ctr": 2.0}}, snapshots={"u1": today(ctr=1.0)},
                stored=[make_alert(metric_id="cpa", metric="CPA", bucket_date=TODAY, timestamp=NOW)])
    h.repository.fail_save = True

    summary = h.run(NotificationKind.ALERT)

    assert summary.sent == 1
    assert "CPA" in h.sink.sent[0][1]


def test_provider_failure_returns_empty_summary():
    def broken():
        raise RuntimeError("db down")

    h = Harness()
    h.provider.active_users = broken

    summary = h.run(NotificationKind.ALERT)

    assert (summary.total, summary.sent) == (0, 0)
