"""
Notification tests - message rendering and the Chatwork sink.
"""
from datetime import date
from unittest.mock import MagicMock, patch

import requests

from alerts.models import Severity
from scheduler.notifications import (
    ChatworkSink,
    format_alert_digest,
    format_daily_report,
    format_update_notification,
)
from sources.base import ChannelCredentials

from conftest import make_alert

LINKS = {"dashboard": "https://dash/", "tasks": "https://dash/tasks", "strategies": "https://dash/strategies"}


def digest_lines(message):
    return [line for line in message.splitlines() if line.startswith(("🔴", "⚠️"))]


def test_daily_report_formats_every_metric():
    values = {
        "spend": 12345.6, "budget_rate": 62.178, "ctr": 0.899888, "cpm": 1234.4,
        "cpa": 1926.884, "frequency": 1.26, "conversions": 6.6,
    }

    message = format_daily_report(values, date(2026, 10, 17), "https://dash/")

    assert "(2026/10/17)" in message
    assert "Spend (total): 12,346" in message
    assert "Budget rate (avg): 62%" in message
    assert "CTR (avg): 0.9%" in message
    assert "CPM (avg): 1,234" in message
    assert "CPA (avg): 1,927" in message
    assert "Frequency (avg): 1.3" in message
    assert "Conversions: 7" in message
    assert "https://dash/" in message


def test_daily_report_missing_values_are_zero():
    message = format_daily_report({}, date(2026, 10, 17))

    assert "Spend (total): 0" in message
    assert "CTR (avg): 0.0%" in message


def test_update_notification_is_fixed_text():
    assert format_update_notification("https://dash/") == format_update_notification("https://dash/")
    assert "https://dash/" in format_update_notification("https://dash/")


def test_digest_lists_critical_first():
    alerts = [
        make_alert(metric_id="cpa", metric="CPA", target_value=1000, current_value=1250),
        make_alert(metric_id="ctr", metric="CTR", severity=Severity.CRITICAL, target_value=2.0, current_value=1.0),
        make_alert(metric_id="cpm", metric="CPM", target_value=1000, current_value=1100),
    ]

    lines = digest_lines(format_alert_digest(alerts, date(2026, 10, 18), LINKS))

    assert lines == [
        "🔴 CTR: target 2.0% → actual 1.0%",
        "⚠️ CPA: target 1,000 → actual 1,250",
        "⚠️ CPM: target 1,000 → actual 1,100",
    ]


def test_digest_shows_ten_alerts_and_the_rest_as_a_count():
    alerts = [
        make_alert(metric_id="cpa", metric=f"M{i}", target_value=1000, current_value=1100,
                   severity=Severity.CRITICAL if i % 3 == 0 else Severity.WARNING)
        for i in range(12)
    ]

    message = format_alert_digest(alerts, date(2026, 10, 18), LINKS)
    lines = digest_lines(message)

    assert len(lines) == 10
    assert all(line.startswith("🔴") for line in lines[:4])
    assert "+2 more" in message


def test_digest_header_and_footer():
    message = format_alert_digest([make_alert()], date(2026, 10, 18), LINKS)

    assert message.startswith("[info][title]Meta Ads alerts (2026/10/18)[/title]")
    assert message.endswith("[/info]")
    assert "https://dash/tasks" in message
    assert "https://dash/strategies" in message
    assert "more" not in message


def test_sink_posts_to_the_room():
    response = MagicMock(status_code=200, text="{}")
    with patch("scheduler.notifications.requests.post", return_value=response) as post:
        ok = ChatworkSink(base_url="https://cw/v2").send(ChannelCredentials("tok", "42"), "hello")

    assert ok is True
    post.assert_called_once_with(
        "https://cw/v2/rooms/42/messages",
        headers={"X-ChatWorkToken": "tok"},
        data={"body": "hello"},
        timeout=10,
    )


def test_sink_reports_rejection_and_errors():
    sink = ChatworkSink(base_url="https://cw/v2")
    credentials = ChannelCredentials("tok", "42")

    with patch("scheduler.notifications.requests.post", return_value=MagicMock(status_code=401, text="bad token")):
        assert sink.send(credentials, "hello") is False

    with patch("scheduler.notifications.requests.post", side_effect=requests.Timeout("slow")):
        assert sink.send(credentials, "hello") is False


def test_sink_without_credentials_does_not_post():
    with patch("scheduler.notifications.requests.post") as post:
        assert ChatworkSink().send(ChannelCredentials("", "42"), "hello") is False
    post.assert_not_called()
