"""
Database-backed collaborators - settings provider, metrics source and snapshot history.
"""
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from alerts.models import MetricSnapshot
from database import crud
from sources.base import MetricsSourceError
from sources.metrics_source import MetaMetricsSource
from sources.settings_provider import SETTINGS_KEY, DbSettingsProvider

FULL_SETTINGS = {
    "chatwork_api_token": "cw-token",
    "chatwork_room_id": "123",
    "meta_access_token": "meta-token",
    "meta_account_id": "act_1",
    "target_daily_budget": "20000",
    "target_ctr": 1.5,
    "target_cpa": "3000",
    "update_notifications_enabled": False,
}


@pytest.fixture
def users(db):
    crud.create_user(db, "u1", "alice")
    crud.create_user(db, "u2", "bob")
    crud.create_user(db, "u3", "carol", is_active=False)
    crud.set_user_setting(db, "u1", SETTINGS_KEY, FULL_SETTINGS)
    crud.set_user_setting(db, "u2", SETTINGS_KEY, {"chatwork_api_token": "x"})
    crud.set_user_setting(db, "u3", SETTINGS_KEY, FULL_SETTINGS)
    return db


def test_active_users_need_credentials(session_factory, users):
    assert DbSettingsProvider(session_factory).active_users() == ["u1"]


def test_chat_delivery_can_be_switched_off(session_factory, users):
    crud.set_user_setting(users, "u1", SETTINGS_KEY, {**FULL_SETTINGS, "enable_chatwork": False})

    assert DbSettingsProvider(session_factory).active_users() == []


def test_targets_and_credentials(session_factory, users):
    provider = DbSettingsProvider(session_factory)

    assert provider.targets("u1") == {"ctr": 1.5, "cpa": "3000"}
    credentials = provider.channel_credentials("u1")
    assert (credentials.token, credentials.room_id) == ("cw-token", "123")
    assert provider.channel_credentials("u2") is None
    assert provider.channel_credentials("nobody") is None


def test_notification_settings_default_to_enabled(session_factory, users):
    settings = DbSettingsProvider(session_factory).notification_settings("u1")

    assert settings.is_enabled("daily") is True
    assert settings.is_enabled("alert") is True
    assert settings.is_enabled("update") is False


def test_ads_account(session_factory, users):
    provider = DbSettingsProvider(session_factory)

    account = provider.ads_account("u1")
    assert (account.access_token, account.account_id, account.daily_budget) == ("meta-token", "act_1", 20000.0)
    assert provider.ads_account("u2") is None


def test_fetch_snapshot_uses_latest_row(session_factory, users):
    fetch = MagicMock(return_value=[
        {"date": "2026-10-16", "ctr": 0.5},
        {"date": "2026-10-17", "ctr": 1.1, "cpa": 2500},
    ])
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory, fetch_daily_stats=fetch)

    snapshot = source.fetch_snapshot("u1")

    assert snapshot.date == date(2026, 10, 17)
    assert snapshot.values["ctr"] == 1.1
    assert snapshot.values["cpa"] == 2500.0
    assert fetch.call_args.kwargs["daily_budget"] == 20000.0
    assert fetch.call_args.kwargs["date_preset"] == "today"


def test_fetch_snapshot_without_account_or_data(session_factory, users):
    fetch = MagicMock(return_value=[])
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory, fetch_daily_stats=fetch)

    assert source.fetch_snapshot("u2") is None
    fetch.assert_not_called()
    assert source.fetch_snapshot("u1") is None


def test_fetch_snapshot_propagates_api_errors(session_factory, users):
    fetch = MagicMock(side_effect=MetricsSourceError("down"))
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory, fetch_daily_stats=fetch)

    with pytest.raises(MetricsSourceError):
        source.fetch_snapshot("u1")


def test_yesterday_snapshot_is_recorded_for_replay(session_factory, users):
    fetch = MagicMock(return_value=[{"date": "2026-10-17", "ctr": 1.1}])
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory, fetch_daily_stats=fetch)

    source.fetch_snapshot("u1", date_preset="yesterday")
    series = source.fetch_series("u1", 30)

    assert [s.date for s in series] == [date(2026, 10, 17)]
    assert series[0].values["ctr"] == 1.1


def test_synthetic_snapshots_are_never_recorded(session_factory, users):
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory)
    fake = MetricSnapshot(date=date(2026, 10, 17), values={"ctr": 1.0}, synthetic=True)

    assert source.record_snapshot("u1", fake) is False
    assert source.fetch_series("u1", 30) == []


def test_series_is_newest_days_oldest_first(session_factory, users):
    source = MetaMetricsSource(DbSettingsProvider(session_factory), session_factory)
    start = date(2026, 10, 1)
    for offset in range(5):
        source.record_snapshot("u1", MetricSnapshot(date=start + timedelta(days=offset), values={"ctr": offset}))

    series = source.fetch_series("u1", 3)

    assert [s.date for s in series] == [date(2026, 10, 3), date(2026, 10, 4), date(2026, 10, 5)]
    assert source.fetch_series("u1", 0) == []


def test_snapshot_history_is_capped_per_user(users):
    start = date(2026, 1, 1)
    for offset in range(5):
        crud.save_daily_snapshot(users, "u1", start + timedelta(days=offset), {"ctr": 1.0}, keep_last=3)

    rows = crud.get_daily_snapshots(users, "u1", 10)
    assert [r.stats_date for r in rows] == [date(2026, 1, 3), date(2026, 1, 4), date(2026, 1, 5)]


def test_saving_the_same_day_overwrites(users):
    crud.save_daily_snapshot(users, "u1", date(2026, 1, 1), {"ctr": 1.0})
    crud.save_daily_snapshot(users, "u1", date(2026, 1, 1), {"ctr": 2.0})

    rows = crud.get_daily_snapshots(users, "u1", 10)
    assert len(rows) == 1
    assert rows[0].values == {"ctr": 2.0}
