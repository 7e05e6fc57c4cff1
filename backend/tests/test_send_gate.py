"""
Send gate tests - hour buckets, TTL pruning and the Redis store.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import redis

from scheduler.send_gate import InMemorySendGateStore, RedisSendGateStore, SendGate, bucket_key
from utils.time_utils import JST_TZ

TEN_AM = datetime(2026, 10, 18, 10, 5, tzinfo=JST_TZ)


def test_bucket_key_format():
    assert bucket_key("u1", "alert", TEN_AM) == "u1_alert_2026-10-18_10"
    assert bucket_key("u1", "daily", datetime(2026, 10, 18, 9, 0)) == "u1_daily_2026-10-18_09"


def test_bucket_key_uses_jst_hour():
    utc = datetime(2026, 10, 18, 1, 5, tzinfo=timezone.utc)
    assert bucket_key("u1", "alert", utc) == "u1_alert_2026-10-18_10"


def test_same_hour_is_acquired_once():
    gate = SendGate()

    assert gate.try_acquire("u1", "alert", TEN_AM) is True
    assert gate.try_acquire("u1", "alert", TEN_AM + timedelta(minutes=50)) is False


def test_next_hour_is_a_new_bucket():
    gate = SendGate()
    gate.try_acquire("u1", "alert", TEN_AM)

    assert gate.try_acquire("u1", "alert", TEN_AM + timedelta(hours=1)) is True


def test_buckets_are_per_user_and_type():
    gate = SendGate()
    gate.try_acquire("u1", "alert", TEN_AM)

    assert gate.try_acquire("u2", "alert", TEN_AM) is True
    assert gate.try_acquire("u1", "daily", TEN_AM) is True


def test_default_reference_time_is_the_clock():
    gate = SendGate(clock=lambda: TEN_AM)

    assert gate.try_acquire("u1", "update") is True
    assert gate.try_acquire("u1", "update", TEN_AM) is False


def test_in_memory_store_prunes_expired_entries():
    now = [0.0]
    store = InMemorySendGateStore(monotonic=lambda: now[0])
    store.add_if_absent("a", 60)
    store.add_if_absent("b", 60)
    assert len(store) == 2

    now[0] = 61.0
    assert store.add_if_absent("c", 60) is True
    assert len(store) == 1
    assert store.add_if_absent("a", 60) is True


def test_redis_store_uses_set_nx_with_ttl():
    client = MagicMock()
    client.set.side_effect = [True, None]
    gate = SendGate(RedisSendGateStore(client, prefix="p:"), ttl_seconds=7200)

    assert gate.try_acquire("u1", "alert", TEN_AM) is True
    assert gate.try_acquire("u1", "alert", TEN_AM) is False
    client.set.assert_called_with("p:u1_alert_2026-10-18_10", "1", nx=True, ex=7200)


def test_redis_error_means_not_acquired():
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("down")

    assert SendGate(RedisSendGateStore(client)).try_acquire("u1", "alert", TEN_AM) is False
