"""
Send gate - at most one notification per (user, kind, hour bucket).

The default store lives in process memory. Several scheduler processes
must share a RedisSendGateStore instead.
"""
import os
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Protocol

import redis

from scheduler.config import SEND_GATE_KEY_PREFIX, SEND_GATE_TTL_SECONDS
from utils.logging_setup import get_logger
from utils.time_utils import get_jst_time_aware, to_jst

logger = get_logger(service="scheduler")

# Redis settings from environment variables
REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
REDIS_DB = int(os.environ.get("REDIS_DB", 0))

# Global client (singleton)
_redis_client: Optional[redis.Redis] = None


def get_redis() -> Optional[redis.Redis]:
    """
    Get the Redis client (singleton).
    Returns None if Redis is unavailable.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    try:
        _redis_client = redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            db=REDIS_DB,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        _redis_client.ping()
        logger.info(f"Redis connected: {REDIS_HOST}:{REDIS_PORT}")
        return _redis_client
    except redis.ConnectionError as e:
        logger.warning(f"Redis unavailable: {e}. Falling back to in-memory send gate.")
        _redis_client = None
        return None
    except Exception as e:
        logger.warning(f"Redis error: {e}. Falling back to in-memory send gate.")
        _redis_client = None
        return None


def bucket_key(user_id: str, notification_type: str, reference_time: datetime) -> str:
    """"<user>_<type>_<YYYY-MM-DD>_<HH>" in JST"""
    local = to_jst(reference_time)
    return f"{user_id}_{notification_type}_{local.strftime('%Y-%m-%d_%H')}"


class SendGateStore(Protocol):
    def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        ...


class InMemorySendGateStore:
    """Process-local buckets; entries older than their TTL are pruned on every add."""

    def __init__(self, monotonic: Callable[[], float] = time.monotonic):
        self.monotonic = monotonic
        self._expires_at: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._expires_at)

    def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        now = self.monotonic()
        expired = [k for k, expires_at in self._expires_at.items() if expires_at <= now]
        for k in expired:
            del self._expires_at[k]

        if key in self._expires_at:
            return False
        self._expires_at[key] = now + ttl_seconds
        return True


class RedisSendGateStore:
    """Buckets shared between processes through SET NX EX."""

    def __init__(self, client: redis.Redis, prefix: str = SEND_GATE_KEY_PREFIX):
        self.client = client
        self.prefix = prefix

    def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        try:
            return bool(self.client.set(f"{self.prefix}{key}", "1", nx=True, ex=ttl_seconds))
        except Exception as e:
            # Not sending beats sending twice
            logger.error(f"Redis SET NX failed for {key}: {e}")
            return False


class SendGate:
    """Refuses a second send of the same kind to the same user within one clock hour."""

    def __init__(
        self,
        store: Optional[SendGateStore] = None,
        ttl_seconds: int = SEND_GATE_TTL_SECONDS,
        clock: Callable[[], datetime] = get_jst_time_aware,
    ):
        self.store = store if store is not None else InMemorySendGateStore()
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def try_acquire(self, user_id: str, notification_type: str, reference_time: Optional[datetime] = None) -> bool:
        """
        Claim the bucket of (user, type, reference hour).

        Returns:
            True the first time a bucket is claimed, False afterwards.
            The caller must not send on False.
        """
        key = bucket_key(user_id, notification_type, reference_time or self.clock())
        acquired = self.store.add_if_absent(key, self.ttl_seconds)
        if not acquired:
            logger.bind(user_id=user_id).info(f"Already sent: {key}")
        return acquired


def create_send_gate() -> SendGate:
    """Redis-backed gate when Redis answers, in-memory otherwise."""
    client = get_redis()
    if client is not None:
        return SendGate(RedisSendGateStore(client))
    return SendGate()
