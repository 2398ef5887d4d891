"""
Mutual exclusion for admission and reschedule on a per-session basis.

A session key is ``"{date}|{HH:MM}|{instructor_id}"``. When ``redis_url``
is configured the lock is a Redis ``SET NX EX`` key shared by every
worker; otherwise (or when Redis is unreachable) an in-process lock is
used, which still serializes threads of one worker.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import uuid

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import SessionBusyException

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.05

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

# key -> (lock, number of holders and waiters); dropped when the count hits zero
_LOCAL_LOCKS: Dict[str, Tuple[threading.Lock, int]] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

# Delete only while the key still carries our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _lock_key(session_key: str) -> str:
    return f"session:{session_key}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("session_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _checkout_local_lock(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock, users = _LOCAL_LOCKS.get(key, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _LOCAL_LOCKS[key] = (lock, users + 1)
        return lock


def _return_local_lock(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock, users = _LOCAL_LOCKS[key]
        if users <= 1:
            del _LOCAL_LOCKS[key]
        else:
            _LOCAL_LOCKS[key] = (lock, users - 1)
        return lock


class SessionLockManager:
    """Acquire several session locks at once, always in sorted key order."""

    def __init__(
        self,
        redis_client: Optional[Redis] = None,
        ttl_s: Optional[int] = None,
        wait_s: Optional[float] = None,
    ):
        self._redis = redis_client
        self.ttl_s = ttl_s if ttl_s is not None else settings.session_lock_ttl_s
        self.wait_s = wait_s if wait_s is not None else settings.session_lock_wait_s

    def _client(self) -> Optional[Redis]:
        return self._redis if self._redis is not None else _get_sync_redis()

    def _acquire_redis(self, client: Redis, key: str, token: str) -> Optional[bool]:
        """Return True/False for acquired/timed out, None when Redis errored."""
        deadline = time.monotonic() + self.wait_s
        namespaced = _namespaced_key(_lock_key(key))
        while True:
            try:
                if client.set(namespaced, token, nx=True, ex=self.ttl_s):
                    prometheus_metrics.record_session_lock("acquire", "redis", "success")
                    return True
            except Exception as exc:
                prometheus_metrics.record_session_lock("acquire", "redis", "error")
                logger.warning(
                    "session_lock_redis_acquire_failed",
                    extra={"session_key": key, "error": str(exc), "error_type": type(exc).__name__},
                )
                return None
            if time.monotonic() >= deadline:
                prometheus_metrics.record_session_lock("acquire", "redis", "blocked")
                return False
            time.sleep(_POLL_INTERVAL_S)

    def _release_redis(self, client: Redis, key: str, token: str) -> None:
        namespaced = _namespaced_key(_lock_key(key))
        try:
            release = client.register_script(_RELEASE_SCRIPT)
            if release(keys=[namespaced], args=[token]):
                prometheus_metrics.record_session_lock("release", "redis", "success")
            else:
                # TTL expired and another request now owns the key
                prometheus_metrics.record_session_lock("release", "redis", "not_owner")
        except Exception as exc:
            prometheus_metrics.record_session_lock("release", "redis", "error")
            logger.warning(
                "session_lock_redis_release_failed",
                extra={"session_key": key, "error": str(exc), "error_type": type(exc).__name__},
            )

    def _acquire_local(self, key: str) -> bool:
        acquired = _checkout_local_lock(key).acquire(timeout=self.wait_s)
        if not acquired:
            _return_local_lock(key)
        prometheus_metrics.record_session_lock(
            "acquire", "local", "success" if acquired else "blocked"
        )
        return acquired

    def _release_local(self, key: str) -> None:
        _return_local_lock(key).release()
        prometheus_metrics.record_session_lock("release", "local", "success")

    def _release_all(self, held: List[Tuple[str, str, Optional[Redis]]], token: str) -> None:
        for key, backend, client in reversed(held):
            if backend == "redis" and client is not None:
                self._release_redis(client, key, token)
            else:
                self._release_local(key)

    @contextmanager
    def hold(self, session_keys: Iterable[str]) -> Iterator[List[str]]:
        """
        Hold every lock in ``session_keys`` for the duration of the block.

        Raises:
            SessionBusyException: if any lock is not obtained within ``wait_s``
        """
        keys = sorted(set(session_keys))
        token = uuid.uuid4().hex
        held: List[Tuple[str, str, Optional[Redis]]] = []
        client = self._client()

        try:
            for key in keys:
                acquired: Optional[bool] = None
                if client is not None:
                    acquired = self._acquire_redis(client, key, token)
                    if acquired:
                        held.append((key, "redis", client))
                        continue
                    if acquired is False:
                        raise SessionBusyException(key, self.wait_s)
                    logger.warning(
                        "session_lock_degraded_to_local", extra={"session_key": key}
                    )
                if not self._acquire_local(key):
                    raise SessionBusyException(key, self.wait_s)
                held.append((key, "local", None))
        except Exception:
            self._release_all(held, token)
            raise

        try:
            yield keys
        finally:
            self._release_all(held, token)
