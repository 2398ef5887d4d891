# backend/tests/unit/test_session_lock.py
from __future__ import annotations

import threading
from typing import Dict, List, Optional
from unittest.mock import MagicMock
import uuid

import pytest

from alma_studio.core.exceptions import SessionBusyException
from alma_studio.core.session_lock import _LOCAL_LOCKS, SessionLockManager


class _FakeRedis:
    """Just enough of SET NX EX / GET / DELETE / scripts for the lock manager."""

    def __init__(self) -> None:
        self.store: Dict[str, str] = {}
        self.ttl: Dict[str, int] = {}
        self.scripts: List[str] = []

    def set(self, name: str, value: str, nx: bool = False, ex: Optional[int] = None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        if ex is not None:
            self.ttl[name] = ex
        return True

    def get(self, name: str):
        return self.store.get(name)

    def delete(self, name: str) -> int:
        return 1 if self.store.pop(name, None) is not None else 0

    def register_script(self, script: str):
        """Compare-and-delete, the only script the lock manager registers."""
        self.scripts.append(script)

        def run(keys, args):
            if self.store.get(keys[0]) == args[0]:
                return self.delete(keys[0])
            return 0

        return run


def _key() -> str:
    return f"2024-06-10|10:00|{uuid.uuid4().hex[:6]}"


class TestLocalLocks:
    def test_keys_are_sorted_and_deduplicated(self):
        a, b = _key(), _key()
        with SessionLockManager(wait_s=0.1).hold([b, a, b]) as keys:
            assert keys == sorted({a, b})

    def test_second_holder_times_out(self):
        key = _key()
        manager = SessionLockManager(wait_s=0.05)
        with manager.hold([key]):
            with pytest.raises(SessionBusyException) as exc_info:
                with SessionLockManager(wait_s=0.05).hold([key]):
                    pass
        assert exc_info.value.code == "SESSION_BUSY"
        # released on exit
        with manager.hold([key]):
            pass

    def test_partial_acquisition_is_rolled_back(self):
        first, second = sorted([_key(), _key()])
        manager = SessionLockManager(wait_s=0.05)
        with manager.hold([second]):
            with pytest.raises(SessionBusyException):
                with manager.hold([first, second]):
                    pass
            assert first not in _LOCAL_LOCKS
            assert _LOCAL_LOCKS[second][0].locked()

    def test_threads_are_serialized(self):
        key = _key()
        manager = SessionLockManager(wait_s=2.0)
        inside = []
        overlap = []

        def worker():
            with manager.hold([key]):
                if inside:
                    overlap.append(True)
                inside.append(True)
                threading.Event().wait(0.02)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert overlap == []

    def test_lock_table_is_pruned_after_release(self):
        key = _key()
        manager = SessionLockManager(wait_s=2.0)

        def worker():
            with manager.hold([key]):
                threading.Event().wait(0.01)

        threads = [threading.Thread(target=worker) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert key not in _LOCAL_LOCKS

    def test_timed_out_waiter_leaves_no_entry_behind(self):
        key = _key()
        with SessionLockManager(wait_s=0.05).hold([key]):
            with pytest.raises(SessionBusyException):
                with SessionLockManager(wait_s=0.05).hold([key]):
                    pass
            assert _LOCAL_LOCKS[key][1] == 1
        assert key not in _LOCAL_LOCKS


class TestRedisLocks:
    def test_acquires_and_releases_namespaced_key(self):
        client = _FakeRedis()
        key = _key()
        manager = SessionLockManager(redis_client=client, ttl_s=30, wait_s=0.1)
        with manager.hold([key]):
            redis_key = f"alma:lock:session:{key}:mutex"
            assert redis_key in client.store
            assert client.ttl[redis_key] == 30
        assert client.store == {}

    def test_busy_key_raises(self):
        client = _FakeRedis()
        key = _key()
        client.store[f"alma:lock:session:{key}:mutex"] = "someone-else"
        manager = SessionLockManager(redis_client=client, wait_s=0.05)
        with pytest.raises(SessionBusyException):
            with manager.hold([key]):
                pass
        # a lock owned by another token is never deleted
        assert client.store[f"alma:lock:session:{key}:mutex"] == "someone-else"

    def test_redis_errors_degrade_to_local_lock(self):
        client = MagicMock()
        client.set.side_effect = ConnectionError("redis down")
        key = _key()
        manager = SessionLockManager(redis_client=client, wait_s=0.05)
        with manager.hold([key]):
            assert _LOCAL_LOCKS[key][0].locked()
        assert client.set.called
        assert key not in _LOCAL_LOCKS
        client.delete.assert_not_called()

    def test_release_never_deletes_a_lock_taken_over_after_expiry(self):
        client = _FakeRedis()
        key = _key()
        redis_key = f"alma:lock:session:{key}:mutex"
        manager = SessionLockManager(redis_client=client, ttl_s=1, wait_s=0.1)
        with manager.hold([key]):
            # our key expired and another request re-acquired it
            client.store[redis_key] = "other-token"
        assert client.store[redis_key] == "other-token"
        assert len(client.scripts) == 1
