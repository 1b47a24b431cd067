from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterator


class TenantLocks:
    """Per-tenant advisory locks for mutating job bodies within one process.

    Cross-process exclusion for imports is handled by the active-job scope
    check at start time; this only serializes work inside a worker process.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}

    def _lock_for(self, tenant_id: str) -> RLock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = RLock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: str) -> Iterator[None]:
        lock = self._lock_for(tenant_id)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
