from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)


class TaskRunner(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        raise NotImplementedError


class BackgroundRunner:
    """Runs job bodies off the caller's path; the caller gets a Future back.

    Terminal state is reported through the persisted job/check record, the
    Future only exists for callers that stay around (scripts, tests).
    """

    def __init__(self, *, max_workers: int = 4, thread_name_prefix: str = "timesheet-sync"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(_log_crash)
        return future

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class InlineRunner:
    """Runs the task immediately on the calling thread (scripts and tests)."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
            _log_crash(future)
        return future


def _log_crash(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background task crashed: %s", exc, exc_info=exc)


class PendingTasks:
    """Futures of tasks still running, keyed by job/check id.

    An entry is dropped as soon as its future is done, so finished work is
    only reachable through the persisted record.
    """

    def __init__(self):
        self._futures: Dict[Hashable, Future] = {}
        self._lock = Lock()

    def track(self, key: Hashable, future: Future) -> None:
        with self._lock:
            self._futures[key] = future
        # fires right away when the future is already done
        future.add_done_callback(lambda _done: self._forget(key, future))

    def _forget(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._futures.get(key) is future:
                del self._futures[key]

    def wait(self, key: Hashable, timeout: Optional[float] = None) -> Any:
        """Block until the task finishes; None when it already had."""
        with self._lock:
            future = self._futures.get(key)
        if future is None:
            return None
        return future.result(timeout=timeout)

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)
