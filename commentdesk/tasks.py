"""Background task runners.

Work handed to a runner never fails the caller: exceptions are logged and
counted, and the counters are exported on ``/metrics``.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class TaskRunner(Protocol):
    """Protocol for fire-and-forget task execution."""

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...

    def stats(self) -> Dict[str, Dict[str, int]]:
        ...

    def shutdown(self) -> None:
        ...


class _CountingRunner:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[str, Counter] = {}

    def _record(self, name: str, outcome: str) -> None:
        with self._lock:
            self._counts.setdefault(name, Counter())[outcome] += 1

    def _run(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Any]:
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            self._record(name, "failed")
            logger.error(f"Background task {name} failed: {exc}", exc_info=True)
            return None
        self._record(name, "succeeded")
        return result

    def stats(self) -> Dict[str, Dict[str, int]]:
        """Per-task submitted/succeeded/failed counts."""
        with self._lock:
            return {
                name: {
                    "submitted": counts["submitted"],
                    "succeeded": counts["succeeded"],
                    "failed": counts["failed"],
                }
                for name, counts in self._counts.items()
            }


class InlineTaskRunner(_CountingRunner):
    """Runs tasks immediately in the caller's thread."""

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._record(name, "submitted")
        self._run(name, fn, *args, **kwargs)

    def shutdown(self) -> None:
        return None


class ThreadPoolTaskRunner(_CountingRunner):
    """Runs tasks on a small worker pool, off the request path."""

    def __init__(self, max_workers: int = 2):
        super().__init__()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="commentdesk-task"
        )

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        self._record(name, "submitted")
        return self._executor.submit(self._run, name, fn, *args, **kwargs)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
