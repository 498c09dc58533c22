"""In-memory priority queue for import jobs (single process).

- Lower numeric priority value is served first; ties are FIFO.
- One pending job per key: enqueueing a key that is already waiting is
  rejected, and ``discard(key)`` drops a waiting job (cancellation before
  the worker picks it up).
- Capacity limits from QUEUE_SETTINGS; thread-safe via a condition variable.

Discarded items stay in the heap flagged and are skipped on dequeue.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
import heapq
import threading
import time

from reach_planning.config import QUEUE_SETTINGS
from reach_planning.utils import get_logger

logger = get_logger(__name__)


@dataclass(order=True)
class QueueItem:
    sort_key: tuple = field(init=False, repr=False)
    priority_value: int
    seq: int
    job: Any = field(compare=False)
    key: str = field(compare=False)
    priority_label: str = field(compare=False)
    enqueued_at: float = field(compare=False)
    discarded: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        self.sort_key = (self.priority_value, self.seq)


def _job_key(job: Any) -> str:
    key = getattr(job, "key", None)
    return key() if callable(key) else str(id(job))


class PriorityJobQueue:
    def __init__(self) -> None:
        priorities = QUEUE_SETTINGS.get("priorities", {})
        self._priorities: dict[str, int] = dict(priorities) if isinstance(priorities, dict) else {"normal": 5}
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 100))  # type: ignore[arg-type]
        self._capacity = int(QUEUE_SETTINGS.get("max_in_memory", 1000))  # type: ignore[arg-type]
        self._cv = threading.Condition(threading.RLock())
        self._heap: list[QueueItem] = []
        self._pending: dict[str, QueueItem] = {}
        self._seq = 0
        self._closed = False

    def _pop_next(self) -> Optional[QueueItem]:
        while self._heap:
            item = heapq.heappop(self._heap)
            if not item.discarded:
                self._pending.pop(item.key, None)
                return item
        return None

    def enqueue(self, job: Any, *, priority: str = "normal") -> QueueItem:
        with self._cv:
            if self._closed:
                raise RuntimeError("Queue shutdown")
            if priority not in self._priorities:
                raise ValueError(f"Unknown priority '{priority}'")
            if self.depth() >= self._capacity:
                raise OverflowError("Queue capacity exceeded")
            key = _job_key(job)
            if key in self._pending:
                raise ValueError(f"Job '{key}' is already queued")
            self._seq += 1
            item = QueueItem(
                priority_value=self._priorities[priority],
                seq=self._seq,
                job=job,
                key=key,
                priority_label=priority,
                enqueued_at=time.time(),
            )
            heapq.heappush(self._heap, item)
            self._pending[key] = item
            depth = self.depth()
            if depth >= self._warn_depth:
                logger.warning("Queue depth warning", depth=depth)
            self._cv.notify()
            return item

    def dequeue(self, *, block: bool = True, timeout: Optional[float] = None) -> Any:
        """Next job, or None when non-blocking/timed out/shut down and drained."""
        deadline = None if timeout is None else time.time() + timeout
        with self._cv:
            while True:
                item = self._pop_next()
                if item is not None:
                    return item.job
                if self._closed or not block:
                    return None
                remaining = None if deadline is None else deadline - time.time()
                if remaining is not None and remaining <= 0:
                    return None
                self._cv.wait(timeout=remaining)

    def discard(self, key: str) -> bool:
        """Drop a job that has not been handed to a worker yet."""
        with self._cv:
            item = self._pending.pop(key, None)
            if item is None:
                return False
            item.discarded = True
            return True

    def shutdown(self) -> None:
        with self._cv:
            self._closed = True
            self._cv.notify_all()

    def purge(self) -> None:
        """Remove every waiting job (test isolation)."""
        with self._cv:
            self._heap.clear()
            self._pending.clear()
            self._cv.notify_all()

    def depth(self) -> int:
        return len(self._pending)

    def __len__(self) -> int:
        return self.depth()

    def snapshot(self) -> dict:
        with self._cv:
            return {
                "depth": self.depth(),
                "shutdown": self._closed,
            }


__all__ = ["PriorityJobQueue", "QueueItem"]
