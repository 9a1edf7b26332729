"""A work queue with de-duplication, delayed adds and per-item back-off."""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from collections.abc import Hashable

# Beyond this many failures the exponential delay always hits the cap.
_MAX_EXPONENT = 62


class ShutDownError(Exception):
    """The queue was shut down and holds no more items."""


class RateLimitingQueue:
    """Queue of hashable keys as used by controllers.

    An item is held at most once while waiting, and an item added while it
    is being processed is queued again only after ``done``. Retries back off
    per item exponentially from ``base_delay`` up to ``max_delay`` and are
    also limited overall by a token bucket of ``qps`` and ``burst``.
    """

    def __init__(
        self,
        name: str = "",
        *,
        base_delay: float = 0.005,
        max_delay: float = 1000.0,
        qps: float = 10.0,
        burst: int = 100,
    ) -> None:
        self.name = name
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._qps = qps
        self._burst = burst

        self._cond = threading.Condition()
        self._queue: deque[Hashable] = deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._shutting_down = False

        self._waiting: list[tuple[float, int, Hashable]] = []
        self._ready_at: dict[Hashable, float] = {}
        self._counter = itertools.count()
        self._waiter: threading.Thread | None = None

        self._failures: dict[Hashable, int] = {}
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, item: Hashable) -> None:
        """Queue ``item`` unless it is already waiting."""
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: Hashable) -> None:
        if self._shutting_down or item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        self._cond.notify_all()

    def add_after(self, item: Hashable, delay: float) -> None:
        """Queue ``item`` once ``delay`` seconds have passed."""
        with self._cond:
            if self._shutting_down:
                return
            if delay <= 0:
                self._add_locked(item)
                return
            ready_at = time.monotonic() + delay
            current = self._ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._ready_at[item] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._counter), item))
            if self._waiter is None:
                self._waiter = threading.Thread(
                    target=self._wait_loop, name=f"workqueue-{self.name}", daemon=True
                )
                self._waiter.start()
            self._cond.notify_all()

    def _wait_loop(self) -> None:
        with self._cond:
            while not self._shutting_down:
                now = time.monotonic()
                while self._waiting and self._waiting[0][0] <= now:
                    ready_at, _, item = heapq.heappop(self._waiting)
                    if self._ready_at.get(item) == ready_at:
                        del self._ready_at[item]
                        self._add_locked(item)
                timeout = self._waiting[0][0] - now if self._waiting else None
                self._cond.wait(timeout)

    def _exponential_delay(self, item: Hashable) -> float:
        exponent = self._failures.get(item, 0)
        self._failures[item] = exponent + 1
        if exponent > _MAX_EXPONENT:
            return self._max_delay
        return min(self._base_delay * 2**exponent, self._max_delay)

    def _bucket_delay(self) -> float:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._last_refill = now
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._qps)
        self._tokens -= 1
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self._qps

    def add_rate_limited(self, item: Hashable) -> None:
        """Queue ``item`` after its back-off delay and count a requeue."""
        with self._cond:
            delay = max(self._exponential_delay(item), self._bucket_delay())
            self.add_after(item, delay)

    def get(self) -> Hashable:
        """Block until an item is available and mark it as being processed.

        Raises ShutDownError once the queue is shut down and empty.
        """
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()
            if not self._queue:
                raise ShutDownError(f"queue {self.name!r} is shut down")
            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item

    def done(self, item: Hashable) -> None:
        """Finish processing ``item``; requeue it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify_all()

    def forget(self, item: Hashable) -> None:
        """Stop tracking back-off for ``item``."""
        with self._cond:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._cond:
            return self._failures.get(item, 0)

    def shut_down(self) -> None:
        """Refuse new items and wake every waiting consumer."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)