"""Deduplicating, rate limited work queue.

Semantics follow the usual controller work queue:

* an item is pending at most once; adding it again while pending is a no-op;
* an item handed out by :meth:`RateLimitingQueue.get` is *processing* until
  :meth:`RateLimitingQueue.done` is called. Re-adding it meanwhile marks it
  dirty and it is queued again on ``done``, so one key is never processed by
  two workers at the same time;
* delayed adds keep the earliest ready time when the same item is delayed
  more than once.
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections import deque
from threading import Condition, Lock
from typing import Deque, Dict, Hashable, List, Optional, Set, Tuple

DEFAULT_BASE_DELAY = 0.005
DEFAULT_MAX_DELAY = 1000.0


class ExponentialBackoff:
    """Per-item exponential backoff: ``base * 2**failures`` capped at ``max``."""

    def __init__(
        self,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ) -> None:
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("backoff requires 0 < base_delay <= max_delay")
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            exp = self._failures.get(item, 0)
            self._failures[item] = exp + 1
        # 2**exp grows past any sane max long before it overflows a float.
        if exp > 62:
            return self._max_delay
        return min(self._base_delay * (2 ** exp), self._max_delay)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)


class RateLimitingQueue:
    def __init__(self, rate_limiter: Optional[ExponentialBackoff] = None) -> None:
        self._rate_limiter = rate_limiter or ExponentialBackoff()
        self._cond = Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._waiting: List[Tuple[float, int, Hashable]] = []
        self._ready_at: Dict[Hashable, float] = {}
        self._counter = itertools.count()
        self._shutting_down = False

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    def add(self, item: Hashable) -> None:
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: Hashable) -> None:
        if self._shutting_down or item in self._dirty:
            return
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        self._cond.notify()

    def add_after(self, item: Hashable, delay: float) -> None:
        if delay <= 0:
            self.add(item)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = time.monotonic() + delay
            current = self._ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._ready_at[item] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._counter), item))
            self._cond.notify()

    def add_rate_limited(self, item: Hashable) -> None:
        self.add_after(item, self._rate_limiter.when(item))

    def forget(self, item: Hashable) -> None:
        self._rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self._rate_limiter.num_requeues(item)

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------
    def _promote_ready_locked(self) -> Optional[float]:
        """Move due delayed items to the queue; return the next ready time."""

        now = time.monotonic()
        while self._waiting:
            ready_at, _, item = self._waiting[0]
            if self._ready_at.get(item) != ready_at:
                # superseded by an earlier add_after for the same item
                heapq.heappop(self._waiting)
                continue
            if ready_at > now:
                return ready_at
            heapq.heappop(self._waiting)
            del self._ready_at[item]
            self._add_locked(item)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """Block until an item is ready and mark it as processing.

        Returns ``None`` when ``timeout`` expires or the queue is shut down.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                next_ready = self._promote_ready_locked()
                if self._queue:
                    item = self._queue.popleft()
                    self._processing.add(item)
                    self._dirty.discard(item)
                    return item
                if self._shutting_down:
                    return None

                now = time.monotonic()
                wait = None if next_ready is None else next_ready - now
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(None if wait is None else max(wait, 0.0))

    def done(self, item: Hashable) -> None:
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
