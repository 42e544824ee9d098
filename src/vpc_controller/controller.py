"""Worker pool draining the work queue into a reconciler."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Hashable, List, Optional

from vpc_nics.exceptions import ConflictError

from .workqueue import RateLimitingQueue

LOG = logging.getLogger(__name__)


class Controller:
    """Run ``reconciler.reconcile(request)`` for queued requests.

    The controller is the single place where retry policy lives: successful
    passes reset backoff, explicit ``requeue_after`` results are delayed
    without backoff, conflicts are retried straight away and every other
    failure goes through the rate limiter.
    """

    def __init__(
        self,
        name: str,
        reconciler,
        queue: RateLimitingQueue,
        *,
        workers: int = 1,
        stop_event: Optional[Event] = None,
        poll_interval: float = 1.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._name = name
        self._reconciler = reconciler
        self._queue = queue
        self._workers = workers
        self._stop_event = stop_event or Event()
        self._poll_interval = poll_interval
        self._threads: List[Thread] = []

    @property
    def queue(self) -> RateLimitingQueue:
        return self._queue

    def start(self) -> None:
        LOG.info("Starting controller %s with %d workers", self._name, self._workers)
        for index in range(self._workers):
            thread = Thread(
                target=self._run_worker,
                name=f"{self._name}-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        self._queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
        LOG.info("Controller %s stopped", self._name)

    def _run_worker(self) -> None:
        while not self._stop_event.is_set():
            if not self.process_next_item(timeout=self._poll_interval):
                if self._queue.shutting_down:
                    return

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        """Handle one queued request; return ``False`` if none was ready."""

        request = self._queue.get(timeout=timeout)
        if request is None:
            return False
        try:
            self._reconcile(request)
        finally:
            self._queue.done(request)
        return True

    def _reconcile(self, request: Hashable) -> None:
        try:
            result = self._reconciler.reconcile(request)
        except ConflictError as exc:
            LOG.info("Conflict while reconciling %s, retrying: %s", request, exc)
            self._queue.forget(request)
            self._queue.add(request)
            return
        except Exception:
            LOG.exception(
                "Reconciler error for %s (retry %d)",
                request,
                self._queue.num_requeues(request) + 1,
            )
            self._queue.add_rate_limited(request)
            return

        if result.requeue_after > 0:
            self._queue.forget(request)
            self._queue.add_after(request, result.requeue_after)
        elif result.requeue:
            self._queue.add_rate_limited(request)
        else:
            self._queue.forget(request)
