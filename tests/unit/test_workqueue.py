import time
from threading import Thread

import pytest

from vpc_controller.workqueue import ExponentialBackoff, RateLimitingQueue


def test_pending_items_are_deduplicated():
    queue = RateLimitingQueue()

    queue.add("a")
    queue.add("a")
    queue.add("b")

    assert len(queue) == 2
    assert queue.get(timeout=0) == "a"
    assert queue.get(timeout=0) == "b"
    assert queue.get(timeout=0) is None


def test_item_added_while_processing_is_requeued_on_done():
    queue = RateLimitingQueue()
    queue.add("a")

    item = queue.get(timeout=0)
    queue.add("a")

    # Not handed to a second worker while the first still holds it.
    assert queue.get(timeout=0) is None

    queue.done(item)
    assert queue.get(timeout=0) == "a"


def test_done_without_readd_drops_item():
    queue = RateLimitingQueue()
    queue.add("a")

    queue.done(queue.get(timeout=0))

    assert len(queue) == 0


def test_add_after_delays_item():
    queue = RateLimitingQueue()

    queue.add_after("a", 0.05)
    assert queue.get(timeout=0) is None

    start = time.monotonic()
    assert queue.get(timeout=1.0) == "a"
    assert time.monotonic() - start >= 0.03


def test_add_after_keeps_earliest_deadline():
    queue = RateLimitingQueue()

    queue.add_after("a", 10.0)
    queue.add_after("a", 0.01)

    assert queue.get(timeout=1.0) == "a"
    queue.done("a")
    assert queue.get(timeout=0.05) is None


def test_backoff_grows_and_resets():
    backoff = ExponentialBackoff(base_delay=0.01, max_delay=0.05)

    delays = [backoff.when("a") for _ in range(5)]

    assert delays == pytest.approx([0.01, 0.02, 0.04, 0.05, 0.05])
    assert backoff.num_requeues("a") == 5
    assert backoff.when("b") == pytest.approx(0.01)

    backoff.forget("a")
    assert backoff.num_requeues("a") == 0
    assert backoff.when("a") == pytest.approx(0.01)


def test_backoff_caps_large_exponents():
    backoff = ExponentialBackoff(base_delay=1.0, max_delay=1000.0)

    for _ in range(100):
        delay = backoff.when("a")

    assert delay == 1000.0


def test_backoff_rejects_invalid_bounds():
    with pytest.raises(ValueError):
        ExponentialBackoff(base_delay=0)
    with pytest.raises(ValueError):
        ExponentialBackoff(base_delay=2.0, max_delay=1.0)


def test_add_rate_limited_uses_backoff():
    queue = RateLimitingQueue(ExponentialBackoff(base_delay=0.01, max_delay=1.0))

    queue.add_rate_limited("a")

    assert queue.num_requeues("a") == 1
    assert queue.get(timeout=1.0) == "a"

    queue.forget("a")
    assert queue.num_requeues("a") == 0


def test_shutdown_wakes_blocked_consumers():
    queue = RateLimitingQueue()
    results = []

    consumer = Thread(target=lambda: results.append(queue.get()))
    consumer.start()
    time.sleep(0.05)
    queue.shut_down()
    consumer.join(timeout=1.0)

    assert not consumer.is_alive()
    assert results == [None]
    assert queue.shutting_down


def test_adds_after_shutdown_are_ignored():
    queue = RateLimitingQueue()
    queue.shut_down()

    queue.add("a")
    queue.add_after("b", 0.01)

    assert len(queue) == 0
