import threading
import time

import pytest

from lstorage.workqueue import RateLimitingQueue, ShutDownError


def _get_in_thread(queue, timeout=3.0):
    result = {}

    def worker():
        try:
            result["item"] = queue.get()
        except ShutDownError as exc:
            result["error"] = exc

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    thread.join(timeout)
    return result


def test_add_deduplicates():
    queue = RateLimitingQueue("test")
    queue.add("a")
    queue.add("a")
    queue.add("b")
    assert len(queue) == 2
    assert [queue.get(), queue.get()] == ["a", "b"]


def test_item_added_while_processing_waits_for_done():
    queue = RateLimitingQueue()
    queue.add("a")
    assert queue.get() == "a"
    queue.add("a")
    assert len(queue) == 0
    queue.done("a")
    assert len(queue) == 1
    assert queue.get() == "a"


def test_done_without_readd_leaves_queue_empty():
    queue = RateLimitingQueue()
    queue.add("a")
    queue.done(queue.get())
    assert len(queue) == 0


def test_shut_down_drains_then_raises():
    queue = RateLimitingQueue()
    queue.add("a")
    queue.shut_down()
    assert queue.shutting_down
    assert queue.get() == "a"
    with pytest.raises(ShutDownError):
        queue.get()
    queue.add("b")
    assert len(queue) == 0


def test_shut_down_wakes_blocked_consumer():
    queue = RateLimitingQueue()
    threading.Timer(0.05, queue.shut_down).start()
    result = _get_in_thread(queue)
    assert sorted(result) == ["error"]
    assert type(result["error"]) is ShutDownError
    assert queue.shutting_down is True
    assert len(queue) == 0


def test_blocked_get_receives_added_item():
    queue = RateLimitingQueue()
    threading.Timer(0.05, queue.add, args=("late",)).start()
    assert _get_in_thread(queue) == {"item": "late"}


def test_add_after_delays_item():
    queue = RateLimitingQueue()
    start = time.monotonic()
    queue.add_after("x", 0.1)
    assert len(queue) == 0
    assert _get_in_thread(queue) == {"item": "x"}
    assert time.monotonic() - start >= 0.09


def test_add_after_non_positive_delay_adds_now():
    queue = RateLimitingQueue()
    queue.add_after("x", 0)
    assert len(queue) == 1


def test_add_after_keeps_single_waiting_entry():
    queue = RateLimitingQueue()
    queue.add_after("x", 0.05)
    queue.add_after("x", 0.02)
    assert _get_in_thread(queue) == {"item": "x"}
    time.sleep(0.1)
    assert len(queue) == 0


def test_rate_limited_counts_requeues_and_forget_resets():
    queue = RateLimitingQueue(base_delay=0.001, max_delay=0.01)
    for _ in range(3):
        queue.add_rate_limited("k")
    assert queue.num_requeues("k") == 3
    assert _get_in_thread(queue) == {"item": "k"}
    queue.forget("k")
    assert queue.num_requeues("k") == 0


def test_rate_limited_delay_is_capped():
    queue = RateLimitingQueue(base_delay=0.001, max_delay=0.02)
    for _ in range(100):
        queue.add_rate_limited("k")
    start = time.monotonic()
    assert _get_in_thread(queue) == {"item": "k"}
    assert time.monotonic() - start < 1.0


def test_num_requeues_of_unknown_item_is_zero():
    assert RateLimitingQueue().num_requeues("never") == 0