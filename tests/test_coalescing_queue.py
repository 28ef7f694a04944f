# ==============================================
# Tests for CoalescingQueue
# ==============================================

import logging
import threading
import time

import pytest

from conftest import SAVE_INTERVAL, wait_for
from feedmeta.scheduling.coalescing_queue import CoalescingQueue


@pytest.fixture
def calls():
    return []


class TestCoalescing:
    """One run per window, however many add() calls."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            CoalescingQueue("bad", interval=0)
        with pytest.raises(ValueError):
            CoalescingQueue("bad", interval=-1.0)

    def test_burst_runs_action_once(self, queue, calls):
        key = object()
        for _ in range(3):
            queue.add(key, lambda: calls.append(time.monotonic()))

        assert wait_for(lambda: len(calls) == 1)
        time.sleep(SAVE_INTERVAL * 3)
        assert len(calls) == 1

    def test_no_add_means_no_call(self, queue, calls):
        time.sleep(SAVE_INTERVAL * 3)
        assert calls == []

    def test_add_reports_whether_window_opened(self, queue):
        key = object()
        assert queue.add(key, lambda: None) is True
        assert queue.add(key, lambda: None) is False

    def test_first_pending_call_wins(self, queue, calls):
        key = object()
        queue.add(key, lambda: calls.append("first"))
        queue.add(key, lambda: calls.append("second"))

        assert wait_for(lambda: calls)
        time.sleep(SAVE_INTERVAL * 2)
        assert calls == ["first"]

    def test_window_measured_from_first_add(self, calls):
        q = CoalescingQueue("window", interval=0.3)
        key = object()
        start = time.monotonic()
        q.add(key, lambda: calls.append(time.monotonic()))
        time.sleep(0.2)
        q.add(key, lambda: calls.append(time.monotonic()))

        assert wait_for(lambda: calls, timeout=3.0)
        # A resetting window would fire at ~0.5s
        assert calls[0] - start < 0.45
        q.shutdown(perform_pending=False)

    def test_example_three_marks_one_run(self, calls):
        q = CoalescingQueue("example", interval=0.5)
        key = object()
        start = time.monotonic()
        for _ in range(3):
            q.add(key, lambda: calls.append(time.monotonic()))
            time.sleep(0.1)

        assert wait_for(lambda: calls, timeout=3.0)
        time.sleep(0.3)
        assert len(calls) == 1
        assert 0.45 <= calls[0] - start <= 0.9
        q.shutdown(perform_pending=False)

    def test_add_during_action_opens_new_window(self, queue, calls):
        key = object()

        def action():
            calls.append(1)
            if len(calls) == 1:
                queue.add(key, action)

        queue.add(key, action)
        assert wait_for(lambda: len(calls) == 2)

    def test_keys_are_independent(self, queue, calls):
        a, b = object(), object()
        queue.add(a, lambda: calls.append("a"))
        queue.add(b, lambda: calls.append("b"))

        assert wait_for(lambda: len(calls) == 2)
        assert sorted(calls) == ["a", "b"]

    def test_action_runs_off_callers_thread(self, queue):
        threads = []
        queue.add(object(), lambda: threads.append(threading.current_thread()))

        assert wait_for(lambda: threads)
        assert threads[0] is not threading.current_thread()


class TestFailures:
    """Action failures are logged, never raised."""

    def test_exception_is_logged_and_queue_keeps_working(self, queue, calls, caplog):
        key = object()

        def boom():
            raise RuntimeError("write exploded")

        with caplog.at_level(logging.ERROR):
            queue.add(key, boom)
            assert wait_for(lambda: "write exploded" in caplog.text)

        queue.add(key, lambda: calls.append(1))
        assert wait_for(lambda: calls == [1])


class TestControl:
    """is_pending / cancel / perform_calls_immediately / shutdown."""

    def test_is_pending(self, queue):
        key = object()
        assert not queue.is_pending(key)
        queue.add(key, lambda: None)
        assert queue.is_pending(key)
        assert wait_for(lambda: not queue.is_pending(key))

    def test_cancel_drops_call(self, queue, calls):
        key = object()
        queue.add(key, lambda: calls.append(1))

        assert queue.cancel(key) is True
        assert queue.cancel(key) is False
        time.sleep(SAVE_INTERVAL * 3)
        assert calls == []

    def test_perform_calls_immediately(self, calls):
        q = CoalescingQueue("slow", interval=10.0)
        q.add("a", lambda: calls.append("a"))
        q.add("b", lambda: calls.append("b"))

        assert q.perform_calls_immediately() == 2
        assert sorted(calls) == ["a", "b"]
        assert len(q) == 0
        q.shutdown()

    def test_performed_call_does_not_fire_again(self, calls):
        q = CoalescingQueue("short", interval=0.1)
        q.add("a", lambda: calls.append("a"))
        q.perform_calls_immediately()
        time.sleep(0.3)
        assert calls == ["a"]
        q.shutdown()

    def test_shutdown_performs_pending(self, calls):
        q = CoalescingQueue("slow", interval=10.0)
        q.add("a", lambda: calls.append("a"))
        q.shutdown()

        assert calls == ["a"]
        assert q.add("b", lambda: calls.append("b")) is False
        assert calls == ["a"]

    def test_shutdown_can_drop_pending(self, calls):
        q = CoalescingQueue("short", interval=0.05)
        q.add("a", lambda: calls.append("a"))
        q.shutdown(perform_pending=False)

        time.sleep(0.2)
        assert calls == []
