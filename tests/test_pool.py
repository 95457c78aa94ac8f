"""Tests for the bounded worker pool."""

from __future__ import annotations

import threading
import time

import pytest

from dte_harvester.pool import run_with_pool


class TestRunWithPool:
    def test_results_recorded_at_task_index(self):
        tasks = [lambda i=i: i * 10 for i in range(20)]

        assert run_with_pool(tasks, limit=3) == [i * 10 for i in range(20)]

    def test_empty_task_list(self):
        assert run_with_pool([], limit=4) == []

    def test_never_exceeds_limit(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def task():
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return True

        results = run_with_pool([task] * 12, limit=4)

        assert all(results)
        assert 1 <= peak <= 4

    def test_slow_task_does_not_block_siblings(self):
        release = threading.Event()
        finished = []

        def slow():
            release.wait(timeout=2)
            return "slow"

        def fast(i):
            finished.append(i)
            if len(finished) == 5:
                release.set()
            return i

        tasks = [slow] + [lambda i=i: fast(i) for i in range(5)]
        results = run_with_pool(tasks, limit=2)

        assert results[0] == "slow"
        assert sorted(finished) == list(range(5))

    def test_unguarded_error_is_raised_after_pool_drains(self):
        ran = []

        def bad():
            raise ValueError("broken task")

        def good():
            ran.append(1)

        with pytest.raises(ValueError, match="broken task"):
            run_with_pool([bad, good, good, good], limit=2)
        assert len(ran) == 3

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            run_with_pool([lambda: 1], limit=0)
