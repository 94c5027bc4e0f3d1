"""
Unit tests for the worker pool.
"""

import logging
import threading

import pytest

from userservice.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(workers=2, queue_size=4)
    pool.start()
    yield pool
    pool.shutdown(timeout=5.0)


class TestThreadPool:
    """Tests for ThreadPool class."""

    def test_runs_tasks(self, pool):
        """Test every submitted task runs."""
        results = []
        lock = threading.Lock()

        def task(n):
            with lock:
                results.append(n)

        for n in range(4):
            assert pool.submit(task, args=(n,))

        pool.shutdown(timeout=5.0)
        assert sorted(results) == [0, 1, 2, 3]

    def test_failing_task_does_not_kill_worker(self, pool):
        """Test a worker survives a task that raises."""
        done = threading.Event()

        def boom():
            raise RuntimeError("task failed")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(timeout=5.0)
        pool.shutdown(timeout=5.0)

    def test_full_queue_rejects(self):
        """Test submit() returns False when the queue is full."""
        pool = ThreadPool(workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def block():
            started.set()
            release.wait(timeout=5.0)

        try:
            assert pool.submit(block)
            assert started.wait(timeout=5.0)
            assert pool.submit(block)          # waits in the queue
            assert pool.busy_workers == 1
            assert pool.pending == 1
            assert pool.submit(block) is False
        finally:
            release.set()
            pool.shutdown(timeout=5.0)

    def test_submit_before_start(self):
        """Test submitting to a pool that was never started."""
        with pytest.raises(RuntimeError):
            ThreadPool(workers=1).submit(lambda: None)

    def test_submit_after_shutdown(self, pool):
        """Test submitting to a stopped pool."""
        pool.shutdown(timeout=5.0)
        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_stats(self, pool):
        """Test stats of an idle pool."""
        stats = pool.stats
        assert stats["workers"] == 2
        assert stats["queued"] == 0
        assert stats["busy"] == 0

    def test_shutdown_logs_totals(self, pool, caplog):
        """Test shutdown reports completed and failed task counts."""
        def boom():
            raise RuntimeError("task failed")

        pool.submit(lambda: None)
        pool.submit(boom)

        with caplog.at_level(logging.INFO, logger="userservice.core.thread_pool"):
            pool.shutdown(timeout=5.0)

        assert "1 tasks completed, 1 failed" in caplog.text
