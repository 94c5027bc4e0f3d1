"""
=============================================================================
WORKER THREAD POOL
=============================================================================

A fixed set of worker threads fed from a bounded queue. Each task is one
accepted connection, handled start to finish by one worker:

    accept loop ──submit(conn)──► [ queue (bounded) ] ──► Worker-0
                                                      ──► Worker-1
                                                      ──► Worker-N

    queue full → submit() returns False → server answers 503

Workers share nothing but the database gateway, whose connection pool is
thread-safe.

=============================================================================
SHUTDOWN: POISON PILLS
=============================================================================

shutdown() waits for queued tasks, then puts one None per worker on the
queue. A worker that takes None leaves its loop.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args) on some worker."""
    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives a poison pill.

    A task that raises is logged and counted; the worker carries on.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size worker pool.

        pool = ThreadPool(workers=4, queue_size=100)
        pool.start()
        accepted = pool.submit(handle_connection, args=(conn,))
        pool.shutdown()
    """

    def __init__(self, workers: int = 4, queue_size: int = 100):
        self.workers = workers
        self.queue_size = queue_size

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutting_down = False

    def start(self):
        """Start the worker threads. Calling it twice is harmless."""
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting thread pool with {self.workers} workers")
            for worker_id in range(self.workers):
                worker = Worker(self._task_queue, worker_id)
                self._workers.append(worker)
                worker.start()

            self._started = True
            self._shutting_down = False

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> bool:
        """
        Queue func(*args) without blocking the accept loop.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started or self._shutting_down:
            raise RuntimeError("Thread pool is not running")

        try:
            self._task_queue.put(Task(func=func, args=args), block=False)
            return True
        except queue.Full:
            return False

    def shutdown(self, timeout: Optional[float] = None):
        """
        Let queued tasks finish, then stop every worker.

        Args:
            timeout: Seconds to wait for each worker to exit. None waits
                     for as long as in-flight requests take.
        """
        with self._lock:
            if not self._started:
                return
            self._shutting_down = True

        logger.info("Shutting down thread pool...")

        # Pills go in behind any queued connections, so those still run.
        for _ in self._workers:
            self._task_queue.put(None)

        for worker in self._workers:
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"{worker.name} did not stop within {timeout}s")

        stats = self.stats
        self._workers.clear()
        self._started = False
        logger.info(
            f"Thread pool shutdown complete: {stats['completed']} tasks completed, "
            f"{stats['failed']} failed"
        )

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def pending(self) -> int:
        """Connections waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": len(self._workers),
            "busy": self.busy_workers,
            "queued": self.pending,
            "completed": sum(w.tasks_completed for w in self._workers),
            "failed": sum(w.tasks_failed for w in self._workers),
        }
