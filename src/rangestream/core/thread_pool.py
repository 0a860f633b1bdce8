"""
=============================================================================
THREAD POOL
=============================================================================

Fixed-floor, bounded-ceiling pool of worker threads. Each task is one
client connection, served until the client closes it.

=============================================================================
WHY THREADS FOR STREAMING
=============================================================================

Serving a chunk is: read 64 KiB from disk, sendall() it. Both calls block,
and both release the GIL while they wait, so plain threads give real
overlap between streams without any async machinery.

    ┌──────────────┐      ┌───────────────────────────┐
    │ accept loop  │ ───► │ queue (bounded)           │
    └──────────────┘      └─────┬─────────┬───────────┘
                                │         │
                          ┌─────▼──┐ ┌────▼───┐     ┌────────┐
                          │Worker-0│ │Worker-1│ ... │Worker-N│
                          │ movie  │ │ subs   │     │ idle   │
                          └────────┘ └────────┘     └────────┘

A worker is held for the whole life of a stream (minutes for a movie), so
``max_workers`` is the number of simultaneous players. When every worker is
busy and connections are waiting, the pool grows by one, up to the ceiling.
Past that, submit(block=False) returns False and the server answers 503.

=============================================================================
SHUTDOWN: POISON PILLS
=============================================================================

One None per worker goes into the queue. A worker that takes a None exits.
Workers finish the connection they are on first.

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
    """A deferred call: ``func(*args, **kwargs)`` on some worker."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)

    @property
    def wait_time(self) -> float:
        """Seconds since submission."""
        return time.time() - self.submitted_at


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it gets a poison pill.

    Exceptions from a task are logged and counted; they never kill the
    worker, so one broken connection can't shrink the pool.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()
        queued_for = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} finished task in {time.time() - start_time:.3f}s "
                f"(queued {queued_for:.3f}s)"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Thread pool for concurrent connection handling.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,), block=False):
            ...  # saturated: answer 503

        pool.shutdown(wait=False)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Start ``min_workers`` threads. Calling it again does nothing."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker_locked()

        self._shutdown = False
        self._started = True

    def _add_worker_locked(self) -> Worker:
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker.

        Args:
            block: Wait for room when the queue is full.
            queue_timeout: How long to wait when blocking.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: Pool not started, or shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """One more worker if all are busy and work is waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return

            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued connections be served before stopping.
            timeout: Upper bound on the wait for the queue to drain.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline is not None and time.time() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued connections")
                    break
                time.sleep(0.1)

        with self._lock:
            workers = list(self._workers)

        for _ in workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()

        self._started = False
        logger.info("Thread pool shutdown complete")

    # ─────────────────────────────────────────────────────────────────────
    # MONITORING
    # ─────────────────────────────────────────────────────────────────────

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def pending(self) -> int:
        """Connections waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.pending,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
