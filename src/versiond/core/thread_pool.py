"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads that serve connections for the threaded server.

=============================================================================
HOW A CONNECTION FLOWS THROUGH THE POOL
=============================================================================

    Accept loop (main thread)              Workers
    ─────────────────────────              ───────

    conn = accept()
    pool.submit(serve, (conn,))  ──┐
    (returns immediately)          │
    conn = accept()                ▼
    ...                      ┌───────────┐     ┌──────────┐
                             │   Queue   │ ──► │ Worker-0 │  serve(conn)
                             │  (FIFO)   │ ──► │ Worker-1 │  serve(conn)
                             └───────────┘ ──► │ Worker-2 │  idle
                                               └──────────┘

submit() never waits for the task: the accept loop keeps accepting while
workers read, render and write.

=============================================================================
SIZING
=============================================================================

    min_workers   Started eagerly by start().
    max_workers   Size of the persistent pool. When more tasks are waiting
                  than there are idle workers, submit() adds workers,
                  up to this size.

Past max_workers the pool still grows: if every worker is busy, submit()
adds an overflow worker that exits once it has been idle for
overflow_idle_timeout seconds. With no read timeout a silent client pins
its worker forever, so a hard cap would let max_workers such clients
stop the server from answering anyone.

The queue is unbounded by default (queue_size=0). Nothing is ever
rejected.

=============================================================================
SHUTDOWN: THE POISON PILL
=============================================================================

    pool.shutdown()
        └─ wait for the queue to drain (optionally bounded)
        └─ put one None per worker
        └─ each worker takes a None and exits its loop

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


# Seconds an overflow worker waits for another task before exiting
OVERFLOW_IDLE_TIMEOUT = 5.0


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: func(*args, **kwargs).

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: time.time() at submission, for queue-wait logging.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None.

    A task that raises is logged and counted; the worker keeps running.
    A transient worker also exits after idle_timeout seconds without a
    task, and reports its exit through on_exit.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0,
        transient: bool = False,
        on_exit: Optional[Callable[["Worker"], None]] = None
    ):
        # daemon=True: a worker stuck on a silent client does not keep the
        # process alive after the accept loop exits
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.transient = transient
        self.on_exit = on_exit

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        try:
            while not self._shutdown.is_set():
                try:
                    task = self.task_queue.get(timeout=self.idle_timeout)
                except queue.Empty:
                    if self.transient:
                        break
                    continue

                try:
                    if task is None:
                        break
                    self._execute_task(task)
                finally:
                    self.task_queue.task_done()
        finally:
            self.state = WorkerState.STOPPED
            if self.on_exit is not None:
                self.on_exit(self)
            logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()
        waited = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in "
                f"{time.time() - start_time:.3f}s (queued {waited:.3f}s)"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-minimum pool of Worker threads, persistent up to max_workers and
    transient past it.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=32)
        pool.start()
        pool.submit(handler.handle, args=(conn,))
        ...
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 32,
        queue_size: int = 0,
        idle_timeout: float = 60.0,
        overflow_idle_timeout: float = OVERFLOW_IDLE_TIMEOUT
    ):
        """
        Args:
            min_workers: Workers created by start().
            max_workers: Persistent pool size reached by scale-up.
            queue_size: Max queued tasks; 0 means unbounded.
            idle_timeout: How often an idle worker re-checks for shutdown.
            overflow_idle_timeout: Idle seconds before an overflow worker exits.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.idle_timeout = idle_timeout
        self.overflow_idle_timeout = overflow_idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Create the minimum set of workers. Idempotent."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers (max {self.max_workers})")

        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        self._started = True

    def _add_worker(self, transient: bool = False) -> Worker:
        # Caller holds self._lock
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.overflow_idle_timeout if transient else self.idle_timeout,
            transient=transient,
            on_exit=self._remove_worker if transient else None
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def _remove_worker(self, worker: Worker):
        with self._lock:
            if worker in self._workers:
                self._workers.remove(worker)
                logger.debug(f"Overflow worker {worker.worker_id} retired")

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a call for a worker.

        Args:
            func: Function to run.
            args: Positional arguments.
            kwargs: Keyword arguments.
            block: Wait for space if a bounded queue is full.
            queue_timeout: Max seconds to wait for space.

        Returns:
            True if queued, False if a bounded queue stayed full. With the
            default unbounded queue this is always True.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
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
        """Add workers until there is an idle worker for every waiting task."""
        with self._lock:
            # A stalled client pins its worker indefinitely
            idle = sum(1 for w in self._workers if w.state == WorkerState.IDLE)
            for _ in range(self._task_queue.qsize() - idle):
                if len(self._workers) < self.max_workers:
                    logger.debug(
                        f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                    )
                    self._add_worker()
                else:
                    logger.warning(
                        f"All {len(self._workers)} workers busy, adding overflow worker"
                    )
                    self._add_worker(transient=True)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Wait for queued tasks to be picked up first.
            timeout: Bound on that wait, in seconds. None waits forever.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            if timeout is not None:
                deadline = time.time() + timeout
                while not self._task_queue.empty():
                    if time.time() > deadline:
                        logger.warning("Thread pool shutdown timeout, abandoning queued tasks")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Worker will see the shutdown flag on its next poll

        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def size(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queue_size(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for debug logging and tests."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
