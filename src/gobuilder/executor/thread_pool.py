"""
Thread pool for the parallel build pass.

In parallel mode the orchestrator runs one build cycle per configuration at
the same time and joins them all before deciding whether to sleep. The pool
lives for the whole process; only the tasks are created and joined per pass.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..validation import handle_error, ErrorSeverity

logger = logging.getLogger(__name__)


@dataclass
class ThreadPoolConfig:
    """Configuration for the build thread pool."""

    max_workers: int = 4
    thread_name_prefix: str = "BuildWorker"


class ManagedThreadPoolExecutor:
    """
    ThreadPoolExecutor with an explicit lifecycle and task statistics.
    """

    def __init__(self, config: ThreadPoolConfig):
        self.config = config
        self.executor: Optional[ThreadPoolExecutor] = None
        self.active_futures: Set[Future] = set()
        self.is_shutdown = False
        self._lock = threading.Lock()

        self.stats = {
            "tasks_submitted": 0,
            "tasks_completed": 0,
            "tasks_failed": 0,
        }

    def start(self) -> None:
        """
        Start the thread pool executor.

        Raises:
            RuntimeError: If already started
        """
        if self.executor is not None:
            raise RuntimeError("Thread pool already started")

        self.executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix=self.config.thread_name_prefix,
        )
        self.is_shutdown = False
        logger.info(f"Started thread pool with {self.config.max_workers} workers")

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """
        Submit a task to the thread pool.

        Raises:
            RuntimeError: If executor is not started or is shutdown
        """
        if self.executor is None:
            raise RuntimeError("Thread pool not started")
        if self.is_shutdown:
            raise RuntimeError("Thread pool is shutdown")

        with self._lock:
            self.stats["tasks_submitted"] += 1
            future = self.executor.submit(fn, *args, **kwargs)
            self.active_futures.add(future)
        future.add_done_callback(self._task_completed)
        return future

    def run_all(self, tasks: List[Callable[[], Any]]) -> List[Any]:
        """
        Run every task concurrently and wait for all of them.

        Results are returned in task order. A task that raised contributes
        its exception object instead of a result, so one failing task never
        hides the outcome of the others.
        """
        futures = [self.submit(task) for task in tasks]
        results = []
        for future in futures:
            try:
                results.append(future.result())
            except Exception as e:
                handle_error(
                    error=e,
                    context="build pool task",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )
                results.append(e)
        return results

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the thread pool executor."""
        if self.executor is None or self.is_shutdown:
            return

        try:
            self.is_shutdown = True
            self.executor.shutdown(wait=wait)
            logger.info("Thread pool shutdown completed" if wait else "Thread pool shutdown initiated")
        finally:
            self.executor = None
            with self._lock:
                self.active_futures.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get current thread pool statistics."""
        with self._lock:
            stats = self.stats.copy()
            stats["active_futures"] = len(self.active_futures)
        stats["is_shutdown"] = self.is_shutdown
        return stats

    def _task_completed(self, future: Future) -> None:
        with self._lock:
            self.active_futures.discard(future)
            if future.cancelled():
                return
            if future.exception() is not None:
                self.stats["tasks_failed"] += 1
            else:
                self.stats["tasks_completed"] += 1

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
