"""
Admission control for concurrently running tasks.

A bounded set of running task IDs. Refusal is the only backpressure: the
executor treats it as a failed attempt and lets the retry loop try again.
"""

import logging
import threading

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AdmissionStatus(BaseModel):
    """Snapshot of admission capacity."""

    running_tasks: int
    max_concurrent_tasks: int
    available_slots: int


class AdmissionController:
    """
    Bounds how many tasks may be running at the same time.

    The running set is guarded by a lock, so the running count can never
    exceed capacity even when tasks acquire and release concurrently.
    """

    def __init__(self, max_concurrent_tasks: int):
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be >= 1")
        self._capacity = max_concurrent_tasks
        self._running: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, task_id: str) -> bool:
        """
        Claim a running slot for a task.

        Granted iff the task is not already running and the running count is
        below capacity.
        """
        with self._lock:
            if task_id in self._running:
                logger.debug(f"Admission refused for {task_id}: already running")
                return False
            if len(self._running) >= self._capacity:
                logger.debug(
                    f"Admission refused for {task_id}: {len(self._running)}/{self._capacity} slots in use"
                )
                return False
            self._running.add(task_id)
            return True

    def release(self, task_id: str) -> None:
        """Free the task's slot. No-op if it was never acquired."""
        with self._lock:
            self._running.discard(task_id)

    def running_count(self) -> int:
        with self._lock:
            return len(self._running)

    def capacity(self) -> int:
        return self._capacity

    def is_running(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._running

    def running_tasks(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._running))

    def update_capacity(self, max_concurrent_tasks: int) -> None:
        """
        Change the capacity.

        Tasks already running keep their slots; a lowered capacity only
        affects new acquisitions.
        """
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be >= 1")
        with self._lock:
            self._capacity = max_concurrent_tasks
        logger.debug(f"Admission capacity updated to {max_concurrent_tasks}")

    def status(self) -> AdmissionStatus:
        with self._lock:
            running = len(self._running)
            capacity = self._capacity
        return AdmissionStatus(
            running_tasks=running,
            max_concurrent_tasks=capacity,
            available_slots=max(0, capacity - running),
        )
