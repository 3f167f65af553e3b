"""
Retry/timeout executor.

Runs a single task's work with a timeout race and a bounded retry loop,
mutating the task's state and publishing lifecycle events as it goes.
"""

import asyncio
import inspect
import logging
from typing import Any

from workflow_runner.core.errors import (
    ConcurrentExecutionError,
    ErrorCode,
    TaskTimeoutError,
    WorkflowError,
    get_error_code,
)
from workflow_runner.core.models import (
    EngineConfig,
    ExecutionOutcome,
    Failure,
    Success,
    Task,
    TaskEvent,
    TaskEventType,
    TaskState,
)
from workflow_runner.events.publisher import EventPublisher
from workflow_runner.orchestrator.admission import AdmissionController

logger = logging.getLogger(__name__)


def _discard_outcome(future: asyncio.Future) -> None:
    """Consume the outcome of abandoned work so it is never reported."""
    if not future.cancelled():
        future.exception()


class TaskExecutor:
    """
    Executes one task with retries and a per-attempt timeout.

    attempts starts at 0 and is incremented before each try, so a task with
    max_retries = R performs at most R + 1 tries.
    """

    def __init__(
        self,
        config: EngineConfig,
        admission: AdmissionController,
        publisher: EventPublisher,
    ):
        self.config = config
        self.admission = admission
        self.publisher = publisher

    async def execute(self, task: Task, state: TaskState) -> bool:
        """
        Run a task until it completes or its retry budget is exhausted.

        Must only be called on a PENDING state.

        Args:
            task: Task definition
            state: The task's state entry, mutated in place

        Returns:
            True if the task ended COMPLETED, False if it ended FAILED
        """
        timeout_ms = task.effective_timeout_ms(self.config)

        while state.attempts <= state.max_retries:
            state.mark_running()
            attempt = state.attempts
            logger.info(f"Starting task {task.id} (attempt {attempt}/{state.max_retries + 1})")
            self._publish(TaskEventType.STARTED, task.id, attempt=attempt)

            outcome = await self._attempt(task, timeout_ms)

            if isinstance(outcome, Success):
                state.mark_completed(outcome.value)
                logger.info(f"Task {task.id} completed in {state.duration_ms}ms")
                self._publish(
                    TaskEventType.COMPLETED,
                    task.id,
                    attempt=attempt,
                    result=outcome.value,
                )
                return True

            error_message = outcome.message
            state.error = error_message

            if state.attempts <= state.max_retries:
                logger.warning(
                    f"Task {task.id} attempt {attempt} failed ({outcome.code.value}): "
                    f"{error_message}; retrying in {self.config.retry_delay_ms}ms"
                )
                self._publish(TaskEventType.RETRY, task.id, attempt=attempt, error=error_message)
                await asyncio.sleep(self.config.retry_delay_ms / 1000)
                continue

            state.mark_failed(error_message)
            logger.error(f"Task {task.id} failed after {attempt} attempt(s): {error_message}")
            self._publish(TaskEventType.FAILED, task.id, attempt=attempt, error=error_message)
            return False

        return False

    async def _attempt(self, task: Task, timeout_ms: int) -> ExecutionOutcome:
        """Run a single attempt inside an admission slot."""
        if not self.admission.try_acquire(task.id):
            error = ConcurrentExecutionError(task.id, self.admission.capacity())
            return Failure(error, error.code)

        try:
            value = await self._run_with_timeout(task, timeout_ms)
        except Exception as e:
            return Failure(e, get_error_code(e))
        finally:
            self.admission.release(task.id)

        return Success(value)

    async def _run_with_timeout(self, task: Task, timeout_ms: int) -> Any:
        """
        Race the task's work against its timeout.

        On expiry the work is cancelled and abandoned without being awaited,
        so its late result or error can never cause a second transition.
        """
        awaitable = task.work()
        if not inspect.isawaitable(awaitable):
            return awaitable

        future = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({future}, timeout=timeout_ms / 1000)
        except BaseException:
            future.cancel()
            future.add_done_callback(_discard_outcome)
            raise

        if future in done:
            # The run itself was not cancelled, so this is the work's own failure
            if future.cancelled():
                raise WorkflowError(
                    f"Task {task.id} was cancelled",
                    ErrorCode.TASK_EXECUTION,
                    task_id=task.id,
                )
            return future.result()

        future.cancel()
        future.add_done_callback(_discard_outcome)
        raise TaskTimeoutError(task.id, timeout_ms)

    def _publish(
        self,
        event_type: TaskEventType,
        task_id: str,
        attempt: int | None = None,
        error: str | None = None,
        result: Any = None,
    ) -> None:
        self.publisher.publish(
            TaskEvent(
                type=event_type,
                task_id=task_id,
                attempt=attempt,
                error=error,
                result=result,
            )
        )
