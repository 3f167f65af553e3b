"""
Workflow orchestrator engine.

Drives a whole run:
- Graph validation (fail fast, before any state exists)
- Task state initialization with reverse dependency edges
- Sequential or concurrent scheduling by dependency readiness
- Skip propagation when a task fails
- Aggregation into a WorkflowResult
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from workflow_runner.core.dag import build_dependents, validate_workflow
from workflow_runner.core.errors import WorkflowValidationError
from workflow_runner.core.models import (
    EngineConfig,
    Task,
    TaskEvent,
    TaskEventType,
    TaskState,
    WorkflowResult,
    elapsed_ms,
    utcnow,
)
from workflow_runner.core.state_machine import TaskStatus, compute_workflow_status
from workflow_runner.events.publisher import EventPublisher, LoggingSubscriber
from workflow_runner.orchestrator.admission import AdmissionController
from workflow_runner.orchestrator.executor import TaskExecutor

logger = logging.getLogger(__name__)

DEPENDENCY_NOT_COMPLETED = "Dependency not completed"


class WorkflowOrchestrator:
    """
    Runs task workflows.

    Responsibilities:
    - Validate the dependency graph
    - Own the per-run task state map
    - Decide execution and skip order from dependency readiness
    - Delegate each task to the retry/timeout executor
    - Aggregate the final result
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        admission: Optional[AdmissionController] = None,
        publisher: Optional[EventPublisher] = None,
        log_events: bool = False,
    ):
        self._config = config or EngineConfig()
        self.admission = admission or AdmissionController(self._config.max_concurrent_tasks)
        self.events = publisher or EventPublisher()
        self._log_events = log_events

        if log_events:
            self.events.subscribe(LoggingSubscriber())

    # ==================== Configuration ====================

    def get_config(self) -> EngineConfig:
        return self._config.model_copy()

    def update_config(self, **changes: Any) -> EngineConfig:
        """
        Update engine configuration.

        Changes are validated against EngineConfig bounds; a new capacity is
        propagated to the admission controller.

        Raises:
            pydantic.ValidationError: If a value is out of bounds
        """
        self._config = EngineConfig(**{**self._config.model_dump(), **changes})
        self.admission.update_capacity(self._config.max_concurrent_tasks)
        logger.debug(f"Engine configuration updated: {self._config.model_dump()}")
        return self.get_config()

    def create_publisher(self) -> EventPublisher:
        """Create a fresh publisher for a single run."""
        publisher = EventPublisher()
        if self._log_events:
            publisher.subscribe(LoggingSubscriber())
        return publisher

    def running_tasks_count(self) -> int:
        return self.admission.running_count()

    def queue_status(self) -> dict[str, Any]:
        status = self.admission.status()
        return {
            **status.model_dump(),
            "concurrent": self._config.concurrent,
        }

    # ==================== Run ====================

    async def run(
        self,
        tasks: Sequence[Task],
        publisher: Optional[EventPublisher] = None,
    ) -> WorkflowResult:
        """
        Execute a workflow.

        Args:
            tasks: Task definitions, in the order used for tie-breaks
            publisher: Publisher for this run's events (defaults to self.events)

        Returns:
            WorkflowResult summarizing every task's fate

        Raises:
            WorkflowValidationError: If the graph is invalid. No task runs.
        """
        start_time = utcnow()
        tasks = list(tasks)

        try:
            validation = validate_workflow(tasks)
        except WorkflowValidationError as e:
            logger.error(f"Workflow rejected: {e.message}")
            raise

        for warning in validation.warnings:
            logger.warning(warning.message)
        logger.debug(f"Task levels: {validation.levels}")

        publisher = publisher or self.events
        config = self._config
        task_states = self.initialize_task_states(tasks)
        executor = TaskExecutor(config, self.admission, publisher)

        logger.info(
            f"Running workflow with {len(tasks)} task(s) "
            f"({'concurrent' if config.concurrent else 'sequential'} mode)"
        )

        if config.concurrent:
            task_map = {task.id: task for task in tasks}
            ordered = [task_map[task_id] for task_id in validation.topological_order]
            await self._execute_concurrently(ordered, task_states, executor, publisher)
        else:
            await self._execute_sequentially(tasks, task_states, executor, publisher)

        result = self._build_result(task_states, start_time)

        logger.info(
            f"Workflow finished: status={result.status.value}, "
            f"completed={result.completed_tasks}, failed={result.failed_tasks}, "
            f"skipped={result.skipped_tasks}, duration={result.duration_ms}ms"
        )

        return result

    def initialize_task_states(self, tasks: Sequence[Task]) -> dict[str, TaskState]:
        """Create one PENDING state per task with reverse edges computed."""
        dependents = build_dependents(tasks)
        return {
            task.id: TaskState(
                id=task.id,
                max_retries=task.effective_retries(self._config),
                dependencies=list(task.dependencies),
                dependents=dependents.get(task.id, []),
            )
            for task in tasks
        }

    # ==================== Sequential Scheduling ====================

    async def _execute_sequentially(
        self,
        tasks: list[Task],
        task_states: dict[str, TaskState],
        executor: TaskExecutor,
        publisher: EventPublisher,
    ) -> None:
        """
        Visit tasks in input order.

        A task runs only if every dependency is COMPLETED by the time it is
        visited; otherwise it is skipped. Graph order is not reordered, so a
        dependency listed after its dependent also causes a skip.
        """
        for task in tasks:
            state = task_states[task.id]

            # Already skipped by a failed ancestor
            if state.is_terminal:
                continue

            if not self._dependencies_completed(task, task_states):
                self._skip(state, DEPENDENCY_NOT_COMPLETED, publisher)
                continue

            success = await executor.execute(task, state)

            if not success:
                self._mark_dependents_skipped(task.id, task_states, publisher)

    # ==================== Concurrent Scheduling ====================

    async def _execute_concurrently(
        self,
        tasks: list[Task],
        task_states: dict[str, TaskState],
        executor: TaskExecutor,
        publisher: EventPublisher,
    ) -> None:
        """
        Release tasks as soon as all their dependencies are COMPLETED.

        tasks must be in topological order: ready tasks launch in that order
        when capacity is short, and one skip pass cascades through every
        descendant. In-flight executions are capped at the admission
        capacity, so attempts are never refused for lack of a slot by this
        scheduler.
        """
        in_flight: dict[asyncio.Task, Task] = {}
        launched: set[str] = set()

        try:
            while True:
                self._skip_unreachable(tasks, task_states, publisher)

                capacity = self.admission.capacity()
                for task in tasks:
                    if len(in_flight) >= capacity:
                        break
                    if task.id in launched or task_states[task.id].status != TaskStatus.PENDING:
                        continue
                    if self._dependencies_completed(task, task_states):
                        launched.add(task.id)
                        execution = asyncio.create_task(executor.execute(task, task_states[task.id]))
                        in_flight[execution] = task

                if not in_flight:
                    break

                done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)

                for finished in done:
                    task = in_flight.pop(finished)
                    if not finished.result():
                        self._mark_dependents_skipped(task.id, task_states, publisher)
        finally:
            for pending in in_flight:
                pending.cancel()
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)

        # Anything still pending could never become ready
        for task in tasks:
            state = task_states[task.id]
            if state.status == TaskStatus.PENDING:
                self._skip(state, DEPENDENCY_NOT_COMPLETED, publisher)

    def _skip_unreachable(
        self,
        tasks: list[Task],
        task_states: dict[str, TaskState],
        publisher: EventPublisher,
    ) -> None:
        """Skip pending tasks with a dependency that is FAILED or SKIPPED."""
        for task in tasks:
            state = task_states[task.id]
            if state.status != TaskStatus.PENDING:
                continue
            if any(
                task_states[dep].status in (TaskStatus.FAILED, TaskStatus.SKIPPED)
                for dep in task.dependencies
            ):
                self._skip(state, DEPENDENCY_NOT_COMPLETED, publisher)

    # ==================== Readiness & Skipping ====================

    @staticmethod
    def _dependencies_completed(task: Task, task_states: dict[str, TaskState]) -> bool:
        return all(
            task_states[dep].status == TaskStatus.COMPLETED
            for dep in task.dependencies
        )

    def _mark_dependents_skipped(
        self,
        failed_task_id: str,
        task_states: dict[str, TaskState],
        publisher: EventPublisher,
    ) -> None:
        """
        Skip the direct PENDING dependents of a failed task.

        Deeper descendants are skipped when their readiness check finds a
        skipped ancestor.
        """
        for dependent_id in task_states[failed_task_id].dependents:
            dependent = task_states[dependent_id]
            if dependent.status == TaskStatus.PENDING:
                self._skip(dependent, f"Dependency {failed_task_id} failed", publisher)

    def _skip(self, state: TaskState, reason: str, publisher: EventPublisher) -> None:
        """Mark a task SKIPPED and report it as a failure-class event."""
        state.mark_skipped(reason)
        logger.warning(f"Skipping task {state.id}: {reason}")
        publisher.publish(
            TaskEvent(type=TaskEventType.FAILED, task_id=state.id, error=reason)
        )

    # ==================== Result ====================

    @staticmethod
    def _build_result(task_states: dict[str, TaskState], start_time: datetime) -> WorkflowResult:
        end_time = utcnow()
        statuses = [state.status for state in task_states.values()]

        return WorkflowResult(
            status=compute_workflow_status(statuses),
            tasks=task_states,
            start_time=start_time,
            end_time=end_time,
            duration_ms=elapsed_ms(start_time, end_time),
            completed_tasks=statuses.count(TaskStatus.COMPLETED),
            failed_tasks=statuses.count(TaskStatus.FAILED),
            skipped_tasks=statuses.count(TaskStatus.SKIPPED),
            total_tasks=len(task_states),
        )
