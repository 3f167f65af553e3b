"""
Domain models for the workflow runner.

All models use Pydantic for validation and serialization with full Python 3.10+ type hints.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationInfo, field_validator

from workflow_runner.core.errors import ErrorCode, get_error_message
from workflow_runner.core.state_machine import (
    StateTransition,
    TaskStateMachine,
    TaskStatus,
    WorkflowStatus,
)

# Field bounds applied by the pre-screening layer
MAX_TASK_ID_LENGTH = 100
MAX_DEPENDENCIES_PER_TASK = 50
MAX_WORKFLOW_TASKS = MAX_DEPENDENCIES_PER_TASK * 10
MIN_RETRIES = 0
MAX_RETRIES = 10
MIN_TIMEOUT_MS = 1
MAX_TIMEOUT_MS = 300_000

TaskWork = Callable[[], Awaitable[Any]]

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Milliseconds between two timestamps, never negative."""
    return max(0, int((end - start).total_seconds() * 1000))


class TaskEventType(str, Enum):
    """Lifecycle event types published during a run."""

    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    RETRY = "RETRY"


class EngineConfig(BaseModel):
    """
    Run configuration injected into the core.

    Built by the config layer from the environment; the core never reads
    environment variables itself.
    """

    model_config = ConfigDict(frozen=True)

    default_timeout_ms: int = Field(default=30_000, gt=0, le=MAX_TIMEOUT_MS, description="Timeout when a task sets none")
    default_retries: int = Field(default=3, ge=MIN_RETRIES, le=MAX_RETRIES, description="Retries when a task sets none")
    max_concurrent_tasks: int = Field(default=10, ge=1, le=100, description="Admission capacity")
    retry_delay_ms: int = Field(default=100, ge=0, le=10_000, description="Fixed pause between attempts")
    concurrent: bool = Field(default=False, description="Run independent ready tasks in parallel")


class Task(BaseModel):
    """Definition of a single unit of work in a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=MAX_TASK_ID_LENGTH, description="Unique task identifier")
    work: TaskWork = Field(..., description="Zero-argument coroutine function producing the result")
    dependencies: list[str] = Field(
        default_factory=list,
        max_length=MAX_DEPENDENCIES_PER_TASK,
        description="IDs of tasks that must complete first",
    )
    retries: Optional[int] = Field(default=None, ge=MIN_RETRIES, le=MAX_RETRIES, description="Override retry count")
    timeout_ms: Optional[int] = Field(default=None, ge=MIN_TIMEOUT_MS, le=MAX_TIMEOUT_MS, description="Override timeout")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject blank IDs."""
        if not v.strip():
            raise ValueError("Task ID is required")
        return v

    @field_validator("dependencies")
    @classmethod
    def validate_dependencies(cls, v: list[str], info: ValidationInfo) -> list[str]:
        """Validate dependencies list."""
        if any(not dep.strip() for dep in v):
            raise ValueError("Dependency must be a non-empty string")
        if len(v) != len(set(v)):
            raise ValueError("Duplicate dependencies not allowed")
        if info.data.get("id") in v:
            raise ValueError("Task cannot depend on itself")
        return v

    def effective_retries(self, config: EngineConfig) -> int:
        return self.retries if self.retries is not None else config.default_retries

    def effective_timeout_ms(self, config: EngineConfig) -> int:
        return self.timeout_ms if self.timeout_ms is not None else config.default_timeout_ms


class TaskState(BaseModel):
    """
    Runtime state of one task within a run.

    Owned by the orchestrator for the run's lifetime. Status changes go
    through an internal state machine, so terminal states are never mutated.
    """

    id: str
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = Field(default=0, ge=0, description="Executions started so far")
    max_retries: int = Field(default=0, ge=0)

    # Timing (set only when execution occurs)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None

    # Outcome
    error: Optional[str] = None
    result: Any = None
    skip_reason: Optional[str] = None

    # Graph edges
    dependencies: list[str] = Field(default_factory=list)
    dependents: list[str] = Field(default_factory=list)

    _machine: Optional[TaskStateMachine] = PrivateAttr(default=None)

    def model_post_init(self, __context: Any) -> None:
        self._machine = TaskStateMachine(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status in TaskStateMachine.TERMINAL_STATES

    @property
    def history(self) -> list[StateTransition]:
        """State transitions applied so far."""
        return self._machine.history

    def transition(self, to_state: TaskStatus, reason: Optional[str] = None) -> StateTransition:
        """Apply a validated status transition."""
        record = self._machine.transition(to_state, reason=reason)
        self.status = to_state
        return record

    def mark_running(self) -> None:
        """Begin a new attempt."""
        self.attempts += 1
        self.transition(TaskStatus.RUNNING, reason=f"attempt {self.attempts}")
        self.start_time = utcnow()

    def mark_completed(self, result: Any) -> None:
        self.transition(TaskStatus.COMPLETED)
        self._finish()
        self.result = result

    def mark_failed(self, error: str) -> None:
        self.transition(TaskStatus.FAILED, reason=error)
        self._finish()
        self.error = error

    def mark_skipped(self, reason: str) -> None:
        self.transition(TaskStatus.SKIPPED, reason=reason)
        self.skip_reason = reason

    def _finish(self) -> None:
        self.end_time = utcnow()
        if self.start_time is not None:
            self.duration_ms = elapsed_ms(self.start_time, self.end_time)


class WorkflowResult(BaseModel):
    """Immutable summary of a finished run."""

    model_config = ConfigDict(frozen=True)

    status: WorkflowStatus
    tasks: dict[str, TaskState]
    start_time: datetime
    end_time: datetime
    duration_ms: int = Field(ge=0)
    completed_tasks: int = Field(ge=0)
    failed_tasks: int = Field(ge=0)
    skipped_tasks: int = Field(ge=0)
    total_tasks: int = Field(ge=0)

    def task_ids_with_status(self, status: TaskStatus) -> list[str]:
        """Task IDs in the given terminal status, in run order."""
        return [task_id for task_id, state in self.tasks.items() if state.status == status]


class TaskEvent(BaseModel):
    """Lifecycle notification. Published and discarded, never retained."""

    type: TaskEventType
    task_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    attempt: Optional[int] = None
    error: Optional[str] = None
    result: Any = None


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful attempt carrying the work's result."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed attempt carrying the error and its taxonomy code."""

    error: BaseException
    code: ErrorCode = ErrorCode.TASK_EXECUTION

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return get_error_message(self.error)


ExecutionOutcome = Union[Success[Any], Failure]
