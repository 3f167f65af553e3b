"""Core domain models and business logic."""

from workflow_runner.core.models import (
    EngineConfig,
    Task,
    TaskEvent,
    TaskEventType,
    TaskState,
    WorkflowResult,
)
from workflow_runner.core.state_machine import (
    TaskStatus,
    WorkflowStatus,
    TaskStateMachine,
)
from workflow_runner.core.dag import GraphValidator, validate_workflow
from workflow_runner.core.errors import (
    ErrorCode,
    WorkflowError,
    WorkflowValidationError,
    TaskTimeoutError,
    ConcurrentExecutionError,
)

__all__ = [
    "EngineConfig",
    "Task",
    "TaskEvent",
    "TaskEventType",
    "TaskState",
    "WorkflowResult",
    "TaskStatus",
    "WorkflowStatus",
    "TaskStateMachine",
    "GraphValidator",
    "validate_workflow",
    "ErrorCode",
    "WorkflowError",
    "WorkflowValidationError",
    "TaskTimeoutError",
    "ConcurrentExecutionError",
]
