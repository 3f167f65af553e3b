"""
Error taxonomy for the workflow runner.

Validation errors are fatal to a run and raised before any task executes.
Execution errors (timeouts, admission refusals, failing work) are recovered
by the executor's retry loop and only surface in the final task state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Structural / validation errors
    WORKFLOW_VALIDATION = "WORKFLOW_VALIDATION"
    EMPTY_WORKFLOW = "EMPTY_WORKFLOW"
    WORKFLOW_TOO_LARGE = "WORKFLOW_TOO_LARGE"
    DUPLICATE_TASK_ID = "DUPLICATE_TASK_ID"
    MISSING_DEPENDENCY = "MISSING_DEPENDENCY"
    SELF_DEPENDENCY = "SELF_DEPENDENCY"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    INVALID_TASK_CONFIGURATION = "INVALID_TASK_CONFIGURATION"

    # Execution errors (retryable)
    TASK_TIMEOUT = "TASK_TIMEOUT"
    TASK_EXECUTION = "TASK_EXECUTION"
    CONCURRENT_EXECUTION = "CONCURRENT_EXECUTION"


class WorkflowError(Exception):
    """Base class for all workflow runner errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        task_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.task_id = task_id
        self.timestamp = datetime.now(timezone.utc)
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses and logs."""
        data: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.task_id is not None:
            data["task_id"] = self.task_id
        if self.details:
            data["details"] = self.details
        return data


class WorkflowValidationError(WorkflowError):
    """Raised when the task graph is structurally invalid."""

    def __init__(
        self,
        message: str,
        issues: Optional[list] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.WORKFLOW_VALIDATION, details=details)
        self.issues = issues or []

    @property
    def cycle_path(self) -> list[str]:
        """Offending cycle, if the failure was a cycle."""
        return list(self.details.get("cycle_path", []))


class TaskTimeoutError(WorkflowError):
    """An attempt did not settle within its timeout."""

    def __init__(self, task_id: str, timeout_ms: int):
        super().__init__(
            f"Task {task_id} timed out after {timeout_ms}ms",
            ErrorCode.TASK_TIMEOUT,
            task_id=task_id,
            details={"timeout_ms": timeout_ms},
        )


class ConcurrentExecutionError(WorkflowError):
    """Admission was refused because the concurrency cap is reached."""

    def __init__(self, task_id: str, max_concurrent_tasks: int):
        super().__init__(
            f"Cannot execute task {task_id}: maximum concurrent tasks "
            f"({max_concurrent_tasks}) exceeded",
            ErrorCode.CONCURRENT_EXECUTION,
            task_id=task_id,
            details={"max_concurrent_tasks": max_concurrent_tasks},
        )


def get_error_message(error: BaseException) -> str:
    """Best-effort human readable message for any raised error."""
    message = str(error)
    return message if message else type(error).__name__


def get_error_code(error: BaseException) -> ErrorCode:
    """Map an arbitrary error onto the error taxonomy."""
    if isinstance(error, WorkflowError):
        return error.code
    return ErrorCode.TASK_EXECUTION
