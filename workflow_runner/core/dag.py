"""
Task graph validation.

Detects oversized workflows, out-of-bounds task fields, duplicate IDs, missing
and self references, and cycles (DFS with visited / on-stack markers), and
computes a topological order for valid graphs.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from workflow_runner.core.errors import ErrorCode, WorkflowValidationError
from workflow_runner.core.models import (
    MAX_DEPENDENCIES_PER_TASK,
    MAX_RETRIES,
    MAX_TASK_ID_LENGTH,
    MAX_TIMEOUT_MS,
    MAX_WORKFLOW_TASKS,
    MIN_RETRIES,
    MIN_TIMEOUT_MS,
    Task,
)


@dataclass
class ValidationIssue:
    """Represents a single validation error or warning."""

    code: ErrorCode | str
    message: str
    task_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ValidationResult:
    """Result of graph validation."""

    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    # Computed graph properties (populated on successful validation)
    topological_order: list[str] = field(default_factory=list)
    levels: dict[str, int] = field(default_factory=dict)  # task_id -> depth in graph
    cycle_path: list[str] = field(default_factory=list)

    def add_error(
        self,
        code: ErrorCode,
        message: str,
        task_id: Optional[str] = None,
        **details: Any,
    ) -> None:
        """Add a validation error."""
        self.errors.append(ValidationIssue(code, message, task_id, details))
        self.is_valid = False

    def add_warning(
        self,
        code: str,
        message: str,
        task_id: Optional[str] = None,
        **details: Any,
    ) -> None:
        """Add a validation warning."""
        self.warnings.append(ValidationIssue(code, message, task_id, details))

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.errors]


class GraphValidator:
    """
    Validates the dependency graph of a task list.

    Pure: never mutates the tasks and never executes work. For a given input
    ordering the same (first discovered) cycle is always reported.
    """

    def __init__(self, tasks: Sequence[Task]):
        self.tasks = list(tasks)
        self._task_map: dict[str, Task] = {}
        self._dependents: dict[str, list[str]] = defaultdict(list)

        self._build_graph()

    def _build_graph(self) -> None:
        """Build id lookup and reverse edges. First occurrence of an id wins."""
        for task in self.tasks:
            self._task_map.setdefault(task.id, task)

        for task in self._task_map.values():
            for dep in task.dependencies:
                self._dependents[dep].append(task.id)

    def validate(self) -> ValidationResult:
        """
        Perform full validation of the graph.

        Returns:
            ValidationResult with errors, warnings, and computed properties
        """
        result = ValidationResult(is_valid=True)

        self._validate_not_empty(result)
        self._validate_size(result)
        self._validate_task_rules(result)
        self._validate_unique_ids(result)
        self._validate_references(result)
        self._validate_no_self_dependencies(result)
        self._detect_cycles(result)
        self._compute_order_and_levels(result)
        self._check_isolated_tasks(result)

        return result

    def _validate_not_empty(self, result: ValidationResult) -> None:
        if not self.tasks:
            result.add_error(
                code=ErrorCode.EMPTY_WORKFLOW,
                message="Workflow must contain at least one task",
            )

    def _validate_size(self, result: ValidationResult) -> None:
        if len(self.tasks) > MAX_WORKFLOW_TASKS:
            result.add_error(
                code=ErrorCode.WORKFLOW_TOO_LARGE,
                message=f"Workflow too large: maximum {MAX_WORKFLOW_TASKS} tasks allowed",
                task_count=len(self.tasks),
            )

    def _validate_task_rules(self, result: ValidationResult) -> None:
        """
        Re-check per-task field bounds.

        Task normally enforces these, but model_construct skips validation.
        """
        for task in self.tasks:
            problems = []
            if not task.id or not task.id.strip():
                problems.append("Task ID is required")
            elif len(task.id) > MAX_TASK_ID_LENGTH:
                problems.append(f"Task ID too long: maximum {MAX_TASK_ID_LENGTH} characters allowed")
            if len(task.dependencies) > MAX_DEPENDENCIES_PER_TASK:
                problems.append(f"Too many dependencies: maximum {MAX_DEPENDENCIES_PER_TASK} allowed")
            if task.retries is not None and not MIN_RETRIES <= task.retries <= MAX_RETRIES:
                problems.append(f"Retries must be between {MIN_RETRIES} and {MAX_RETRIES}")
            if task.timeout_ms is not None and not MIN_TIMEOUT_MS <= task.timeout_ms <= MAX_TIMEOUT_MS:
                problems.append(f"Timeout must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS}ms")

            for problem in problems:
                result.add_error(
                    code=ErrorCode.INVALID_TASK_CONFIGURATION,
                    message=f"Invalid configuration for task '{task.id}': {problem}",
                    task_id=task.id,
                )

    def _validate_unique_ids(self, result: ValidationResult) -> None:
        """Reject task IDs that appear more than once."""
        seen: set[str] = set()
        reported: set[str] = set()
        for task in self.tasks:
            if task.id in seen and task.id not in reported:
                reported.add(task.id)
                result.add_error(
                    code=ErrorCode.DUPLICATE_TASK_ID,
                    message=f"Duplicate task ID '{task.id}'",
                    task_id=task.id,
                )
            seen.add(task.id)

    def _validate_references(self, result: ValidationResult) -> None:
        """Validate that all dependency references point to existing tasks."""
        for task in self.tasks:
            for dep in task.dependencies:
                if dep not in self._task_map:
                    result.add_error(
                        code=ErrorCode.MISSING_DEPENDENCY,
                        message=f"Task '{task.id}' references non-existent dependency '{dep}'",
                        task_id=task.id,
                        dependency=dep,
                    )

    def _validate_no_self_dependencies(self, result: ValidationResult) -> None:
        for task in self.tasks:
            if task.id in task.dependencies:
                result.add_error(
                    code=ErrorCode.SELF_DEPENDENCY,
                    message=f"Task '{task.id}' cannot depend on itself",
                    task_id=task.id,
                )

    def _detect_cycles(self, result: ValidationResult) -> None:
        """
        Depth-first search over dependency edges.

        A node is "on stack" while it is part of the active path and
        "visited" once all of its dependencies have been processed. Reaching
        an on-stack node again is a back edge, i.e. a cycle. An explicit
        stack keeps long chains clear of the recursion limit.
        """
        # Structural errors make the graph meaningless to traverse
        if not result.is_valid:
            return

        visited: set[str] = set()
        on_stack: set[str] = set()

        for root in self.tasks:
            if root.id in visited:
                continue

            path: list[str] = [root.id]
            on_stack.add(root.id)
            # Each frame: (task_id, iterator over its dependencies)
            stack = [(root.id, iter(self._task_map[root.id].dependencies))]

            while stack:
                task_id, deps = stack[-1]
                dep = next(deps, None)

                if dep is None:
                    stack.pop()
                    path.pop()
                    on_stack.discard(task_id)
                    visited.add(task_id)
                    continue

                if dep in on_stack:
                    cycle = path[path.index(dep):] + [dep]
                    result.cycle_path = cycle
                    result.add_error(
                        code=ErrorCode.CYCLE_DETECTED,
                        message=f"Circular dependencies detected: {' -> '.join(cycle)}",
                        task_id=dep,
                        cycle_path=cycle,
                    )
                    return

                if dep not in visited:
                    path.append(dep)
                    on_stack.add(dep)
                    stack.append((dep, iter(self._task_map[dep].dependencies)))

    def _compute_order_and_levels(self, result: ValidationResult) -> None:
        """
        Compute a topological order (dependencies first, ties broken by input
        order) and the depth of each task.
        """
        if not result.is_valid:
            return

        levels: dict[str, int] = {}
        order: list[str] = []

        def level_of(task_id: str) -> int:
            # Iterative post-order so deep chains are safe
            stack = [task_id]
            while stack:
                current = stack[-1]
                if current in levels:
                    stack.pop()
                    continue
                pending = [d for d in self._task_map[current].dependencies if d not in levels]
                if pending:
                    stack.extend(reversed(pending))
                    continue
                deps = self._task_map[current].dependencies
                levels[current] = max((levels[d] for d in deps), default=-1) + 1
                order.append(current)
                stack.pop()
            return levels[task_id]

        for task in self.tasks:
            level_of(task.id)

        result.topological_order = order
        result.levels = levels

    def _check_isolated_tasks(self, result: ValidationResult) -> None:
        """Warn about tasks connected to nothing in a multi-task workflow."""
        if not result.is_valid or len(self._task_map) < 2:
            return

        for task in self._task_map.values():
            if not task.dependencies and not self._dependents.get(task.id):
                result.add_warning(
                    code="ISOLATED_TASK",
                    message=f"Task '{task.id}' has no dependencies and no dependents",
                    task_id=task.id,
                )


def validate_workflow(tasks: Sequence[Task]) -> ValidationResult:
    """
    Validate a task list, raising on structural errors.

    Returns:
        ValidationResult for a valid graph (warnings included)

    Raises:
        WorkflowValidationError: If any structural check failed
    """
    result = GraphValidator(tasks).validate()

    if not result.is_valid:
        details: dict[str, Any] = {
            "errors": [
                {"code": str(getattr(e.code, "value", e.code)), "message": e.message, "task_id": e.task_id}
                for e in result.errors
            ],
        }
        if result.cycle_path:
            details["cycle_path"] = result.cycle_path
        raise WorkflowValidationError(
            f"Workflow validation failed: {'; '.join(result.error_messages)}",
            issues=result.errors,
            details=details,
        )

    return result


def build_dependents(tasks: Sequence[Task]) -> dict[str, list[str]]:
    """Reverse dependency edges, listing dependents in input order."""
    dependents: dict[str, list[str]] = {task.id: [] for task in tasks}
    for task in tasks:
        for dep in task.dependencies:
            dependents.setdefault(dep, []).append(task.id)
    return dependents
