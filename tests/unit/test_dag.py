"""
Unit tests for task graph validation.
"""

import pytest

from workflow_runner.core.dag import GraphValidator, build_dependents, validate_workflow
from workflow_runner.core.errors import ErrorCode, WorkflowValidationError
from workflow_runner.core.models import MAX_WORKFLOW_TASKS, Task

from tests.conftest import make_task, succeed


def self_dependent(task_id: str) -> Task:
    """Bypass model validation to hand the validator a self-loop."""
    return Task.model_construct(id=task_id, work=succeed(), dependencies=[task_id])


class TestGraphValidator:
    """Tests for GraphValidator."""

    def test_valid_linear_graph(self, linear_tasks):
        """Test validation of a linear chain."""
        result = GraphValidator(linear_tasks).validate()

        assert result.is_valid
        assert result.errors == []
        assert result.topological_order == ["a", "b", "c"]

    def test_valid_diamond_graph(self, diamond_tasks):
        """Test validation of a diamond graph."""
        result = GraphValidator(diamond_tasks).validate()

        assert result.is_valid
        assert result.levels == {"a": 0, "b": 1, "c": 1, "d": 2}

    def test_topological_order_puts_dependencies_first(self):
        """Test order respects edges even when input lists dependents first."""
        tasks = [
            make_task("report", ["clean"]),
            make_task("clean", ["load"]),
            make_task("load"),
        ]

        order = GraphValidator(tasks).validate().topological_order

        assert order.index("load") < order.index("clean") < order.index("report")

    def test_empty_workflow(self):
        """Test an empty task list is rejected."""
        result = GraphValidator([]).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorCode.EMPTY_WORKFLOW

    def test_duplicate_task_ids(self):
        """Test duplicate IDs are rejected and reported once."""
        tasks = [make_task("a"), make_task("a"), make_task("a")]

        result = GraphValidator(tasks).validate()

        assert not result.is_valid
        duplicates = [e for e in result.errors if e.code == ErrorCode.DUPLICATE_TASK_ID]
        assert len(duplicates) == 1
        assert duplicates[0].task_id == "a"

    def test_missing_dependency(self):
        """Test references to unknown tasks are rejected."""
        tasks = [make_task("a"), make_task("b", ["ghost"])]

        result = GraphValidator(tasks).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorCode.MISSING_DEPENDENCY
        assert "ghost" in result.errors[0].message
        assert result.errors[0].details == {"dependency": "ghost"}

    def test_multiple_missing_dependencies(self):
        """Test every unknown reference is reported."""
        tasks = [make_task("a", ["x", "y"]), make_task("b", ["z"])]

        result = GraphValidator(tasks).validate()

        assert len(result.errors) == 3

    def test_self_dependency(self):
        """Test a self-loop is reported as a self dependency."""
        result = GraphValidator([self_dependent("a")]).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorCode.SELF_DEPENDENCY
        # Structural errors stop the cycle search
        assert result.cycle_path == []

    def test_cycle_detection(self):
        """Test a three-task cycle is found with its path."""
        tasks = [
            make_task("a", ["c"]),
            make_task("b", ["a"]),
            make_task("c", ["b"]),
        ]

        result = GraphValidator(tasks).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorCode.CYCLE_DETECTED
        assert result.cycle_path == ["a", "c", "b", "a"]
        assert "a -> c -> b -> a" in result.errors[0].message

    def test_two_task_cycle(self):
        """Test a direct mutual dependency is a cycle."""
        tasks = [make_task("a", ["b"]), make_task("b", ["a"])]

        result = GraphValidator(tasks).validate()

        assert result.cycle_path == ["a", "b", "a"]

    def test_cycle_behind_valid_prefix(self):
        """Test a cycle not reachable from the first task is still found."""
        tasks = [
            make_task("root"),
            make_task("x", ["z"]),
            make_task("y", ["x"]),
            make_task("z", ["y"]),
        ]

        result = GraphValidator(tasks).validate()

        assert result.cycle_path == ["x", "z", "y", "x"]

    def test_cycle_detection_is_deterministic(self):
        """Test the same input always reports the same cycle."""
        tasks = [
            make_task("a", ["b"]),
            make_task("b", ["c"]),
            make_task("c", ["a", "d"]),
            make_task("d", ["b"]),
        ]

        paths = {tuple(GraphValidator(tasks).validate().cycle_path) for _ in range(5)}

        assert len(paths) == 1

    def test_validation_does_not_mutate_tasks(self, diamond_tasks):
        """Test validation leaves task definitions untouched."""
        before = [(t.id, list(t.dependencies)) for t in diamond_tasks]

        GraphValidator(diamond_tasks).validate()

        assert [(t.id, list(t.dependencies)) for t in diamond_tasks] == before

    def test_deep_chain(self):
        """Test a chain at the size cap validates without hitting recursion limits."""
        tasks = [make_task("t0")] + [make_task(f"t{i}", [f"t{i - 1}"]) for i in range(1, MAX_WORKFLOW_TASKS)]

        result = GraphValidator(tasks).validate()

        assert result.is_valid
        assert result.levels[f"t{MAX_WORKFLOW_TASKS - 1}"] == MAX_WORKFLOW_TASKS - 1

    def test_workflow_too_large(self):
        """Test workflows over the task cap are rejected."""
        tasks = [make_task(f"t{i}") for i in range(MAX_WORKFLOW_TASKS + 1)]

        result = GraphValidator(tasks).validate()

        assert not result.is_valid
        assert result.errors[0].code == ErrorCode.WORKFLOW_TOO_LARGE
        assert f"maximum {MAX_WORKFLOW_TASKS} tasks" in result.errors[0].message

    def test_unvalidated_task_fields(self):
        """Test out-of-bounds fields on unvalidated tasks are still rejected."""
        tasks = [
            Task.model_construct(id="x" * 101, work=succeed(), dependencies=[]),
            Task.model_construct(id="b", work=succeed(), dependencies=[], retries=11),
            Task.model_construct(id="c", work=succeed(), dependencies=[], timeout_ms=0),
        ]

        result = GraphValidator(tasks).validate()

        codes = {issue.code for issue in result.errors}
        assert codes == {ErrorCode.INVALID_TASK_CONFIGURATION}
        assert [issue.task_id for issue in result.errors] == ["x" * 101, "b", "c"]
        assert "Retries must be between 0 and 10" in result.errors[1].message

    def test_isolated_task_warning(self):
        """Test unconnected tasks in a larger workflow produce a warning."""
        tasks = [make_task("a"), make_task("b", ["a"]), make_task("loner")]

        result = GraphValidator(tasks).validate()

        assert result.is_valid
        assert [w.task_id for w in result.warnings] == ["loner"]

    def test_single_task_has_no_warning(self):
        """Test a single-task workflow is not flagged as isolated."""
        result = GraphValidator([make_task("only")]).validate()

        assert result.is_valid
        assert result.warnings == []


class TestValidateWorkflow:
    """Tests for the raising entry point."""

    def test_valid_returns_result(self, linear_tasks):
        """Test a valid graph returns its result."""
        result = validate_workflow(linear_tasks)
        assert result.is_valid

    def test_cycle_raises(self):
        """Test a cycle raises with the path attached."""
        tasks = [make_task("a", ["b"]), make_task("b", ["a"])]

        with pytest.raises(WorkflowValidationError) as exc_info:
            validate_workflow(tasks)

        error = exc_info.value
        assert error.code == ErrorCode.WORKFLOW_VALIDATION
        assert error.cycle_path == ["a", "b", "a"]
        assert "Circular dependencies detected" in error.message
        assert error.details["errors"][0]["code"] == "CYCLE_DETECTED"

    def test_missing_dependency_raises(self):
        """Test missing references raise with issues attached."""
        with pytest.raises(WorkflowValidationError) as exc_info:
            validate_workflow([make_task("a", ["nope"])])

        assert exc_info.value.issues[0].code == ErrorCode.MISSING_DEPENDENCY
        assert exc_info.value.cycle_path == []

    def test_invalid_task_configuration_raises(self):
        """Test field violations surface with their own error code."""
        task = Task.model_construct(id="a", work=succeed(), dependencies=[], timeout_ms=300_001)

        with pytest.raises(WorkflowValidationError) as exc_info:
            validate_workflow([task])

        assert exc_info.value.details["errors"][0]["code"] == "INVALID_TASK_CONFIGURATION"

    def test_error_serializes(self):
        """Test validation errors serialize for API responses."""
        with pytest.raises(WorkflowValidationError) as exc_info:
            validate_workflow([])

        data = exc_info.value.to_dict()
        assert data["code"] == "WORKFLOW_VALIDATION"
        assert "at least one task" in data["message"]


class TestBuildDependents:
    """Tests for reverse edge computation."""

    def test_dependents_in_input_order(self, diamond_tasks):
        """Test dependents are listed in input order."""
        dependents = build_dependents(diamond_tasks)

        assert dependents == {"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": []}
