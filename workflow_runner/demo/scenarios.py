"""
Demo workflows.

Three record-processing pipelines (fetch -> store -> fetch details -> update)
exercising the engine's success, retry/timeout and skip paths. Network and
storage calls are simulated in memory with asyncio.sleep latency.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from workflow_runner.core.models import Task, WorkflowResult
from workflow_runner.core.state_machine import TaskStatus

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {"id": 1, "name": "Leanne Graham", "email": "leanne@example.com"},
    {"id": 2, "name": "Ervin Howell", "email": "ervin@example.com"},
    {"id": 3, "name": "Clementine Bauch", "email": "clementine@example.com"},
]


@dataclass
class DemoScenario:
    """A workflow plus the in-memory store its tasks share."""

    name: str
    description: str
    tasks: list[Task]
    data_store: list[dict[str, Any]] = field(default_factory=list)


class _RecordPipeline:
    """Shared state and simulated I/O for the record-processing tasks."""

    def __init__(self, delay_scale: float):
        self.delay_scale = delay_scale
        self.data_store: list[dict[str, Any]] = []
        self.fetched: list[dict[str, Any]] = []
        self.record_ids: list[str] = []

    def ms(self, value: int) -> int:
        """Scale a duration, keeping it a valid positive timeout."""
        return max(1, int(value * self.delay_scale))

    async def latency(self, ms: int) -> None:
        await asyncio.sleep(self.ms(ms) / 1000)

    async def fetch_users(self) -> dict[str, Any]:
        logger.info("Fetching user records")
        await self.latency(50)
        self.fetched = [dict(user) for user in SAMPLE_USERS]
        return {"valid": True, "count": len(self.fetched)}

    async def store_users(self) -> dict[str, Any]:
        logger.info("Storing fetched records")
        if not self.fetched:
            raise RuntimeError("No valid data available to store")
        await self.latency(20)
        now = datetime.now(timezone.utc).isoformat()
        records = [
            {**user, "record_id": str(uuid.uuid4()), "created_at": now, "status": "active"}
            for user in self.fetched
        ]
        self.data_store.extend(records)
        self.record_ids = [record["record_id"] for record in records]
        return {"count": len(self.record_ids), "stored_at": now}

    def _first_record(self) -> dict[str, Any]:
        if not self.record_ids:
            raise RuntimeError("No record IDs available")
        for record in self.data_store:
            if record["record_id"] in self.record_ids:
                return record
        raise RuntimeError(f"No records found for IDs: {', '.join(self.record_ids)}")

    def _replace(self, updated: dict[str, Any]) -> None:
        for index, record in enumerate(self.data_store):
            if record["record_id"] == updated["record_id"]:
                self.data_store[index] = updated
                return

    async def fetch_details(self) -> dict[str, Any]:
        await self.latency(20)
        record = {
            **self._first_record(),
            "fetched_at": datetime.now(timezone.utc).isoformat(),
            "status": "fetched",
        }
        self._replace(record)
        return {"fetched": True, "record": record}

    async def update_details(self) -> dict[str, Any]:
        logger.info("Updating fetched records")
        await self.latency(20)
        now = datetime.now(timezone.utc).isoformat()
        record = {**self._first_record(), "updated_at": now, "status": "updated"}
        self._replace(record)
        return {"updated": True, "record": record, "updated_at": now}


def _fail_first(times: int, work: Callable, message: str):
    """Wrap work so its first `times` calls raise."""
    calls = 0

    async def wrapped():
        nonlocal calls
        calls += 1
        if calls <= times:
            raise ConnectionError(message)
        return await work()

    return wrapped


def create_working_workflow(delay_scale: float = 1.0) -> DemoScenario:
    """All four tasks succeed on the first attempt."""
    pipeline = _RecordPipeline(delay_scale)
    tasks = [
        Task(id="fetchUserData", work=pipeline.fetch_users, retries=2, timeout_ms=pipeline.ms(5000)),
        Task(id="storeData", work=pipeline.store_users, dependencies=["fetchUserData"], retries=1, timeout_ms=pipeline.ms(2000)),
        Task(id="fetchRecordDetails", work=pipeline.fetch_details, dependencies=["storeData"], retries=2, timeout_ms=pipeline.ms(3000)),
        Task(id="updateRecordDetails", work=pipeline.update_details, dependencies=["fetchRecordDetails"], retries=3, timeout_ms=pipeline.ms(2000)),
    ]
    return DemoScenario(
        name="working",
        description="All tasks succeed",
        tasks=tasks,
        data_store=pipeline.data_store,
    )


def create_failed_workflow(delay_scale: float = 1.0) -> DemoScenario:
    """
    Retries recover two tasks, then the last task fails permanently.

    - fetchUserData fails once, succeeds on attempt 2
    - fetchRecordDetails is too slow twice (timeout), succeeds on attempt 3
    - updateRecordDetails always fails with no retries
    """
    pipeline = _RecordPipeline(delay_scale)
    slow_calls = 0

    async def slow_then_fast_details():
        nonlocal slow_calls
        slow_calls += 1
        if slow_calls <= 2:
            await pipeline.latency(2000)
        return await pipeline.fetch_details()

    async def update_unavailable():
        logger.info("Updating fetched records")
        await pipeline.latency(10)
        raise RuntimeError("Update service permanently unavailable")

    tasks = [
        Task(
            id="fetchUserData",
            work=_fail_first(1, pipeline.fetch_users, "Network timeout - retrying"),
            retries=2,
            timeout_ms=pipeline.ms(5000),
        ),
        Task(id="storeData", work=pipeline.store_users, dependencies=["fetchUserData"], retries=1, timeout_ms=pipeline.ms(2000)),
        Task(
            id="fetchRecordDetails",
            work=slow_then_fast_details,
            dependencies=["storeData"],
            retries=2,
            timeout_ms=pipeline.ms(1500),
        ),
        Task(
            id="updateRecordDetails",
            work=update_unavailable,
            dependencies=["fetchRecordDetails"],
            retries=0,
            timeout_ms=pipeline.ms(2000),
        ),
    ]
    return DemoScenario(
        name="failed",
        description="Tasks recover through retries, the final task fails",
        tasks=tasks,
        data_store=pipeline.data_store,
    )


def create_skipped_workflow(delay_scale: float = 1.0) -> DemoScenario:
    """The root task fails permanently, so every downstream task is skipped."""
    pipeline = _RecordPipeline(delay_scale)

    async def network_unavailable():
        logger.info("Fetching user records")
        await pipeline.latency(10)
        raise ConnectionError("Network permanently unavailable")

    tasks = [
        Task(id="fetchUserData", work=network_unavailable, retries=0, timeout_ms=pipeline.ms(5000)),
        Task(id="storeData", work=pipeline.store_users, dependencies=["fetchUserData"], retries=1, timeout_ms=pipeline.ms(2000)),
        Task(id="fetchRecordDetails", work=pipeline.fetch_details, dependencies=["storeData"], retries=2, timeout_ms=pipeline.ms(3000)),
        Task(id="updateRecordDetails", work=pipeline.update_details, dependencies=["fetchRecordDetails"], retries=3, timeout_ms=pipeline.ms(2000)),
    ]
    return DemoScenario(
        name="skipped",
        description="Root failure skips all dependents",
        tasks=tasks,
        data_store=pipeline.data_store,
    )


SCENARIOS: dict[str, Callable[..., DemoScenario]] = {
    "working": create_working_workflow,
    "failed": create_failed_workflow,
    "skipped": create_skipped_workflow,
}


def create_sample_workflow(delay_scale: float = 1.0) -> list[Task]:
    """Minimal two-task chain served by the POST /v1/workflow endpoint."""

    async def task1():
        await asyncio.sleep(0.1 * delay_scale)
        return {"result": "Task 1 completed"}

    async def task2():
        await asyncio.sleep(0.1 * delay_scale)
        return {"result": "Task 2 completed"}

    return [
        Task(id="task1", work=task1, retries=2, timeout_ms=5000),
        Task(id="task2", work=task2, dependencies=["task1"], retries=1, timeout_ms=3000),
    ]


def summarize_result(result: WorkflowResult) -> dict[str, Any]:
    """Flatten a WorkflowResult into a JSON-friendly summary."""
    return {
        "status": result.status.value,
        "duration_ms": result.duration_ms,
        "completed_tasks": result.completed_tasks,
        "failed_tasks": result.failed_tasks,
        "skipped_tasks": result.skipped_tasks,
        "total_tasks": result.total_tasks,
        "completed": result.task_ids_with_status(TaskStatus.COMPLETED),
        "failed": result.task_ids_with_status(TaskStatus.FAILED),
        "skipped": result.task_ids_with_status(TaskStatus.SKIPPED),
        "tasks": {
            task_id: {
                "status": state.status.value,
                "attempts": state.attempts,
                "duration_ms": state.duration_ms,
                "error": state.error or state.skip_reason,
            }
            for task_id, state in result.tasks.items()
        },
    }
