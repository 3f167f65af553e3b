"""
Pytest fixtures and configuration for tests.
"""

from typing import Any, AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from workflow_runner.config import Environment, Settings
from workflow_runner.core.models import EngineConfig, Task, TaskEvent
from workflow_runner.events.publisher import EventPublisher
from workflow_runner.orchestrator.engine import WorkflowOrchestrator


class EventRecorder:
    """Subscriber that keeps every event it sees."""

    def __init__(self):
        self.events: list[TaskEvent] = []

    def __call__(self, event: TaskEvent) -> None:
        self.events.append(event)

    @property
    def trace(self) -> list[tuple[str, str]]:
        """(type, task_id) pairs in publication order."""
        return [(event.type.value, event.task_id) for event in self.events]

    def for_task(self, task_id: str) -> list[TaskEvent]:
        return [event for event in self.events if event.task_id == task_id]


def succeed(value: Any = None) -> Callable:
    """Work that resolves immediately with value."""

    async def work():
        return value

    return work


def fail(message: str = "boom") -> Callable:
    """Work that always raises."""

    async def work():
        raise RuntimeError(message)

    return work


def flaky(failures: int, value: Any = "ok") -> Callable:
    """Work that raises on its first `failures` calls, then resolves."""
    calls = {"count": 0}

    async def work():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise RuntimeError(f"transient failure {calls['count']}")
        return value

    work.calls = calls
    return work


def make_task(
    task_id: str,
    dependencies: Optional[list[str]] = None,
    work: Optional[Callable] = None,
    **kwargs: Any,
) -> Task:
    return Task(
        id=task_id,
        work=work or succeed(task_id),
        dependencies=dependencies or [],
        **kwargs,
    )


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        environment=Environment.TEST,
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def fast_config() -> EngineConfig:
    """Engine config with no retry delay and short timeouts."""
    return EngineConfig(
        default_timeout_ms=1_000,
        default_retries=0,
        max_concurrent_tasks=10,
        retry_delay_ms=0,
    )


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def publisher(recorder: EventRecorder) -> EventPublisher:
    publisher = EventPublisher()
    publisher.subscribe(recorder)
    return publisher


@pytest.fixture
def orchestrator(fast_config: EngineConfig, publisher: EventPublisher) -> WorkflowOrchestrator:
    """Sequential orchestrator publishing to the recorder."""
    return WorkflowOrchestrator(config=fast_config, publisher=publisher)


@pytest.fixture
def concurrent_orchestrator(fast_config: EngineConfig, publisher: EventPublisher) -> WorkflowOrchestrator:
    """Concurrent-mode orchestrator publishing to the recorder."""
    config = fast_config.model_copy(update={"concurrent": True})
    return WorkflowOrchestrator(config=config, publisher=publisher)


@pytest.fixture
def linear_tasks() -> list[Task]:
    """Linear chain: a -> b -> c."""
    return [
        make_task("a"),
        make_task("b", ["a"]),
        make_task("c", ["b"]),
    ]


@pytest.fixture
def diamond_tasks() -> list[Task]:
    """Diamond: a -> (b, c) -> d."""
    return [
        make_task("a"),
        make_task("b", ["a"]),
        make_task("c", ["a"]),
        make_task("d", ["b", "c"]),
    ]


@pytest_asyncio.fixture
async def api_client(fast_config: EngineConfig) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with a fast orchestrator in app state."""
    from workflow_runner.api.app import create_app

    app = create_app()
    app.state.orchestrator = WorkflowOrchestrator(config=fast_config)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
