"""
FastAPI routes for the workflow runner API.

- POST /workflow - Run the built-in sample workflow
- POST /workflow/scenarios/{name} - Run a demo scenario
- GET /config - Current engine configuration
- GET /health - Health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from workflow_runner import __version__
from workflow_runner.core.errors import WorkflowValidationError
from workflow_runner.core.models import Task
from workflow_runner.demo.scenarios import SCENARIOS, create_sample_workflow, summarize_result
from workflow_runner.orchestrator.admission import AdmissionStatus
from workflow_runner.orchestrator.engine import WorkflowOrchestrator

router = APIRouter(prefix="/v1", tags=["workflows"])


# ==================== Request/Response Models ====================

class TaskSummary(BaseModel):
    """Per-task outcome in a run summary."""

    status: str
    attempts: int
    duration_ms: Optional[int] = None
    error: Optional[str] = None


class WorkflowRunResponse(BaseModel):
    """Summary of a finished workflow run."""

    status: str
    duration_ms: int
    completed_tasks: int
    failed_tasks: int
    skipped_tasks: int
    total_tasks: int
    completed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    tasks: dict[str, TaskSummary] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "COMPLETED",
                "duration_ms": 204,
                "completed_tasks": 2,
                "failed_tasks": 0,
                "skipped_tasks": 0,
                "total_tasks": 2,
                "completed": ["task1", "task2"],
                "failed": [],
                "skipped": [],
                "tasks": {
                    "task1": {"status": "COMPLETED", "attempts": 1, "duration_ms": 101, "error": None},
                    "task2": {"status": "COMPLETED", "attempts": 1, "duration_ms": 102, "error": None},
                },
            }
        }
    }


class ConfigResponse(BaseModel):
    """Engine configuration in effect."""

    default_timeout_ms: int
    default_retries: int
    max_concurrent_tasks: int
    retry_delay_ms: int
    concurrent: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    admission: AdmissionStatus


# ==================== Dependency Injection ====================

async def get_orchestrator(request: Request) -> WorkflowOrchestrator:
    """Get orchestrator from app state."""
    return request.app.state.orchestrator


async def _run(orchestrator: WorkflowOrchestrator, tasks: list[Task]) -> WorkflowRunResponse:
    try:
        result = await orchestrator.run(tasks)
    except WorkflowValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.to_dict(),
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to run workflow: {str(e)}",
        )

    return WorkflowRunResponse(**summarize_result(result))


# ==================== Routes ====================

@router.post(
    "/workflow",
    response_model=WorkflowRunResponse,
    summary="Run the sample workflow",
    description="Run a two-task chain (task1 -> task2) and return its summary.",
)
async def run_sample_workflow(
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> WorkflowRunResponse:
    """Run the built-in sample workflow."""
    return await _run(orchestrator, create_sample_workflow())


@router.post(
    "/workflow/scenarios/{name}",
    response_model=WorkflowRunResponse,
    summary="Run a demo scenario",
    description="Run one of the demo scenarios: working, failed or skipped.",
)
async def run_scenario(
    name: str,
    delay_scale: float = Query(default=1.0, gt=0, le=1, description="Scale simulated latency and timeouts"),
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> WorkflowRunResponse:
    """Run a named demo scenario."""
    factory = SCENARIOS.get(name)
    if factory is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown scenario: {name}. Choose from: {', '.join(SCENARIOS)}",
        )

    return await _run(orchestrator, factory(delay_scale).tasks)


@router.get(
    "/config",
    response_model=ConfigResponse,
    summary="Engine configuration",
)
async def get_config(
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> ConfigResponse:
    return ConfigResponse(**orchestrator.get_config().model_dump())


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report service status and admission capacity.",
)
async def health_check(
    orchestrator: WorkflowOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """Check health of the runner."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        admission=orchestrator.admission.status(),
    )
