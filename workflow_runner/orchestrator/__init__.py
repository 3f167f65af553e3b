"""Workflow orchestration: admission, execution and scheduling."""

from workflow_runner.orchestrator.admission import AdmissionController, AdmissionStatus
from workflow_runner.orchestrator.engine import WorkflowOrchestrator
from workflow_runner.orchestrator.executor import TaskExecutor

__all__ = ["AdmissionController", "AdmissionStatus", "TaskExecutor", "WorkflowOrchestrator"]
