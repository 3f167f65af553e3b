"""Demo workflows exercising the engine end to end."""

from workflow_runner.demo.scenarios import (
    SCENARIOS,
    DemoScenario,
    create_failed_workflow,
    create_sample_workflow,
    create_skipped_workflow,
    create_working_workflow,
    summarize_result,
)

__all__ = [
    "SCENARIOS",
    "DemoScenario",
    "create_failed_workflow",
    "create_sample_workflow",
    "create_skipped_workflow",
    "create_working_workflow",
    "summarize_result",
]
