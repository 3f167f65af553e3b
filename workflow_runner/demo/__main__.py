"""
Run the demo workflows from the command line.

    python -m workflow_runner.demo [working|failed|skipped ...]
"""

import asyncio
import logging
import sys

from workflow_runner.config import get_settings
from workflow_runner.demo.scenarios import SCENARIOS, summarize_result
from workflow_runner.orchestrator.engine import WorkflowOrchestrator

logger = logging.getLogger("workflow_runner.demo")


async def run_scenarios(names: list[str]) -> int:
    settings = get_settings()
    orchestrator = WorkflowOrchestrator(
        config=settings.engine.to_engine_config(),
        log_events=settings.log_events,
    )

    exit_code = 0
    for name in names:
        scenario = SCENARIOS[name]()
        logger.info(f"=== Scenario '{scenario.name}': {scenario.description} ===")

        result = await orchestrator.run(scenario.tasks)
        summary = summarize_result(result)

        logger.info(
            f"Scenario '{name}' finished with {summary['status']} "
            f"in {summary['duration_ms']}ms"
        )
        for task_id, task in summary["tasks"].items():
            detail = f" - {task['error']}" if task["error"] else ""
            logger.info(f"  {task_id}: {task['status']} (attempts: {task['attempts']}){detail}")
        logger.info(f"  records stored: {len(scenario.data_store)}")

        if name == "working" and summary["status"] != "COMPLETED":
            exit_code = 1

    return exit_code


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if argv is None:
        argv = sys.argv[1:]
    names = argv or list(SCENARIOS)
    unknown = [name for name in names if name not in SCENARIOS]
    if unknown:
        logger.error(f"Unknown scenario(s): {', '.join(unknown)}. Choose from: {', '.join(SCENARIOS)}")
        return 2

    return asyncio.run(run_scenarios(names))


if __name__ == "__main__":
    sys.exit(main())
