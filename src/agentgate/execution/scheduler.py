"""Spawn pipeline runs off the request path."""

from __future__ import annotations

import asyncio
import logging

from agentgate.execution.executor import PipelineExecutor
from agentgate.models.pipeline import ExecutionPlan

logger = logging.getLogger(__name__)


class PipelineScheduler:
    """Owns the asyncio tasks running admitted pipelines.

    ``submit`` returns as soon as the task is created. The scheduler keeps a
    strong reference to each task until it finishes and logs anything that
    escapes the executor.
    """

    def __init__(self, executor: PipelineExecutor) -> None:
        self._executor = executor
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active(self) -> int:
        return len(self._tasks)

    def submit(self, plan: ExecutionPlan, task_description: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(
            self._executor.run(plan, task_description), name=f"pipeline:{plan.task_id}"
        )
        self._tasks[plan.task_id] = task
        task.add_done_callback(lambda t, task_id=plan.task_id: self._finished(task_id, t))
        logger.info("Scheduled pipeline %s", plan.task_id)
        return task

    def _finished(self, task_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(task_id, None)
        if task.cancelled():
            logger.warning("Pipeline %s was cancelled", task_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Pipeline %s crashed", task_id, exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for every run submitted so far."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def shutdown(self, grace_seconds: float = 5.0) -> None:
        """Give in-flight runs ``grace_seconds`` to finish, then cancel the rest."""
        pending = list(self._tasks.values())
        if not pending:
            return
        logger.info("Waiting for %d running pipeline(s)", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=grace_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
