"""Run an execution plan against remote agents, keeping the task store in sync."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import httpx

from agentgate.core.config import AgentsConfig
from agentgate.core.exceptions import StepExecutionError, StoreError
from agentgate.core.protocols import IServiceDescriptor, ITaskStore
from agentgate.core.types import JsonDict
from agentgate.execution.services import resolve_service
from agentgate.models.pipeline import ExecutionPlan, ExecutionStep, PipelineResult, PipelineState, StepStatus

logger = logging.getLogger(__name__)

Resolver = Callable[[ExecutionStep, AgentsConfig, httpx.AsyncClient], IServiceDescriptor]


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str, ensure_ascii=False)


class PipelineExecutor:
    """Runs steps sequentially in plan order.

    A failed step fails every step that (transitively) consumes its output
    without invoking it; steps on independent branches still run. The
    pipeline ends ``failed`` if any step failed.
    """

    def __init__(
        self,
        store: ITaskStore,
        config: AgentsConfig | None = None,
        client: httpx.AsyncClient | None = None,
        resolver: Resolver = resolve_service,
    ) -> None:
        self._store = store
        self._config = config or AgentsConfig()
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)
        self._resolver = resolver

    async def close(self) -> None:
        await self._client.aclose()

    def build_payload(self, plan: ExecutionPlan, step: ExecutionStep,
                      task_description: str | None) -> JsonDict:
        task = task_description or step.agent_name
        upstream = []
        for node_id in step.inputs:
            source = plan.step_for(node_id)
            if source is not None and source.status == StepStatus.COMPLETED:
                upstream.append({"nodeId": node_id, "agent": source.agent_name, "result": source.result})

        text = task
        if upstream:
            rendered = "\n\n".join(f"[{u['agent']}]\n{_render(u['result'])}" for u in upstream)
            text = f"{task}\n\nInput from previous agents:\n\n{rendered}"
        return {
            "taskId": f"{plan.task_id}-{step.order}",
            "task": task,
            "input": text,
            "inputs": upstream,
        }

    async def _publish(self, plan: ExecutionPlan, state: PipelineState) -> None:
        has_result = any(s.status.is_terminal for s in plan.steps)
        try:
            await self._store.update(
                plan.task_id,
                status=plan.status_snapshot(state),
                result=plan.result_snapshot(state) if has_result else None,
            )
        except StoreError as exc:
            logger.warning("[%s] progress not recorded, continuing: %s", plan.task_id, exc)

    async def _run_step(self, plan: ExecutionPlan, step: ExecutionStep,
                        service: IServiceDescriptor, task_description: str | None) -> None:
        step.transition(StepStatus.RUNNING)
        await self._publish(plan, PipelineState.RUNNING)

        payload = self.build_payload(plan, step, task_description)
        logger.info("[%s] step %d -> %s (%s)", plan.task_id, step.order, step.agent_name, service.endpoint)
        start = time.perf_counter()
        try:
            result = await service.invoke(payload)
        except Exception as exc:
            latency_ms = int((time.perf_counter() - start) * 1000)
            err = StepExecutionError(step.order, step.agent_name, str(exc) or type(exc).__name__)
            logger.warning("[%s] %s (%d ms)", plan.task_id, err, latency_ms)
            step.transition(StepStatus.FAILED, error=str(err))
            return
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info("[%s] step %d <- %s ok (%d ms)", plan.task_id, step.order, step.agent_name, latency_ms)
        step.transition(StepStatus.COMPLETED, result=result)

    async def run(self, plan: ExecutionPlan, task_description: str | None = None) -> PipelineResult:
        """Execute ``plan``. Never raises; every failure ends up in the store."""
        state = PipelineState.FAILED
        try:
            services = {s.order: self._resolver(s, self._config, self._client) for s in plan.steps}
            await self._publish(plan, PipelineState.RUNNING)

            failed: set[str] = set()
            for step in plan.steps:
                blocked = next((n for n in step.inputs if n in failed), None)
                if blocked is not None:
                    upstream = plan.step_for(blocked)
                    step.transition(
                        StepStatus.FAILED,
                        error=f"Skipped: upstream step {upstream.order} ({upstream.agent_name}) failed",
                    )
                else:
                    await self._run_step(plan, step, services[step.order], task_description)
                if step.status == StepStatus.FAILED:
                    failed.add(step.node_id)
                await self._publish(plan, PipelineState.RUNNING)

            state = PipelineState.FAILED if failed else PipelineState.COMPLETED
        except Exception:
            logger.exception("[%s] pipeline aborted", plan.task_id)
            for step in plan.steps:
                if not step.status.is_terminal:
                    step.transition(StepStatus.FAILED, error="Pipeline aborted by an internal error")

        result = plan.result_snapshot(state)
        try:
            await self._store.update(plan.task_id, status=plan.status_snapshot(state), result=result)
        except Exception:
            logger.exception("[%s] could not record final state", plan.task_id)
        logger.info("[%s] pipeline %s (%d steps)", plan.task_id, state, len(plan.steps))
        return result
