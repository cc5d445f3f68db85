"""Tests for PipelineExecutor step execution, failure policy and store updates."""

from __future__ import annotations

import httpx
import pytest

from agentgate.core.config import AgentsConfig
from agentgate.execution.executor import PipelineExecutor
from agentgate.models.pipeline import PipelineState, StepStatus
from agentgate.workflow.parser import WorkflowParser
from tests.fakes import WORKER_URL, AgentServer, MemoryTaskStore, linear_workflow, make_node, make_workflow


class RecordingStore(MemoryTaskStore):
    """MemoryTaskStore that remembers every status it was given."""

    def __init__(self) -> None:
        super().__init__()
        self.history = []

    async def update(self, task_id, *, status=None, result=None):
        if status is not None:
            self.history.append(status.model_copy(deep=True))
        await super().update(task_id, status=status, result=result)


@pytest.fixture
def agents() -> AgentServer:
    return AgentServer()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def executor(store, agents) -> PipelineExecutor:
    return PipelineExecutor(store, AgentsConfig(worker_base_url=WORKER_URL), client=agents.client())


async def _prepare(store, workflow):
    plan = WorkflowParser().parse(workflow)
    await store.create(plan)
    return plan


async def test_linear_pipeline_completes(store, agents, executor):
    agents.ok("researcher", {"findings": ["a", "b"]})
    agents.ok("writer", "final article")
    plan = await _prepare(store, linear_workflow())

    assert (await store.get_status(plan.task_id)).completed_steps == 0

    result = await executor.run(plan, "Write about L402")

    assert result.status == PipelineState.COMPLETED
    assert result.success is True
    assert [s.result for s in result.steps] == [{"findings": ["a", "b"]}, "final article"]
    assert result.aggregated_output == "final article"
    assert result.results == [{"findings": ["a", "b"]}, "final article"]

    status = await store.get_status(plan.task_id)
    assert status.status == PipelineState.COMPLETED
    assert status.completed_steps == 2
    assert status.current_step is None
    assert (await store.get_result(plan.task_id)).status == PipelineState.COMPLETED


async def test_payload_carries_upstream_outputs(store, agents, executor):
    agents.ok("researcher", "facts")
    agents.ok("writer", "prose")
    plan = await _prepare(store, linear_workflow())

    await executor.run(plan, "Write about L402")

    (first_path, first), (second_path, second) = agents.requests
    assert first_path == "/inference/researcher"
    assert first["task"] == "Write about L402"
    assert first["input"] == "Write about L402"
    assert first["inputs"] == []
    assert second["inputs"] == [{"nodeId": "researcher", "agent": "Researcher", "result": "facts"}]
    assert "facts" in second["input"]
    assert second["taskId"] == f"{plan.task_id}-2"


async def test_failed_second_step_fails_pipeline(store, agents, executor):
    agents.ok("researcher", "facts")
    agents.fail("writer", 500)
    plan = await _prepare(store, linear_workflow())

    result = await executor.run(plan)

    assert result.status == PipelineState.FAILED
    assert result.success is False
    first, second = result.steps
    assert first.error is None and first.result == "facts"
    assert second.error and "HTTP 500" in second.error
    assert plan.steps[0].status == StepStatus.COMPLETED
    assert plan.steps[1].status == StepStatus.FAILED
    assert result.aggregated_output == "facts"


async def test_dependents_of_failed_step_are_skipped(store, agents, executor):
    wf = make_workflow(
        [make_node("a"), make_node("b"), make_node("c"), make_node("d")],
        [("a", "b"), ("b", "c")],
    )
    agents.fail("a")
    agents.ok("b", "never")
    agents.ok("c", "never")
    agents.ok("d", "independent")
    plan = await _prepare(store, wf)

    result = await executor.run(plan)

    assert [p for p, _ in agents.requests] == ["/inference/a", "/inference/d"]
    by_node = {s.node_id: s for s in plan.steps}
    assert by_node["b"].status == StepStatus.FAILED
    assert "upstream step 1" in by_node["b"].error
    assert "upstream step 2" in by_node["c"].error
    assert by_node["d"].status == StepStatus.COMPLETED
    assert result.status == PipelineState.FAILED
    assert result.aggregated_output == "independent"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"success": False, "error": "model overloaded"}),
        httpx.Response(404, json={"error": "missing"}),
    ],
)
async def test_bad_responses_fail_the_step(store, agents, executor, response):
    agents.routes["/inference/solo"] = lambda _: response
    plan = await _prepare(store, make_workflow([make_node("solo")]))

    result = await executor.run(plan)

    assert result.status == PipelineState.FAILED
    assert result.steps[0].error


async def test_network_error_is_recorded(store):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    executor = PipelineExecutor(store, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    plan = await _prepare(store, make_workflow([make_node("solo")]))

    result = await executor.run(plan)

    assert "connection refused" in result.steps[0].error
    assert (await store.get_status(plan.task_id)).status == PipelineState.FAILED


async def test_step_statuses_never_regress(store, agents, executor):
    agents.ok("researcher", "facts")
    agents.fail("writer")
    plan = await _prepare(store, linear_workflow())

    await executor.run(plan)

    rank = {"pending": 0, "running": 1, "completed": 2, "failed": 2}
    for order in (1, 2):
        seen = [next(s.status for s in h.steps if s.order == order) for h in store.history]
        ranks = [rank[s] for s in seen]
        assert ranks == sorted(ranks)
        terminal = [s for s in seen if s in ("completed", "failed")]
        assert len(set(terminal)) <= 1


async def test_resolver_error_is_contained(store, agents):
    def broken(step, config, client):
        raise RuntimeError("no descriptor")

    executor = PipelineExecutor(store, client=agents.client(), resolver=broken)
    plan = await _prepare(store, linear_workflow())

    result = await executor.run(plan)

    assert result.status == PipelineState.FAILED
    assert all(s.status == StepStatus.FAILED for s in plan.steps)
    assert (await store.get_status(plan.task_id)).status == PipelineState.FAILED


class CrowdedStore(MemoryTaskStore):
    """Single-slot store that admits another pipeline while the first is running."""

    def __init__(self) -> None:
        super().__init__(max_entries=1)
        self.newcomer = None

    async def update(self, task_id, *, status=None, result=None):
        if self.newcomer is None:
            self.newcomer = WorkflowParser().parse(linear_workflow())
            await self.create(self.newcomer)
        await super().update(task_id, status=status, result=result)


async def test_running_pipeline_survives_a_full_store(agents):
    store = CrowdedStore()
    agents.ok("researcher", "facts")
    agents.ok("writer", "prose")
    plan = await _prepare(store, linear_workflow())

    result = await PipelineExecutor(store, AgentsConfig(worker_base_url=WORKER_URL), client=agents.client()).run(plan)

    assert [path for path, _ in agents.requests] == ["/inference/researcher", "/inference/writer"]
    assert result.status == PipelineState.COMPLETED
    status = await store.get_status(plan.task_id)
    assert status is not None and status.status == PipelineState.COMPLETED
    assert await store.get_status(store.newcomer.task_id) is not None


async def test_lost_progress_writes_do_not_stop_remaining_steps(agents):
    store = MemoryTaskStore()
    agents.ok("researcher", "facts")
    agents.ok("writer", "prose")
    plan = WorkflowParser().parse(linear_workflow())  # never created, every write fails

    result = await PipelineExecutor(store, AgentsConfig(worker_base_url=WORKER_URL), client=agents.client()).run(plan)

    assert len(agents.requests) == 2
    assert result.status == PipelineState.COMPLETED
    assert [s.status for s in plan.steps] == [StepStatus.COMPLETED, StepStatus.COMPLETED]
