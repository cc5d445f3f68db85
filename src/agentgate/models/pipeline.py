"""Execution plan, step, and pipeline state models."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import Field

from agentgate.models.base import WireModel


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)


# Pipelines share the step vocabulary.
PipelineState = StepStatus

_RANK = {
    StepStatus.PENDING: 0,
    StepStatus.RUNNING: 1,
    StepStatus.COMPLETED: 2,
    StepStatus.FAILED: 2,
}


class ExecutionStep(WireModel):
    """One agent invocation within a plan.

    Only ``status``, ``result`` and ``error`` change after the plan is built,
    and only through :meth:`transition`.
    """

    order: int
    node_id: str
    agent_id: str
    agent_name: str
    agent_address: str
    endpoint: Optional[str] = None
    price: str
    inputs: list[str] = Field(default_factory=list)
    status: StepStatus = StepStatus.PENDING
    result: Any = None
    error: Optional[str] = None

    def transition(self, status: StepStatus, *, result: Any = None, error: str | None = None) -> None:
        """Move to ``status``; never backwards and never out of a terminal state."""
        if self.status.is_terminal or _RANK[status] <= _RANK[self.status]:
            raise ValueError(
                f"Step {self.order} cannot move from {self.status} to {status}"
            )
        self.status = status
        if result is not None:
            self.result = result
        if error is not None:
            self.error = error


class StepSummary(WireModel):
    order: int
    agent: str
    status: StepStatus


class PipelineStatus(WireModel):
    """Live progress of a pipeline, as served to pollers."""

    task_id: str
    status: PipelineState
    total_steps: int
    completed_steps: int = 0
    current_step: Optional[int] = None
    current_agent: Optional[str] = None
    steps: list[StepSummary] = Field(default_factory=list)


class StepOutcome(WireModel):
    order: int
    agent: str
    task_id: str
    result: Any = None
    error: Optional[str] = None


class PipelineResult(WireModel):
    """Per-step outcomes; partial while running, final once terminal."""

    task_id: str
    success: bool = False
    status: PipelineState
    completed_at: Optional[int] = None  # epoch millis
    steps: list[StepOutcome] = Field(default_factory=list)
    aggregated_output: Any = None
    results: list[Any] = Field(default_factory=list)


class ExecutionPlan(WireModel):
    """Ordered, costed rendering of a workflow graph."""

    task_id: str
    steps: list[ExecutionStep]
    total_cost: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def step_for(self, node_id: str) -> ExecutionStep | None:
        for step in self.steps:
            if step.node_id == node_id:
                return step
        return None

    def status_snapshot(self, state: PipelineState) -> PipelineStatus:
        running = next((s for s in self.steps if s.status == StepStatus.RUNNING), None)
        return PipelineStatus(
            task_id=self.task_id,
            status=state,
            total_steps=len(self.steps),
            completed_steps=sum(1 for s in self.steps if s.status.is_terminal),
            current_step=running.order if running else None,
            current_agent=running.agent_name if running else None,
            steps=[StepSummary(order=s.order, agent=s.agent_name, status=s.status) for s in self.steps],
        )

    def result_snapshot(self, state: PipelineState) -> PipelineResult:
        finished = [s for s in self.steps if s.status.is_terminal]
        completed = [s for s in finished if s.status == StepStatus.COMPLETED]
        terminal = state.is_terminal
        return PipelineResult(
            task_id=self.task_id,
            success=state == PipelineState.COMPLETED,
            status=state,
            completed_at=int(time.time() * 1000) if terminal else None,
            steps=[
                StepOutcome(
                    order=s.order,
                    agent=s.agent_name,
                    task_id=f"{self.task_id}-{s.order}",
                    result=s.result,
                    error=s.error,
                )
                for s in finished
            ],
            aggregated_output=completed[-1].result if terminal and completed else None,
            results=[s.result for s in completed],
        )
