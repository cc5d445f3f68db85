"""Payment-gated pipeline execution and polling endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from agentgate.api.deps import get_guard, get_parser, get_scheduler, get_store
from agentgate.core.protocols import ITaskStore
from agentgate.execution.scheduler import PipelineScheduler
from agentgate.models.workflow import PipelineExecutionRequest
from agentgate.payment.guard import PaymentGuard
from agentgate.workflow.parser import WorkflowParser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipeline"])


@router.post("/execute-pipeline")
async def execute_pipeline(
    body: PipelineExecutionRequest,
    request: Request,
    guard: PaymentGuard = Depends(get_guard),
    parser: WorkflowParser = Depends(get_parser),
    store: ITaskStore = Depends(get_store),
    scheduler: PipelineScheduler = Depends(get_scheduler),
) -> dict:
    """Run a workflow once its aggregate price has been paid on-chain.

    The graph is validated before the payment check so a client is never
    asked to pay for a workflow that cannot run.
    """
    plan = parser.parse(body.workflow)
    reference = guard.extract_credential(request.headers)
    await guard.admit(body.workflow, reference, task_id=plan.task_id)

    await store.create(plan)
    scheduler.submit(plan, body.task_description)

    logger.info("Executing pipeline %s with %d agents", plan.task_id, len(plan.steps))
    message = f"Pipeline execution started with {len(plan.steps)} agents"
    if body.task_description:
        message += f": {body.task_description}"
    return {
        "success": True,
        "taskId": plan.task_id,
        "status": "running",
        "message": message,
        "totalSteps": len(plan.steps),
        "estimatedCost": plan.total_cost,
    }


@router.get("/{task_id}/status")
async def pipeline_status(task_id: str, store: ITaskStore = Depends(get_store)):
    status = await store.get_status(task_id)
    if status is None:
        return JSONResponse(status_code=404, content={"error": "Pipeline not found"})
    return status.to_wire()


@router.get("/{task_id}/result")
async def pipeline_result(task_id: str, store: ITaskStore = Depends(get_store)):
    result = await store.get_result(task_id)
    if result is not None:
        return result.to_wire()
    status = await store.get_status(task_id)
    if status is None:
        return JSONResponse(status_code=404, content={"error": "Pipeline not found"})
    return JSONResponse(
        status_code=404,
        content={"error": "Pipeline result not ready", "status": status.status.value},
    )
