"""FastAPI dependencies backed by objects wired in the lifespan."""

from __future__ import annotations

from fastapi import Request

from agentgate.core.protocols import ITaskStore
from agentgate.execution.scheduler import PipelineScheduler
from agentgate.payment.guard import PaymentGuard
from agentgate.workflow.parser import WorkflowParser


def get_store(request: Request) -> ITaskStore:
    return request.app.state.store


def get_guard(request: Request) -> PaymentGuard:
    return request.app.state.guard


def get_parser(request: Request) -> WorkflowParser:
    return request.app.state.parser


def get_scheduler(request: Request) -> PipelineScheduler:
    return request.app.state.scheduler
