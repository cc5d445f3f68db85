"""FastAPI application with lifespan, error mapping and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from agentgate.api.routes import health, pipeline
from agentgate.core.config import AppSettings
from agentgate.core.exceptions import ChainRPCError, GraphError, PaymentInvalid, PaymentRequired, StoreError
from agentgate.core.logging import configure_logging
from agentgate.core.protocols import IChainClient, ITaskStore
from agentgate.execution.executor import PipelineExecutor
from agentgate.execution.scheduler import PipelineScheduler
from agentgate.payment.chain import JsonRpcChainClient
from agentgate.payment.guard import PaymentGuard
from agentgate.persistence import create_task_store
from agentgate.workflow.parser import WorkflowParser

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(GraphError)
    async def _invalid_workflow(request: Request, exc: GraphError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid workflow", "details": str(exc)})

    @app.exception_handler(PaymentRequired)
    async def _payment_required(request: Request, exc: PaymentRequired) -> JSONResponse:
        return JSONResponse(
            status_code=402,
            content=exc.challenge.body(),
            headers={"WWW-Authenticate": exc.challenge.www_authenticate},
        )

    @app.exception_handler(PaymentInvalid)
    async def _payment_invalid(request: Request, exc: PaymentInvalid) -> JSONResponse:
        logger.warning("Payment verification failed for %s (%s): %s", exc.reference, exc.state, exc.reason)
        return JSONResponse(status_code=403, content={"error": "Invalid Payment", "details": exc.reason})

    @app.exception_handler(ChainRPCError)
    async def _chain_unavailable(request: Request, exc: ChainRPCError) -> JSONResponse:
        logger.error("Chain RPC unavailable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"error": "Payment verification unavailable", "details": str(exc)},
        )

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Task store error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


def create_app(
    settings: AppSettings | None = None,
    *,
    store: ITaskStore | None = None,
    chain_client: IChainClient | None = None,
    agent_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings are loaded here rather than in the lifespan so a missing chain
    configuration fails before the server starts accepting requests.
    """
    settings = settings or AppSettings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task_store = store or create_task_store(settings)
        chain = chain_client or JsonRpcChainClient(
            settings.chain.rpc_url, timeout=settings.chain.rpc_timeout_seconds
        )
        executor = PipelineExecutor(task_store, settings.agents, client=agent_client)
        scheduler = PipelineScheduler(executor)

        app.state.settings = settings
        app.state.store = task_store
        app.state.parser = WorkflowParser(min_fee=settings.payment.min_fee)
        app.state.guard = PaymentGuard(settings.chain, settings.payment, chain, task_store)
        app.state.scheduler = scheduler
        logger.info(
            "AgentGate up: chain %s, recipient %s, store %s",
            settings.chain.chain_id, settings.chain.master_wallet, settings.store.backend,
        )
        try:
            yield
        finally:
            await scheduler.shutdown(settings.shutdown_grace_seconds)
            await executor.close()
            await chain.close()
            await task_store.close()

    app = FastAPI(
        title="AgentGate Pipeline Orchestrator",
        version="0.1.0",
        lifespan=lifespan,
    )
    _register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(pipeline.router, prefix=settings.api_prefix)
    return app


def serve() -> None:
    """Run the service under uvicorn using ``AGENTGATE_HOST`` / ``AGENTGATE_PORT``."""
    import uvicorn

    settings = AppSettings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
