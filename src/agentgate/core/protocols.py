"""Protocol interfaces for AgentGate abstractions.

All inter-layer communication uses these Protocols: structural typing,
no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from agentgate.core.types import JsonDict, TaskId, TxHash
from agentgate.models.payment import ChainTransaction
from agentgate.models.pipeline import ExecutionPlan, PipelineResult, PipelineStatus


# ---------------------------------------------------------------------------
# Blockchain
# ---------------------------------------------------------------------------

@runtime_checkable
class IChainClient(Protocol):
    """Read-only transaction lookup against the configured chain."""

    async def get_transaction(self, tx_hash: TxHash) -> ChainTransaction | None: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Remote agents
# ---------------------------------------------------------------------------

@runtime_checkable
class IServiceDescriptor(Protocol):
    """A remote agent resolved at plan time."""

    endpoint: str
    price: str

    async def invoke(self, payload: JsonDict) -> Any: ...


# ---------------------------------------------------------------------------
# Task store
# ---------------------------------------------------------------------------

@runtime_checkable
class ITaskStore(Protocol):
    """taskId -> live status and (once a step finishes) result."""

    async def create(self, plan: ExecutionPlan) -> PipelineStatus: ...

    async def get_status(self, task_id: TaskId) -> PipelineStatus | None: ...

    async def get_result(self, task_id: TaskId) -> PipelineResult | None: ...

    async def update(
        self,
        task_id: TaskId,
        *,
        status: PipelineStatus | None = None,
        result: PipelineResult | None = None,
    ) -> None: ...

    async def claim_payment(self, reference: TxHash, task_id: TaskId) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
