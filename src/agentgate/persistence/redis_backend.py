"""Redis task store implementing ITaskStore, for multi-instance deployments."""

from __future__ import annotations

import redis.asyncio as aioredis

from agentgate.core.exceptions import StoreError
from agentgate.models.pipeline import ExecutionPlan, PipelineResult, PipelineState, PipelineStatus


class RedisTaskStore:
    """ITaskStore backed by Redis.

    Status and result live under separate keys and are written together in a
    MULTI/EXEC transaction, so readers see either the old or the new pair.
    """

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 key_prefix: str = "agentgate", ttl_seconds: int = 86400) -> None:
        self._prefix = key_prefix
        self._ttl = ttl_seconds
        self._client = aioredis.Redis(host=host, port=port, db=db, decode_responses=True)

    def _key(self, task_id: str, kind: str) -> str:
        return f"{self._prefix}:pipeline:{task_id}:{kind}"

    async def create(self, plan: ExecutionPlan) -> PipelineStatus:
        status = plan.status_snapshot(PipelineState.PENDING)
        try:
            await self._client.set(self._key(plan.task_id, "status"), status.model_dump_json(), ex=self._ttl)
        except Exception as exc:
            raise StoreError(f"Redis SET failed for task={plan.task_id!r}: {exc}") from exc
        return status

    async def get_status(self, task_id: str) -> PipelineStatus | None:
        try:
            raw = await self._client.get(self._key(task_id, "status"))
        except Exception as exc:
            raise StoreError(f"Redis GET failed for task={task_id!r}: {exc}") from exc
        return PipelineStatus.model_validate_json(raw) if raw is not None else None

    async def get_result(self, task_id: str) -> PipelineResult | None:
        try:
            raw = await self._client.get(self._key(task_id, "result"))
        except Exception as exc:
            raise StoreError(f"Redis GET failed for task={task_id!r}: {exc}") from exc
        return PipelineResult.model_validate_json(raw) if raw is not None else None

    async def update(self, task_id: str, *, status: PipelineStatus | None = None,
                     result: PipelineResult | None = None) -> None:
        status_key = self._key(task_id, "status")
        result_key = self._key(task_id, "result")
        try:
            if not await self._client.exists(status_key):
                raise StoreError(f"Unknown task {task_id!r}")
            async with self._client.pipeline(transaction=True) as pipe:
                if status is not None:
                    pipe.set(status_key, status.model_dump_json(), ex=self._ttl)
                else:
                    pipe.expire(status_key, self._ttl)
                if result is not None:
                    pipe.set(result_key, result.model_dump_json(), ex=self._ttl)
                await pipe.execute()
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(f"Redis update failed for task={task_id!r}: {exc}") from exc

    async def claim_payment(self, reference: str, task_id: str) -> bool:
        key = f"{self._prefix}:payment:{reference.lower()}"
        try:
            return bool(await self._client.set(key, task_id, nx=True, ex=self._ttl))
        except Exception as exc:
            raise StoreError(f"Redis SETNX failed for reference={reference!r}: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self._client.aclose()
