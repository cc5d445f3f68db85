"""Pluggable task store backends behind the ITaskStore Protocol."""

from __future__ import annotations

from agentgate.core.config import AppSettings
from agentgate.core.protocols import ITaskStore
from agentgate.persistence.memory_backend import MemoryTaskStore
from agentgate.persistence.redis_backend import RedisTaskStore


def create_task_store(settings: AppSettings) -> ITaskStore:
    """Create the task store selected by ``AGENTGATE_STORE_BACKEND``."""
    if settings.store.backend == "redis":
        return RedisTaskStore(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
            key_prefix=settings.redis.key_prefix,
            ttl_seconds=settings.store.ttl_seconds,
        )
    return MemoryTaskStore(
        ttl_seconds=settings.store.ttl_seconds,
        max_entries=settings.store.max_entries,
    )


__all__ = ["MemoryTaskStore", "RedisTaskStore", "create_task_store"]
