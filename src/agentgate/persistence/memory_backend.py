"""In-process task store: dict-backed, one writer lock per task."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from agentgate.core.exceptions import StoreError
from agentgate.models.pipeline import ExecutionPlan, PipelineResult, PipelineState, PipelineStatus


@dataclass
class _Entry:
    status: PipelineStatus
    expires_at: float
    result: PipelineResult | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class MemoryTaskStore:
    """ITaskStore for a single process.

    Records are copied on the way in and out, so a poller only ever sees a
    whole record. Entries expire ``ttl_seconds`` after their last write. Once
    ``max_entries`` is exceeded the least recently written finished pipelines
    are dropped; pipelines still in flight are never evicted for space.
    """

    def __init__(self, ttl_seconds: int = 86400, max_entries: int = 10_000,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._claims: dict[str, tuple[str, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, task_id: str) -> _Entry | None:
        entry = self._entries.get(task_id)
        if entry is not None and entry.expires_at <= self._clock():
            del self._entries[task_id]
            return None
        return entry

    def _evict(self) -> None:
        now = self._clock()
        for task_id in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[task_id]
        excess = len(self._entries) - self._max_entries
        if excess > 0:
            finished = [k for k, e in self._entries.items() if e.status.status.is_terminal]
            for task_id in finished[:excess]:
                del self._entries[task_id]
        for ref in [r for r, (_, exp) in self._claims.items() if exp <= now]:
            del self._claims[ref]

    async def create(self, plan: ExecutionPlan) -> PipelineStatus:
        status = plan.status_snapshot(PipelineState.PENDING)
        self._entries[plan.task_id] = _Entry(
            status=status.model_copy(deep=True),
            expires_at=self._clock() + self._ttl,
        )
        self._evict()
        return status

    async def get_status(self, task_id: str) -> PipelineStatus | None:
        entry = self._live(task_id)
        return entry.status.model_copy(deep=True) if entry else None

    async def get_result(self, task_id: str) -> PipelineResult | None:
        entry = self._live(task_id)
        if entry is None or entry.result is None:
            return None
        return entry.result.model_copy(deep=True)

    async def update(self, task_id: str, *, status: PipelineStatus | None = None,
                     result: PipelineResult | None = None) -> None:
        entry = self._live(task_id)
        if entry is None:
            raise StoreError(f"Unknown task {task_id!r}")
        async with entry.lock:
            if status is not None:
                entry.status = status.model_copy(deep=True)
            if result is not None:
                entry.result = result.model_copy(deep=True)
            entry.expires_at = self._clock() + self._ttl
            self._entries.move_to_end(task_id)

    async def claim_payment(self, reference: str, task_id: str) -> bool:
        key = reference.lower()
        held = self._claims.get(key)
        if held is not None and held[1] > self._clock():
            return False
        self._claims[key] = (task_id, self._clock() + self._ttl)
        return True

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()
        self._claims.clear()
