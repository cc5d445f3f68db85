"""Client-submitted workflow graph models."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, field_validator

from agentgate.models.base import WireModel


class Node(WireModel):
    """One agent placed on the canvas."""

    id: str
    agent_id: str
    agent_name: str
    wallet_address: str = ""
    endpoint: Optional[str] = None
    price: Optional[str] = None
    position: Optional[dict[str, float]] = None

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[str]:
        # Unusable prices become None and are quoted at the minimum fee.
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float, Decimal)):
            return str(v)
        return v if isinstance(v, str) else None


class Edge(WireModel):
    """Directed dependency: ``target`` consumes the output of ``source``."""

    id: str
    source: str
    target: str


class Workflow(WireModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)


class PipelineExecutionRequest(WireModel):
    """Body of ``POST /execute-pipeline``."""

    workflow: Workflow
    task_description: Optional[str] = None
    user_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
