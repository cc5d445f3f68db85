"""Remote agent endpoints, resolved once per plan."""

from __future__ import annotations

from typing import Any

import httpx

from agentgate.core.config import AgentsConfig
from agentgate.core.types import JsonDict
from agentgate.models.pipeline import ExecutionStep


class HttpServiceDescriptor:
    """IServiceDescriptor that POSTs the step payload as JSON to the agent."""

    def __init__(self, agent_name: str, endpoint: str, price: str, client: httpx.AsyncClient) -> None:
        self.agent_name = agent_name
        self.endpoint = endpoint
        self.price = price
        self._client = client

    async def invoke(self, payload: JsonDict) -> Any:
        """Return the agent's raw result.

        Raises httpx.HTTPError on transport failures and non-2xx responses,
        ValueError when the body is not JSON or reports a failure.
        """
        r = await self._client.post(self.endpoint, json=payload)
        if r.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {r.status_code}: {r.text[:200]}", request=r.request, response=r
            )
        try:
            data = r.json()
        except ValueError as exc:
            raise ValueError(f"Malformed response from {self.agent_name}: {exc}") from exc
        if isinstance(data, dict):
            if data.get("success") is False or data.get("error"):
                raise ValueError(str(data.get("error") or data.get("message") or "Agent reported failure"))
            for key in ("result", "data"):
                if key in data:
                    return data[key]
        return data


def resolve_endpoint(step: ExecutionStep, config: AgentsConfig) -> str:
    base = config.worker_base_url.rstrip("/")
    endpoint = (step.endpoint or "").strip()
    if not endpoint:
        return f"{base}/inference/{step.agent_id}"
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return f"{base}/{endpoint.lstrip('/')}"


def resolve_service(step: ExecutionStep, config: AgentsConfig,
                    client: httpx.AsyncClient) -> HttpServiceDescriptor:
    return HttpServiceDescriptor(step.agent_name, resolve_endpoint(step, config), step.price, client)
