"""Async client for the pipeline API: 402 handshake, submission and polling."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from agentgate.core.exceptions import AgentGateError, GraphError, PaymentInvalid, PaymentRequired, PipelineTimeoutError
from agentgate.models.payment import PaymentChallenge, PaymentDetails
from agentgate.models.pipeline import PipelineResult, PipelineStatus
from agentgate.models.workflow import Workflow

logger = logging.getLogger(__name__)


class PipelineClient:
    """Talks to a running AgentGate service.

    Typical flow::

        details = await client.request_execution(workflow)    # 402 quote
        tx_hash = wallet.pay(details.recipient, details.amount)
        ack = await client.execute(workflow, tx_hash)
        result = await client.wait_for_completion(ack["taskId"])
    """

    def __init__(self, base_url: str, prefix: str = "/pipeline", scheme: str = "L402",
                 client: httpx.AsyncClient | None = None) -> None:
        self._prefix = prefix.rstrip("/")
        self._scheme = scheme
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=30.0)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> PipelineClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _body(self, workflow: Workflow, task_description: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {"workflow": workflow.to_wire()}
        if task_description:
            body["taskDescription"] = task_description
        return body

    def _raise_for(self, r: httpx.Response, reference: str = "") -> None:
        try:
            data = r.json()
        except ValueError:
            data = {"error": r.text}
        if r.status_code == 402:
            raise PaymentRequired(
                PaymentChallenge(
                    error=data.get("error", "Payment Required"),
                    message=data.get("message", ""),
                    details=PaymentDetails.model_validate(data["paymentDetails"]),
                    www_authenticate=r.headers.get("www-authenticate", ""),
                )
            )
        if r.status_code == 403:
            raise PaymentInvalid(reference, str(data.get("details") or data.get("error")))
        if r.status_code == 400:
            raise GraphError(str(data.get("details") or data.get("error")))
        raise AgentGateError(f"HTTP {r.status_code}: {data.get('error', data)}")

    async def request_execution(self, workflow: Workflow, task_description: str | None = None) -> PaymentDetails:
        """Submit without a credential and return the payment the server demands."""
        r = await self._client.post(f"{self._prefix}/execute-pipeline", json=self._body(workflow, task_description))
        if r.status_code != 402:
            self._raise_for(r)
        return PaymentDetails.model_validate(r.json()["paymentDetails"])

    async def execute(self, workflow: Workflow, tx_hash: str, task_description: str | None = None) -> dict[str, Any]:
        r = await self._client.post(
            f"{self._prefix}/execute-pipeline",
            json=self._body(workflow, task_description),
            headers={"Authorization": f"{self._scheme} {tx_hash}"},
        )
        if r.status_code != 200:
            self._raise_for(r, tx_hash)
        return r.json()

    async def get_status(self, task_id: str) -> PipelineStatus | None:
        r = await self._client.get(f"{self._prefix}/{task_id}/status")
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            self._raise_for(r)
        return PipelineStatus.model_validate(r.json())

    async def get_result(self, task_id: str) -> PipelineResult | None:
        r = await self._client.get(f"{self._prefix}/{task_id}/result")
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            self._raise_for(r)
        return PipelineResult.model_validate(r.json())

    async def wait_for_completion(self, task_id: str, timeout: float = 300.0,
                                  poll_interval: float = 2.0) -> PipelineResult:
        """Poll until the pipeline is terminal.

        The timeout only stops this client from waiting; the server keeps
        running the pipeline.
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            status = await self.get_status(task_id)
            if status is None:
                raise AgentGateError(f"Pipeline {task_id} not found")
            if status.status.is_terminal:
                result = await self.get_result(task_id)
                if result is not None and result.status.is_terminal:
                    return result
            await asyncio.sleep(poll_interval)
        raise PipelineTimeoutError(task_id, timeout)
