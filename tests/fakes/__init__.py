"""Shared test doubles: scripted chain, canned agents and workflow builders."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx

from agentgate.models.payment import ChainTransaction
from agentgate.models.workflow import Edge, Node, Workflow
from agentgate.persistence.memory_backend import MemoryTaskStore

WALLET = "0x" + "ab" * 20
OTHER_WALLET = "0x" + "cd" * 20
CHAIN_ID = 338
RPC_URL = "https://rpc.test"
WORKER_URL = "http://worker.test"
WEI = 10**18


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


class FakeChainClient:
    """IChainClient serving transactions registered with :meth:`add`."""

    def __init__(self) -> None:
        self.transactions: dict[str, ChainTransaction] = {}
        self.calls: list[str] = []

    def add(self, tx: str, to: str | None, value: int, chain_id: int | None = None) -> str:
        self.transactions[tx] = ChainTransaction(hash=tx, to=to, value=value, chain_id=chain_id)
        return tx

    async def get_transaction(self, tx: str) -> ChainTransaction | None:
        self.calls.append(tx)
        return self.transactions.get(tx)

    async def close(self) -> None:
        pass


def make_node(node_id: str, price: str | None = "0.01", agent_id: str | None = None,
              endpoint: str | None = None) -> Node:
    agent_id = agent_id or node_id
    return Node(
        id=node_id,
        agent_id=agent_id,
        agent_name=agent_id.title(),
        wallet_address=OTHER_WALLET,
        endpoint=endpoint if endpoint is not None else f"{WORKER_URL}/inference/{agent_id}",
        price=price,
    )


def make_workflow(nodes: list[Node], edges: list[tuple[str, str]] = ()) -> Workflow:
    return Workflow(
        nodes=nodes,
        edges=[Edge(id=f"e{i}", source=s, target=t) for i, (s, t) in enumerate(edges)],
    )


def linear_workflow() -> Workflow:
    """researcher (0.01) -> writer (0.02)."""
    return make_workflow(
        [make_node("researcher", "0.01"), make_node("writer", "0.02")],
        [("researcher", "writer")],
    )


class AgentServer:
    """httpx.MockTransport handler routing by agent path.

    Each route maps to a callable taking the decoded JSON payload and
    returning an ``httpx.Response``. Every payload received is kept in
    ``requests``.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Callable[[dict[str, Any]], httpx.Response]] = {}
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def ok(self, agent_id: str, result: Any) -> None:
        self.routes[f"/inference/{agent_id}"] = lambda _: httpx.Response(200, json={"success": True, "result": result})

    def fail(self, agent_id: str, status: int = 500, body: Any = None) -> None:
        self.routes[f"/inference/{agent_id}"] = lambda _: httpx.Response(status, json=body or {"error": "boom"})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, payload))
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "no such agent"})
        return route(payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


__all__ = [
    "AgentServer",
    "FakeChainClient",
    "MemoryTaskStore",
    "linear_workflow",
    "make_node",
    "make_workflow",
    "tx_hash",
]
