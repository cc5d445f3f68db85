"""WorkflowParser: node/edge graph -> ordered, costed ExecutionPlan."""

from __future__ import annotations

import heapq
import logging
import uuid
from decimal import Decimal

from agentgate.core.exceptions import GraphError
from agentgate.models.pipeline import ExecutionPlan, ExecutionStep
from agentgate.models.workflow import Workflow
from agentgate.workflow.pricing import DEFAULT_MIN_FEE, compute_total_cost, format_amount, parse_price

logger = logging.getLogger(__name__)


def new_task_id() -> str:
    return f"pipeline-{uuid.uuid4().hex}"


class WorkflowParser:
    """Validates a workflow and renders it as an :class:`ExecutionPlan`.

    Steps are ordered with Kahn's algorithm. Among nodes that are ready at the
    same time the one appearing first in ``workflow.nodes`` goes first, so the
    same graph always yields the same order.
    """

    def __init__(self, min_fee: Decimal = DEFAULT_MIN_FEE) -> None:
        self._min_fee = min_fee

    def validate(self, workflow: Workflow) -> list[int]:
        """Check the graph and return node indexes in execution order."""
        nodes = workflow.nodes
        if not nodes:
            raise GraphError("Workflow has no nodes")

        index: dict[str, int] = {}
        for i, node in enumerate(nodes):
            if node.id in index:
                raise GraphError(f"Duplicate node id {node.id!r}")
            index[node.id] = i

        successors: list[set[int]] = [set() for _ in nodes]
        indegree = [0] * len(nodes)
        for edge in workflow.edges:
            for end in (edge.source, edge.target):
                if end not in index:
                    raise GraphError(f"Edge {edge.id!r} references unknown node {end!r}")
            if edge.source == edge.target:
                raise GraphError(f"Edge {edge.id!r} is a self-loop on {edge.source!r}")
            src, dst = index[edge.source], index[edge.target]
            if dst not in successors[src]:
                successors[src].add(dst)
                indegree[dst] += 1

        ready = [i for i, d in enumerate(indegree) if d == 0]
        heapq.heapify(ready)
        ordered: list[int] = []
        while ready:
            i = heapq.heappop(ready)
            ordered.append(i)
            for j in successors[i]:
                indegree[j] -= 1
                if indegree[j] == 0:
                    heapq.heappush(ready, j)

        if len(ordered) != len(nodes):
            stuck = sorted(nodes[i].id for i, d in enumerate(indegree) if d > 0)
            raise GraphError(f"Workflow contains a cycle through nodes {stuck}")
        return ordered

    def total_cost(self, workflow: Workflow) -> str:
        return format_amount(compute_total_cost(workflow.nodes, self._min_fee))

    def parse(self, workflow: Workflow) -> ExecutionPlan:
        ordered = self.validate(workflow)

        inputs: dict[str, list[str]] = {n.id: [] for n in workflow.nodes}
        for edge in workflow.edges:
            if edge.source not in inputs[edge.target]:
                inputs[edge.target].append(edge.source)

        steps = []
        for order, i in enumerate(ordered, start=1):
            node = workflow.nodes[i]
            steps.append(
                ExecutionStep(
                    order=order,
                    node_id=node.id,
                    agent_id=node.agent_id,
                    agent_name=node.agent_name,
                    agent_address=node.wallet_address,
                    endpoint=node.endpoint,
                    price=format_amount(parse_price(node.price, self._min_fee)),
                    inputs=inputs[node.id],
                )
            )

        plan = ExecutionPlan(task_id=new_task_id(), steps=steps, total_cost=self.total_cost(workflow))
        logger.info("Execution plan %s: %d steps, total cost %s", plan.task_id, len(steps), plan.total_cost)
        return plan
