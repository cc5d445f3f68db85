"""AgentGate exception hierarchy."""

from __future__ import annotations

from typing import Any


class AgentGateError(Exception):
    """Base exception for all AgentGate errors."""


class GraphError(AgentGateError):
    """Workflow graph is empty, cyclic, or references unknown nodes."""


class PaymentError(AgentGateError):
    """Base for payment admission failures."""


class PaymentRequired(PaymentError):
    """No payment credential was presented; carries the challenge to send back."""

    def __init__(self, challenge: Any, state: str = "UNPAID") -> None:
        self.challenge = challenge
        self.state = state
        super().__init__(f"Payment required: {challenge.details.amount} {challenge.details.currency}")


class PaymentInvalid(PaymentError):
    """A payment credential was presented but does not prove the required payment.

    ``state`` is the admission state the request had reached when it was refused.
    """

    def __init__(self, reference: str, reason: str, state: str = "VERIFYING") -> None:
        self.reference = reference
        self.reason = reason
        self.state = state
        super().__init__(reason)


class ChainRPCError(PaymentError):
    """Blockchain RPC endpoint unreachable or returned an error."""


class StepExecutionError(AgentGateError):
    """A remote agent call failed."""

    def __init__(self, order: int, agent: str, message: str) -> None:
        self.order = order
        self.agent = agent
        super().__init__(f"Step {order} ({agent}) failed: {message}")


class StoreError(AgentGateError):
    """Task store operation failed."""


class PipelineTimeoutError(AgentGateError):
    """Client gave up waiting for a pipeline to finish."""

    def __init__(self, task_id: str, timeout: float) -> None:
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"Pipeline {task_id} did not finish within {timeout}s")
