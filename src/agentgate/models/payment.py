"""Payment challenge and on-chain transaction models."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from agentgate.models.base import WireModel


class GuardState(StrEnum):
    UNPAID = "UNPAID"
    VERIFYING = "VERIFYING"
    ADMITTED = "ADMITTED"


class PaymentDetails(WireModel):
    amount: str
    currency: str
    recipient: str
    chain_id: int


class PaymentChallenge(WireModel):
    """Everything needed to render a 402 response."""

    error: str = "Payment Required"
    message: str = "Please pay the required amount to execute this pipeline."
    details: PaymentDetails
    www_authenticate: str

    def body(self) -> dict:
        return {
            "error": self.error,
            "message": self.message,
            "paymentDetails": self.details.to_wire(),
        }


class ChainTransaction(BaseModel):
    """Subset of an ``eth_getTransactionByHash`` result."""

    hash: str
    to: Optional[str] = None
    value: int  # base units (wei)
    chain_id: Optional[int] = None
    block_number: Optional[int] = None


class Admission(BaseModel):
    """Outcome of a successful payment check."""

    state: GuardState = GuardState.ADMITTED
    amount: str
    reference: str
    paid_value: int
