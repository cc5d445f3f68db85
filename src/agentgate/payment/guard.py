"""PaymentGuard: demand and verify an on-chain payment before admitting a plan.

Each request walks UNPAID -> VERIFYING -> ADMITTED. The guard keeps no state
between requests; the amount is always recomputed from the submitted nodes and
the only outside read is the transaction lookup.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping

from agentgate.core.config import ChainConfig, PaymentConfig
from agentgate.core.exceptions import PaymentInvalid, PaymentRequired
from agentgate.core.protocols import IChainClient, ITaskStore
from agentgate.models.payment import Admission, ChainTransaction, GuardState, PaymentChallenge, PaymentDetails
from agentgate.models.workflow import Workflow
from agentgate.workflow.pricing import compute_total_cost, format_amount, to_base_units

logger = logging.getLogger(__name__)

_TX_HASH = re.compile(r"^0x[0-9a-fA-F]{64}$")

CREDENTIAL_HEADERS = ("authorization", "x-payment-token")


class PaymentGuard:
    def __init__(
        self,
        chain: ChainConfig,
        payment: PaymentConfig,
        client: IChainClient,
        store: ITaskStore | None = None,
    ) -> None:
        self._chain = chain
        self._payment = payment
        self._client = client
        self._store = store

    def required_amount(self, workflow: Workflow) -> str:
        return format_amount(compute_total_cost(workflow.nodes, self._payment.min_fee))

    def challenge(self, amount: str) -> PaymentChallenge:
        recipient = self._chain.master_wallet
        currency = self._chain.currency
        return PaymentChallenge(
            details=PaymentDetails(
                amount=amount,
                currency=currency,
                recipient=recipient,
                chain_id=self._chain.chain_id,
            ),
            www_authenticate=(
                f'{self._payment.scheme} type="transaction", amount="{amount}", '
                f'token="{currency}", recipient="{recipient}"'
            ),
        )

    def extract_credential(self, headers: Mapping[str, str]) -> str | None:
        """Return the payment reference from ``<scheme> <reference>``, if any."""
        lowered = {k.lower(): v for k, v in headers.items()}
        for name in CREDENTIAL_HEADERS:
            raw = lowered.get(name)
            if not raw:
                continue
            parts = raw.strip().split(None, 1)
            if len(parts) == 2 and parts[0].lower() == self._payment.scheme.lower():
                return parts[1].strip()
        return None

    async def admit(self, workflow: Workflow, reference: str | None,
                    task_id: str | None = None) -> Admission:
        """Admit the request or raise PaymentRequired / PaymentInvalid.

        Both errors carry the ``GuardState`` the request reached. ``task_id``
        is only used to claim the reference when replay rejection is enabled.
        """
        amount = self.required_amount(workflow)
        state = GuardState.UNPAID
        if not reference:
            logger.info("Payment required: %s %s", amount, self._chain.currency)
            raise PaymentRequired(self.challenge(amount), state=state)

        state = GuardState.VERIFYING
        logger.info("Verifying payment %s for %s %s", reference, amount, self._chain.currency)
        tx = await self._verify(reference, amount, state)

        if self._payment.reject_replays and self._store is not None:
            if not await self._store.claim_payment(reference, task_id or ""):
                raise PaymentInvalid(reference, "Payment reference has already been used", state=state)

        state = GuardState.ADMITTED
        logger.info("Payment %s verified", reference)
        return Admission(state=state, amount=amount, reference=reference, paid_value=tx.value)

    async def _verify(self, reference: str, amount: str, state: GuardState) -> ChainTransaction:
        if not _TX_HASH.match(reference):
            raise PaymentInvalid(reference, f"Malformed transaction reference {reference!r}", state=state)

        tx = await self._client.get_transaction(reference)
        if tx is None:
            raise PaymentInvalid(reference, "Transaction not found on chain", state=state)

        recipient = self._chain.master_wallet
        if (tx.to or "").lower() != recipient.lower():
            raise PaymentInvalid(
                reference, f"Invalid Recipient: Paid to {tx.to}, expected {recipient}", state=state
            )

        if tx.chain_id is not None and tx.chain_id != self._chain.chain_id:
            raise PaymentInvalid(
                reference, f"Wrong chain: transaction on {tx.chain_id}, expected {self._chain.chain_id}",
                state=state,
            )

        required = to_base_units(amount, self._chain.decimals)
        if tx.value < required:
            raise PaymentInvalid(
                reference, f"Insufficient Payment: Paid {tx.value} base units, needed {required} ({amount})",
                state=state,
            )
        return tx
