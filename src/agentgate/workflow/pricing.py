"""Node price parsing and aggregate cost.

Both the parser (``ExecutionPlan.total_cost``) and the payment guard (the
amount demanded in a 402) go through :func:`compute_total_cost`, so the two
figures cannot drift apart.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Iterable

from agentgate.models.workflow import Node

DEFAULT_MIN_FEE = Decimal("0.01")


def parse_price(raw: str | None, min_fee: Decimal = DEFAULT_MIN_FEE) -> Decimal:
    """Return the node's price, or ``min_fee`` if it is missing or malformed."""
    if raw is None:
        return min_fee
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return min_fee
    if not value.is_finite() or value < 0:
        return min_fee
    return value


def compute_total_cost(nodes: Iterable[Node], min_fee: Decimal = DEFAULT_MIN_FEE) -> Decimal:
    return sum((parse_price(n.price, min_fee) for n in nodes), Decimal("0"))


def format_amount(value: Decimal) -> str:
    """Plain decimal string, no exponent, no trailing zeros: ``Decimal("0.0300") -> "0.03"``."""
    text = format(value.normalize(), "f")
    return text if text != "-0" else "0"


def to_base_units(amount: str | Decimal, decimals: int = 18) -> int:
    """Convert a display amount to integer base units, rounding sub-unit dust up."""
    scaled = Decimal(amount).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_CEILING))
