"""Type aliases used across AgentGate."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
TaskId = str
TxHash = str
