"""Per-run guardrails that gate every privileged action."""

from agentic_wallet.security.actions import (
    GuardedAction,
    ProgramInvocation,
    TokenTransfer,
    ValueTransfer,
)
from agentic_wallet.security.guardrails import Guardrails

__all__ = [
    "GuardedAction",
    "Guardrails",
    "ProgramInvocation",
    "TokenTransfer",
    "ValueTransfer",
]
