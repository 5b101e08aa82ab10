"""Closed set of actions the guardrails know how to authorize."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class ProgramInvocation:
    """Invoke one or more on-chain programs."""

    label: str
    program_ids: tuple[Pubkey, ...]


@dataclass(frozen=True)
class ValueTransfer:
    """Move native value, in lamports."""

    label: str
    lamports: int


@dataclass(frozen=True)
class TokenTransfer:
    """Mint or move tokens, in minimal units."""

    label: str
    amount_raw: int
    decimals: int


GuardedAction = Union[ProgramInvocation, ValueTransfer, TokenTransfer]
