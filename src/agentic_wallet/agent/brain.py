"""A fixed, rule-based plan for the two-agent demo."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class MintIfLow:
    """Top the primary agent up by *top_up_tokens* when it holds fewer than *min_tokens*."""

    min_tokens: int
    top_up_tokens: int


@dataclass(frozen=True)
class TransferIfOtherLow:
    """Send *transfer_tokens* to the secondary agent when it holds fewer than *other_min_tokens*."""

    other_min_tokens: int
    transfer_tokens: int


PlanAction = Union[MintIfLow, TransferIfOtherLow]


@dataclass(frozen=True)
class AgentPlan:
    actions: tuple[PlanAction, ...]


class AgentBrain:
    """Keeps agent-001 above 50 tokens and agent-002 above 10 tokens."""

    def create_plan(self) -> AgentPlan:
        return AgentPlan(
            actions=(
                MintIfLow(min_tokens=50, top_up_tokens=50),
                TransferIfOtherLow(other_min_tokens=10, transfer_tokens=5),
            )
        )
