"""Per-run policy gate for privileged actions.

One :class:`Guardrails` instance is created per run and passed to every
component that needs authorization. Each check follows the same order:

1. disabled -> allow, counter untouched
2. kill switch -> :class:`KillSwitchActive`
3. bump the action counter; past ``max_actions_per_run`` ->
   :class:`ActionBudgetExceeded` (the counter stays bumped, so the budget
   latches for the rest of the run)
4. the check specific to the action

Checks never touch the network.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal, InvalidOperation
from typing import Iterable

from solders.pubkey import Pubkey

from agentic_wallet.config import GuardrailsConfig
from agentic_wallet.errors import (
    ActionBudgetExceeded,
    ConfigurationError,
    InvalidAmount,
    KillSwitchActive,
    LimitExceeded,
    ProgramNotAllowed,
)
from agentic_wallet.ledger.base import LAMPORTS_PER_SOL
from agentic_wallet.security.actions import (
    GuardedAction,
    ProgramInvocation,
    TokenTransfer,
    ValueTransfer,
)

logger = logging.getLogger("agentic_wallet.security.guardrails")


def _parse_programs(raw: Iterable[str]) -> frozenset[Pubkey]:
    programs = set()
    for value in raw:
        try:
            programs.add(Pubkey.from_string(value))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid program id in allow list: {value!r}") from exc
    return frozenset(programs)


class Guardrails:
    """Stateful authorization gate for one run."""

    def __init__(self, config: GuardrailsConfig | None = None) -> None:
        self.config = (config or GuardrailsConfig()).model_copy(deep=True)
        self.allowed_programs = _parse_programs(self.config.allow_programs)
        self._max_sol = Decimal(str(self.config.max_sol_per_tx))
        self._max_tokens = Decimal(str(self.config.max_tokens_per_tx))
        self._lock = threading.Lock()
        self._actions = 0

    @classmethod
    def from_env(cls, environ=None) -> Guardrails:
        return cls(GuardrailsConfig.from_env(environ))

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def action_count(self) -> int:
        with self._lock:
            return self._actions

    @property
    def remaining_actions(self) -> int:
        with self._lock:
            return max(0, self.config.max_actions_per_run - self._actions)

    def _bump(self, label: str) -> None:
        if self.config.kill_switch:
            raise KillSwitchActive(label, "KILL_SWITCH active. Blocked")
        with self._lock:
            self._actions += 1
            count = self._actions
        limit = self.config.max_actions_per_run
        if count > limit:
            raise ActionBudgetExceeded(
                label,
                f"Max actions per run exceeded ({limit}). Blocked",
                limit=limit,
                observed=count,
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def assert_programs_allowed(self, label: str, program_ids: Iterable[Pubkey]) -> None:
        if not self.enabled:
            return
        self._bump(label)
        for program_id in program_ids:
            if program_id not in self.allowed_programs:
                raise ProgramNotAllowed(
                    label, f"Program not allowed: {program_id}", observed=program_id
                )

    def assert_sol_transfer(self, label: str, amount_sol: float | str | Decimal) -> None:
        """Check a native-value transfer expressed in SOL."""
        if not self.enabled:
            return
        self._bump(label)
        try:
            amount = Decimal(str(amount_sol))
        except InvalidOperation:
            amount = Decimal("NaN")
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmount(label, f"Invalid SOL amount: {amount_sol}", observed=amount_sol)
        if amount > self._max_sol:
            raise LimitExceeded(
                label,
                f"SOL amount {amount} exceeds MAX_SOL_PER_TX {self._max_sol}",
                limit=self._max_sol,
                observed=amount,
            )

    def assert_token_amount(self, label: str, amount_raw: int, decimals: int) -> None:
        """Check a token amount given in minimal units."""
        if not self.enabled:
            return
        self._bump(label)
        if amount_raw <= 0:
            raise InvalidAmount(
                label, f"Invalid token amountRaw: {amount_raw}", observed=amount_raw
            )
        tokens = Decimal(amount_raw) / (Decimal(10) ** decimals)
        if tokens > self._max_tokens:
            raise LimitExceeded(
                label,
                f"Token amount {tokens} exceeds MAX_TOKENS_PER_TX {self._max_tokens}",
                limit=self._max_tokens,
                observed=tokens,
            )

    def authorize(self, action: GuardedAction) -> None:
        """Dispatch *action* to the matching check."""
        if isinstance(action, ProgramInvocation):
            self.assert_programs_allowed(action.label, action.program_ids)
        elif isinstance(action, ValueTransfer):
            sol = Decimal(action.lamports) / LAMPORTS_PER_SOL
            self.assert_sol_transfer(action.label, sol)
        elif isinstance(action, TokenTransfer):
            self.assert_token_amount(action.label, action.amount_raw, action.decimals)
        else:
            raise TypeError(f"Unknown guarded action: {type(action).__name__}")
