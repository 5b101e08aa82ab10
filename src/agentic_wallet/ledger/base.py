"""Ledger client contract shared by the RPC and local implementations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

LAMPORTS_PER_SOL = 1_000_000_000


@dataclass(frozen=True)
class Checkpoint:
    """A recent blockhash and the last block height at which it is valid."""

    blockhash: Hash
    last_valid_block_height: int


@dataclass
class SimulationResult:
    """Outcome of a dry-run execution.

    ``err`` is ``None`` on success, otherwise the structured on-chain error
    exactly as the ledger reported it.
    """

    err: Any = None
    logs: list[str] = field(default_factory=list)
    units_consumed: int | None = None

    @property
    def ok(self) -> bool:
        return self.err is None

    def excerpt(self, limit: int) -> SimulationResult:
        """Return a copy keeping only the last *limit* log lines."""
        logs = self.logs[-limit:] if limit > 0 else []
        return SimulationResult(err=self.err, logs=logs, units_consumed=self.units_consumed)


@runtime_checkable
class LedgerClient(Protocol):
    """Everything the core needs from a ledger node."""

    def get_balance(self, pubkey: Pubkey) -> int:
        """Native balance in lamports."""
        ...

    def get_latest_checkpoint(self) -> Checkpoint:
        ...

    def simulate(self, tx: VersionedTransaction) -> SimulationResult:
        """Dry-run *tx* without signature verification or state changes."""
        ...

    def send_raw(self, raw: bytes) -> Signature:
        ...

    def confirm(self, signature: Signature, checkpoint: Checkpoint) -> bool:
        """Wait for *signature*; ``False`` once *checkpoint* has expired."""
        ...

    def get_token_amount(self, account: Pubkey) -> int:
        """Raw token amount held by a token account."""
        ...

    def account_exists(self, address: Pubkey) -> bool:
        ...

    def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        ...
