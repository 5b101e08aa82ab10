"""Ledger access: the client protocol, a JSON-RPC client and endpoint selection."""

from agentic_wallet.ledger.base import LAMPORTS_PER_SOL, Checkpoint, LedgerClient, SimulationResult
from agentic_wallet.ledger.rpc import RpcLedgerClient

__all__ = [
    "LAMPORTS_PER_SOL",
    "Checkpoint",
    "LedgerClient",
    "RpcLedgerClient",
    "SimulationResult",
]
