"""Agent wallets: passphrase-encrypted keystore records, one per agent id.

Key material is created only by :class:`WalletDirectory`, on first use of
an agent id, and is never regenerated once a keystore file exists.
"""

from agentic_wallet.wallet.manager import AgentIdentity, WalletDirectory

__all__ = ["AgentIdentity", "WalletDirectory"]
