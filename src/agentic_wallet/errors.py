"""Exception hierarchy for Agentic Wallet.

Every error raised on purpose by the package derives from
:class:`AgenticWalletError`, grouped by how a caller is expected to react:

* :class:`ConfigurationError` -- fatal, abort the run.
* :class:`CryptographicError` -- fatal for the affected identity.
* :class:`PolicyRejection` -- skip the rejected action, keep orchestrating.
* :class:`TransientNetworkError` -- warn when advisory, propagate otherwise.
* :class:`TransactionError` -- fatal for that transaction attempt.
"""

from __future__ import annotations

from typing import Any


class AgenticWalletError(Exception):
    """Base class for all Agentic Wallet errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(AgenticWalletError):
    """Configuration is missing or invalid."""


class MissingPassphraseError(ConfigurationError):
    """``KEYSTORE_PASSPHRASE`` is unset or too short."""


class MissingMintError(ConfigurationError):
    """The run state has no mint recorded yet."""


class StateVersionError(ConfigurationError):
    """The persisted run state uses an unsupported format version."""


# ---------------------------------------------------------------------------
# Cryptography
# ---------------------------------------------------------------------------


class CryptographicError(AgenticWalletError):
    """Key material could not be decrypted or authenticated."""


class DecryptionError(CryptographicError):
    """An encrypted key record could not be decrypted.

    Raised for unknown record formats and for authentication failures. A
    wrong passphrase and a tampered record produce the same message.
    """


class UnlockError(CryptographicError):
    """An agent's keystore file exists but could not be unlocked."""


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class PolicyRejection(AgenticWalletError):
    """A guardrail refused to authorize an action.

    Parameters
    ----------
    label:
        Identifies the action that triggered the check (e.g. ``"harness:seed-mint"``).
    message:
        Human-readable explanation.
    limit:
        The configured limit that was violated, if any.
    observed:
        The value that violated it, if any.
    """

    code = "PolicyRejection"

    def __init__(
        self,
        label: str,
        message: str,
        *,
        limit: Any = None,
        observed: Any = None,
    ) -> None:
        super().__init__(f"[GUARDRAILS] {message} ({label})")
        self.label = label
        self.limit = limit
        self.observed = observed

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "label": self.label,
            "limit": None if self.limit is None else str(self.limit),
            "observed": None if self.observed is None else str(self.observed),
            "message": str(self),
        }


class KillSwitchActive(PolicyRejection):
    code = "KillSwitchActive"


class ActionBudgetExceeded(PolicyRejection):
    code = "ActionBudgetExceeded"


class ProgramNotAllowed(PolicyRejection):
    code = "ProgramNotAllowed"


class InvalidAmount(PolicyRejection):
    code = "InvalidAmount"


class LimitExceeded(PolicyRejection):
    code = "LimitExceeded"


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class TransientNetworkError(AgenticWalletError):
    """A ledger read or probe failed and may succeed if retried later."""


class LedgerRpcError(TransientNetworkError):
    """The ledger node answered with a JSON-RPC error object."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        super().__init__(f"{method} failed ({code}): {message}")
        self.method = method
        self.code = code


class NoHealthyEndpointError(TransientNetworkError):
    """None of the candidate RPC endpoints passed the health probe."""


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionError(AgenticWalletError):
    """A transaction could not be signed, submitted or confirmed."""


class SigningError(TransactionError):
    """A transaction could not be signed as requested."""


class SimulationFailed(TransactionError):
    """Dry-run execution reported an on-chain error."""

    def __init__(self, label: str, result: Any) -> None:
        super().__init__(f"Simulation failed for {label}: {result.err}")
        self.label = label
        self.result = result


class SubmissionError(TransactionError):
    """The signed transaction could not be delivered to the ledger."""


class ExpiredError(TransactionError):
    """Confirmation did not land before the checkpoint validity window lapsed."""

    def __init__(self, signature: str, last_valid_block_height: int) -> None:
        super().__init__(
            f"Transaction {signature} was not confirmed before block height "
            f"{last_valid_block_height}; rebuild it with a fresh checkpoint."
        )
        self.signature = signature
        self.last_valid_block_height = last_valid_block_height
