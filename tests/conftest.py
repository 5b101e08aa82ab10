"""Shared fixtures for agentic_wallet tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentic_wallet.config import GuardrailsConfig
from agentic_wallet.ledger.base import LAMPORTS_PER_SOL
from agentic_wallet.security.actions import GuardedAction
from agentic_wallet.security.guardrails import Guardrails
from agentic_wallet.state.store import RunState, StateStore
from agentic_wallet.token.service import SplTokenService
from agentic_wallet.tx.pipeline import TransactionPipeline
from agentic_wallet.wallet.manager import AgentIdentity, WalletDirectory

from local_ledger import LocalLedger

PASSPHRASE = "correct horse battery staple"
DECIMALS = 6


# ============================================================================
# Ledger and wiring
# ============================================================================


@pytest.fixture
def passphrase() -> str:
    return PASSPHRASE


@pytest.fixture
def ledger() -> LocalLedger:
    return LocalLedger()


@pytest.fixture
def pipeline(ledger: LocalLedger) -> TransactionPipeline:
    return TransactionPipeline(ledger)


@pytest.fixture
def tokens(ledger: LocalLedger, pipeline: TransactionPipeline) -> SplTokenService:
    return SplTokenService(ledger, pipeline)


@pytest.fixture
def keystore_dir(tmp_path: Path) -> Path:
    return tmp_path / "keystore"


@pytest.fixture
def wallets(keystore_dir: Path, ledger: LocalLedger) -> WalletDirectory:
    return WalletDirectory(keystore_dir, PASSPHRASE, ledger)


@pytest.fixture
def state_store(keystore_dir: Path) -> StateStore:
    return StateStore(keystore_dir / "state.json")


class RecordingGuardrails(Guardrails):
    """Guardrails that remember every action they were asked to authorize."""

    def __init__(self, config: GuardrailsConfig | None = None) -> None:
        super().__init__(config)
        self.seen: list[GuardedAction] = []

    def authorize(self, action: GuardedAction) -> None:
        self.seen.append(action)
        super().authorize(action)


@pytest.fixture
def guardrails() -> Guardrails:
    return Guardrails(GuardrailsConfig())


@pytest.fixture
def recording_guardrails() -> RecordingGuardrails:
    return RecordingGuardrails(GuardrailsConfig())


# ============================================================================
# Funded identities and a recorded mint
# ============================================================================


@pytest.fixture
def bank(wallets: WalletDirectory, ledger: LocalLedger) -> AgentIdentity:
    """agent-001 with 10 SOL for fees and rent."""
    identity = wallets.ensure("agent-001")
    ledger.airdrop(identity.pubkey, 10 * LAMPORTS_PER_SOL)
    return identity


@pytest.fixture
def minted_state(
    bank: AgentIdentity,
    tokens: SplTokenService,
    state_store: StateStore,
) -> RunState:
    """Run state with a 6-decimal mint owned by the bank."""
    state = state_store.load()
    mint = tokens.create_mint(bank, bank.pubkey, DECIMALS)
    state_store.record_mint(state, str(mint), DECIMALS)
    return state
