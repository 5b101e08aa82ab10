"""Tests for WalletDirectory create-on-first-use semantics."""

from __future__ import annotations

import threading

import pytest

from agentic_wallet.errors import MissingPassphraseError, UnlockError
from agentic_wallet.ledger.base import LAMPORTS_PER_SOL
from agentic_wallet.wallet.manager import WalletDirectory


def test_ensure_creates_then_reloads(wallets: WalletDirectory) -> None:
    first = wallets.ensure("agent-001")
    second = wallets.ensure("agent-001")

    assert first.pubkey == second.pubkey
    assert wallets.has_agent("agent-001")
    assert wallets.list_agents() == ["agent-001"]


def test_fresh_directory_instance_reads_same_key(keystore_dir, wallets, passphrase) -> None:
    created = wallets.ensure("agent-002")
    reopened = WalletDirectory(keystore_dir, passphrase)
    assert reopened.ensure("agent-002").pubkey == created.pubkey
    assert reopened.load("agent-002").pubkey == created.pubkey


def test_distinct_agents_get_distinct_keys(wallets: WalletDirectory) -> None:
    a = wallets.ensure("agent-001")
    b = wallets.ensure("agent-002")
    assert a.pubkey != b.pubkey
    assert wallets.list_agents() == ["agent-001", "agent-002"]


def test_wrong_passphrase_never_regenerates(keystore_dir, wallets) -> None:
    wallets.ensure("agent-001")
    path = wallets.keystore_path("agent-001")
    before = path.read_bytes()

    intruder = WalletDirectory(keystore_dir, "a different passphrase")
    with pytest.raises(UnlockError) as exc_info:
        intruder.ensure("agent-001")

    assert exc_info.value.__cause__ is not None
    assert path.read_bytes() == before


def test_corrupt_keystore_is_not_replaced(wallets: WalletDirectory) -> None:
    path = wallets.keystore_path("agent-001")
    path.parent.mkdir(parents=True)
    path.write_text("{garbage")

    with pytest.raises(UnlockError):
        wallets.ensure("agent-001")
    assert path.read_text() == "{garbage"


def test_concurrent_ensure_yields_one_key(wallets: WalletDirectory) -> None:
    results = []
    errors = []

    def worker() -> None:
        try:
            results.append(wallets.ensure("agent-007").pubkey)
        except Exception as exc:  # pragma: no cover - surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == 8
    assert len(set(results)) == 1
    assert wallets.load("agent-007").pubkey == results[0]


def test_load_missing_agent(wallets: WalletDirectory) -> None:
    with pytest.raises(FileNotFoundError):
        wallets.load("agent-404")


@pytest.mark.parametrize("agent_id", ["", "../escape", "a/b", "-leading-dash"])
def test_invalid_agent_ids(wallets: WalletDirectory, agent_id: str) -> None:
    with pytest.raises(ValueError):
        wallets.ensure(agent_id)


def test_empty_passphrase_rejected(keystore_dir) -> None:
    with pytest.raises(MissingPassphraseError):
        WalletDirectory(keystore_dir, "")


def test_balance_is_live(wallets: WalletDirectory, ledger) -> None:
    identity = wallets.ensure("agent-001")
    assert wallets.balance(identity.pubkey) == 0
    ledger.airdrop(identity.pubkey, LAMPORTS_PER_SOL)
    assert wallets.balance(identity.pubkey) == LAMPORTS_PER_SOL


# ---------------------------------------------------------------------------
# Keys live apart from the run state
# ---------------------------------------------------------------------------


def test_run_state_is_not_listed_as_agent(wallets, state_store, keystore_dir) -> None:
    wallets.ensure("agent-001")
    state_store.record_account(state_store.load(), "agent-001", "Ata111")

    assert state_store.path.parent == keystore_dir
    assert wallets.list_agents() == ["agent-001"]


def test_agent_named_state_keeps_its_key(wallets, state_store) -> None:
    created = wallets.ensure("state")

    state = state_store.load()
    state_store.record_account(state, "agent-001", "Ata111")

    assert wallets.keystore_path("state") != state_store.path
    assert wallets.load("state").pubkey == created.pubkey


def test_stray_files_in_keys_dir_are_skipped(wallets: WalletDirectory) -> None:
    wallets.ensure("agent-001")
    (wallets.keys_dir / "notes.json").write_text('{"version": 1}')

    assert wallets.list_agents() == ["agent-001"]
