"""Tests for the commands that work without a ledger connection."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from agentic_wallet.cli.app import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path, passphrase) -> dict:
    return {
        "KEYSTORE_DIR": str(tmp_path / "keystore"),
        "KEYSTORE_PASSPHRASE": passphrase,
        "AGENTIC_WALLET_CONFIG": None,
        "RPC_URL": None,
    }


def test_agents_empty(env) -> None:
    result = runner.invoke(app, ["agents"], env=env)
    assert result.exit_code == 0
    assert "No agents yet" in result.stdout


def test_agent_creates_keystore(env, tmp_path) -> None:
    result = runner.invoke(app, ["agent", "agent-001"], env=env)

    assert result.exit_code == 0
    assert "created" in result.stdout
    assert (tmp_path / "keystore" / "keys" / "agent-001.json").exists()

    again = runner.invoke(app, ["agent", "agent-001"], env=env)
    assert again.exit_code == 0
    assert "unlocked existing keystore" in again.stdout


def test_agent_without_passphrase_fails(env) -> None:
    env["KEYSTORE_PASSPHRASE"] = None
    result = runner.invoke(app, ["agent", "agent-001"], env=env)
    assert result.exit_code == 1
    assert "MissingPassphraseError" in result.stdout


def test_state_without_mint(env) -> None:
    result = runner.invoke(app, ["state"], env=env)
    assert result.exit_code == 0
    assert "No mint recorded" in result.stdout


def test_endpoints_puts_preferred_first(env) -> None:
    result = runner.invoke(app, ["--rpc", "http://mine:8899", "endpoints"], env=env)
    assert result.exit_code == 0
    assert result.stdout.index("ENV_RPC_URL") < result.stdout.index("SOLANA_PUBLIC_DEVNET")
