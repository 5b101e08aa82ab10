"""Shared wiring for the demo flows and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from agentic_wallet.config import AppConfig, require_passphrase
from agentic_wallet.harness.multi_agent import MultiAgentHarness
from agentic_wallet.ledger.base import LedgerClient
from agentic_wallet.ledger.endpoints import Endpoint, select_endpoint
from agentic_wallet.ledger.rpc import RpcLedgerClient
from agentic_wallet.security.guardrails import Guardrails
from agentic_wallet.state.store import StateStore
from agentic_wallet.token.service import SplTokenService
from agentic_wallet.tx.pipeline import TransactionPipeline
from agentic_wallet.wallet.manager import WalletDirectory

logger = logging.getLogger("agentic_wallet.flows")


@dataclass
class FlowContext:
    """Everything one run needs, built once by :func:`setup`.

    A single :class:`Guardrails` instance lives here, so every flow started
    from the same context shares one action budget.
    """

    config: AppConfig
    ledger: LedgerClient
    wallets: WalletDirectory
    guardrails: Guardrails
    pipeline: TransactionPipeline
    tokens: SplTokenService
    state_store: StateStore
    endpoint: Endpoint | None = None

    def harness(self) -> MultiAgentHarness:
        return MultiAgentHarness(self.wallets, self.tokens, self.state_store, self.guardrails)

    def close(self) -> None:
        close = getattr(self.ledger, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> FlowContext:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def setup(
    config: AppConfig,
    rpc_url: str | None = None,
    *,
    ledger: LedgerClient | None = None,
    select: Callable[[str | None], Endpoint] = select_endpoint,
) -> FlowContext:
    """Check the passphrase, pick an endpoint and wire the components.

    Parameters
    ----------
    config:
        Loaded application config.
    rpc_url:
        Preferred RPC URL; falls back to ``config.rpc_url``, then to the
        built-in endpoints.
    ledger:
        Use this ledger client instead of selecting an RPC endpoint.

    Raises
    ------
    MissingPassphraseError
        If no usable keystore passphrase is configured.
    NoHealthyEndpointError
        If no endpoint answers the health probe.
    """
    passphrase = require_passphrase(config)

    endpoint = None
    if ledger is None:
        endpoint = select(rpc_url or config.rpc_url)
        ledger = RpcLedgerClient(endpoint.url, config.commitment)

    guardrails = Guardrails(config.guardrails)
    pipeline = TransactionPipeline(ledger)
    wallets = WalletDirectory(config.keystore_dir, passphrase, ledger)

    g = guardrails.config
    logger.info(
        f"Guardrails {'on' if g.enabled else 'off'}: kill_switch={g.kill_switch} "
        f"max_sol_per_tx={g.max_sol_per_tx} max_tokens_per_tx={g.max_tokens_per_tx} "
        f"max_actions_per_run={g.max_actions_per_run}"
    )

    return FlowContext(
        config=config,
        ledger=ledger,
        wallets=wallets,
        guardrails=guardrails,
        pipeline=pipeline,
        tokens=SplTokenService(ledger, pipeline),
        state_store=StateStore(config.resolved_state_path),
        endpoint=endpoint,
    )
