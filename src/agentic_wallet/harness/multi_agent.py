"""Multi-agent harness: N agents, R rounds of ring transfers.

Each round, every agent whose token balance exceeds the threshold sends a
fixed amount to its ring successor. The bank agent pays all fees while the
sending agent signs for its own funds.

There is no round checkpoint. A restarted run re-reads live balances and
carries on, so agents still above the threshold transfer again; callers
that need exactly-once transfers must track them elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from solders.pubkey import Pubkey

from agentic_wallet.config import HarnessConfig
from agentic_wallet.errors import MissingMintError, PolicyRejection
from agentic_wallet.ledger.programs import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from agentic_wallet.security.actions import ProgramInvocation, TokenTransfer
from agentic_wallet.security.guardrails import Guardrails
from agentic_wallet.state.store import RunState, StateStore
from agentic_wallet.token.amounts import format_tokens, to_raw
from agentic_wallet.token.service import SplTokenService
from agentic_wallet.wallet.manager import AgentIdentity, WalletDirectory

logger = logging.getLogger("agentic_wallet.harness")


def agent_id_for(index: int) -> str:
    """1-based index to agent id (``1`` -> ``"agent-001"``)."""
    return f"agent-{index:03d}"


def ring_successor(index: int, count: int) -> int:
    """Zero-based index of the agent after *index* in a ring of *count*."""
    return (index + 1) % count


@dataclass
class AgentSlot:
    identity: AgentIdentity
    account: Pubkey

    @property
    def agent_id(self) -> str:
        return self.identity.agent_id


@dataclass
class TransferRecord:
    round: int
    source: str
    destination: str
    amount_raw: int
    signature: str


@dataclass
class RejectionRecord:
    round: int  # 0 during setup
    agent_id: str
    code: str
    label: str
    message: str


@dataclass
class HarnessReport:
    mint: str
    decimals: int
    bank: str
    agents: list[str] = field(default_factory=list)
    seeded: list[str] = field(default_factory=list)
    transfers: list[TransferRecord] = field(default_factory=list)
    rejections: list[RejectionRecord] = field(default_factory=list)
    balances: dict[int, dict[str, int]] = field(default_factory=dict)

    def formatted_balances(self, round_number: int) -> dict[str, str]:
        return {
            agent: format_tokens(raw, self.decimals)
            for agent, raw in self.balances.get(round_number, {}).items()
        }


class MultiAgentHarness:
    """Drives agents through rounds of guarded token transfers."""

    def __init__(
        self,
        wallets: WalletDirectory,
        tokens: SplTokenService,
        state_store: StateStore,
        guardrails: Guardrails,
    ) -> None:
        self.wallets = wallets
        self.tokens = tokens
        self.state_store = state_store
        self.guardrails = guardrails

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def ensure_agent_account(
        self,
        agent_id: str,
        state: RunState,
        bank: AgentIdentity,
        mint: Pubkey,
    ) -> AgentSlot:
        """Ensure *agent_id* has a key and a token account, persisting new ones."""
        identity = self.wallets.ensure(agent_id)
        if agent_id not in state.atas:
            account = self.tokens.ensure_derived_account(bank, mint, identity.pubkey)
            self.state_store.record_account(state, agent_id, str(account))
        return AgentSlot(identity=identity, account=Pubkey.from_string(state.atas[agent_id]))

    def read_balances(self, slots: list[AgentSlot]) -> dict[str, int]:
        return {slot.agent_id: self.tokens.read_raw_amount(slot.account) for slot in slots}

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, config: HarnessConfig) -> HarnessReport:
        """Set up agents, seed empty accounts, then play *config.rounds* rounds.

        Raises
        ------
        MissingMintError
            If the run state has no mint; the harness never creates one.
        PolicyRejection
            If the startup program check is rejected.
        """
        self.guardrails.authorize(
            ProgramInvocation(
                "harness:token-programs", (TOKEN_PROGRAM_ID, ASSOCIATED_TOKEN_PROGRAM_ID)
            )
        )

        bank = self.wallets.ensure(config.bank_agent_id)

        state = self.state_store.load()
        if state.mint is None:
            raise MissingMintError(
                "Run state has no mint. Create one first (agentic-wallet plan). "
                f"State path: {self.state_store.path}"
            )
        mint = Pubkey.from_string(state.mint.address)
        decimals = state.mint.decimals

        logger.info(f"Using mint {mint} ({decimals} decimals), bank {bank.agent_id} {bank.pubkey}")

        report = HarnessReport(mint=str(mint), decimals=decimals, bank=bank.agent_id)
        slots = [
            self.ensure_agent_account(agent_id_for(i), state, bank, mint)
            for i in range(1, config.agent_count + 1)
        ]
        report.agents = [slot.agent_id for slot in slots]

        self._seed(slots, bank, mint, decimals, config, report)

        threshold_raw = to_raw(config.threshold_tokens, decimals)
        send_raw = to_raw(config.transfer_tokens, decimals)

        for round_number in range(1, config.rounds + 1):
            logger.info(f"===== Round {round_number}/{config.rounds} =====")
            for index, slot in enumerate(slots):
                successor = slots[ring_successor(index, len(slots))]
                balance = self.tokens.read_raw_amount(slot.account)
                if balance <= threshold_raw:
                    continue

                label = "harness:agent-transfer"
                try:
                    self.guardrails.authorize(TokenTransfer(label, send_raw, decimals))
                except PolicyRejection as exc:
                    logger.warning(f"Round {round_number}: {slot.agent_id} transfer skipped: {exc}")
                    report.rejections.append(
                        RejectionRecord(round_number, slot.agent_id, exc.code, exc.label, str(exc))
                    )
                    continue

                signature = self.tokens.transfer(
                    bank,
                    slot.account,
                    successor.account,
                    slot.identity,
                    send_raw,
                    label=f"{label}:{slot.agent_id}->{successor.agent_id}",
                )
                logger.info(
                    f"{slot.agent_id} -> {successor.agent_id} sent "
                    f"{format_tokens(send_raw, decimals)} tokens ({signature})"
                )
                report.transfers.append(
                    TransferRecord(
                        round=round_number,
                        source=slot.agent_id,
                        destination=successor.agent_id,
                        amount_raw=send_raw,
                        signature=str(signature),
                    )
                )

            report.balances[round_number] = self.read_balances(slots)

        return report

    def _seed(
        self,
        slots: list[AgentSlot],
        bank: AgentIdentity,
        mint: Pubkey,
        decimals: int,
        config: HarnessConfig,
        report: HarnessReport,
    ) -> None:
        seed_raw = to_raw(config.seed_tokens_per_agent, decimals)
        if seed_raw <= 0:
            return

        for slot in slots:
            if self.tokens.read_raw_amount(slot.account) != 0:
                continue
            try:
                self.guardrails.authorize(TokenTransfer("harness:seed-mint", seed_raw, decimals))
            except PolicyRejection as exc:
                logger.warning(f"Seeding {slot.agent_id} skipped: {exc}")
                report.rejections.append(
                    RejectionRecord(0, slot.agent_id, exc.code, exc.label, str(exc))
                )
                continue

            signature = self.tokens.mint_to(bank, mint, slot.account, bank, seed_raw)
            logger.info(f"Seeded {slot.agent_id} +{config.seed_tokens_per_agent} tokens ({signature})")
            report.seeded.append(slot.agent_id)
