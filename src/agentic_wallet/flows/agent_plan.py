"""Two-agent token demo driven by :class:`AgentBrain`.

agent-001 creates the mint (if the run state has none), acts as mint
authority and pays every fee. agent-002 only receives tokens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from solders.pubkey import Pubkey

from agentic_wallet.agent.brain import AgentBrain, MintIfLow, PlanAction, TransferIfOtherLow
from agentic_wallet.errors import PolicyRejection
from agentic_wallet.flows.common import FlowContext
from agentic_wallet.ledger.programs import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from agentic_wallet.security.actions import ProgramInvocation, TokenTransfer
from agentic_wallet.state.store import MintInfo, RunState
from agentic_wallet.token.amounts import format_tokens, to_raw
from agentic_wallet.wallet.manager import AgentIdentity

logger = logging.getLogger("agentic_wallet.flows.agent_plan")

PRIMARY_AGENT = "agent-001"
SECONDARY_AGENT = "agent-002"
MINT_DECIMALS = 6


@dataclass
class PlanStep:
    action: PlanAction
    executed: bool = False
    signature: str | None = None
    rejection: str | None = None


@dataclass
class AgentPlanReport:
    mint: str
    decimals: int
    mint_created: bool
    accounts: dict[str, str]
    starting_balances: dict[str, int]
    steps: list[PlanStep] = field(default_factory=list)


def ensure_mint(ctx: FlowContext, state: RunState, payer: AgentIdentity) -> tuple[MintInfo, bool]:
    """Reuse the mint recorded in *state* or create and record a new one."""
    if state.mint is not None:
        logger.info(f"Reusing mint from state: {state.mint.address}")
        return state.mint, False

    mint = ctx.tokens.create_mint(payer, payer.pubkey, MINT_DECIMALS)
    return ctx.state_store.record_mint(state, str(mint), MINT_DECIMALS), True


def run_agent_plan(ctx: FlowContext, brain: AgentBrain | None = None) -> AgentPlanReport:
    """Ensure the mint and both token accounts, then execute the brain's plan.

    A guardrail rejection skips that plan step only.
    """
    brain = brain or AgentBrain()
    state = ctx.state_store.load()

    primary = ctx.wallets.ensure(PRIMARY_AGENT)
    secondary = ctx.wallets.ensure(SECONDARY_AGENT)

    ctx.guardrails.authorize(
        ProgramInvocation("plan:token-programs", (TOKEN_PROGRAM_ID, ASSOCIATED_TOKEN_PROGRAM_ID))
    )

    mint_info, created = ensure_mint(ctx, state, primary)
    mint = Pubkey.from_string(mint_info.address)
    decimals = mint_info.decimals

    for identity in (primary, secondary):
        if identity.agent_id not in state.atas:
            ata = ctx.tokens.ensure_derived_account(primary, mint, identity.pubkey)
            ctx.state_store.record_account(state, identity.agent_id, str(ata))

    primary_ata = Pubkey.from_string(state.atas[PRIMARY_AGENT])
    secondary_ata = Pubkey.from_string(state.atas[SECONDARY_AGENT])

    primary_raw = ctx.tokens.read_raw_amount(primary_ata)
    secondary_raw = ctx.tokens.read_raw_amount(secondary_ata)
    logger.info(
        f"{PRIMARY_AGENT} holds {format_tokens(primary_raw, decimals)}, "
        f"{SECONDARY_AGENT} holds {format_tokens(secondary_raw, decimals)}"
    )

    report = AgentPlanReport(
        mint=str(mint),
        decimals=decimals,
        mint_created=created,
        accounts={PRIMARY_AGENT: str(primary_ata), SECONDARY_AGENT: str(secondary_ata)},
        starting_balances={PRIMARY_AGENT: primary_raw, SECONDARY_AGENT: secondary_raw},
    )

    for action in brain.create_plan().actions:
        step = PlanStep(action=action)
        report.steps.append(step)

        if isinstance(action, MintIfLow):
            if primary_raw >= to_raw(action.min_tokens, decimals):
                logger.info(f"Mint step skipped ({PRIMARY_AGENT} balance healthy)")
                continue
            label = "plan:mint"
            amount_raw = to_raw(action.top_up_tokens, decimals)
        elif isinstance(action, TransferIfOtherLow):
            if secondary_raw >= to_raw(action.other_min_tokens, decimals):
                logger.info(f"Transfer step skipped ({SECONDARY_AGENT} balance healthy)")
                continue
            label = "plan:transfer"
            amount_raw = to_raw(action.transfer_tokens, decimals)
        else:
            raise TypeError(f"Unknown plan action: {type(action).__name__}")

        try:
            ctx.guardrails.authorize(TokenTransfer(label, amount_raw, decimals))
        except PolicyRejection as exc:
            logger.warning(f"Plan step {label} skipped: {exc}")
            step.rejection = str(exc)
            continue

        if isinstance(action, MintIfLow):
            signature = ctx.tokens.mint_to(primary, mint, primary_ata, primary, amount_raw)
        else:
            signature = ctx.tokens.transfer(
                primary, primary_ata, secondary_ata, primary, amount_raw, label=label
            )
        step.executed = True
        step.signature = str(signature)
        logger.info(f"Plan step {label} executed: {format_tokens(amount_raw, decimals)} ({signature})")

    return report
