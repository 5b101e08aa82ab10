"""Native SOL transfer between two agents, simulation-first."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from solders.system_program import TransferParams, transfer

from agentic_wallet.errors import InvalidAmount, SimulationFailed, TransientNetworkError
from agentic_wallet.flows.common import FlowContext
from agentic_wallet.ledger.base import SimulationResult
from agentic_wallet.ledger.programs import SYSTEM_PROGRAM_ID
from agentic_wallet.security.actions import ProgramInvocation, ValueTransfer
from agentic_wallet.token.amounts import sol_to_lamports

logger = logging.getLogger("agentic_wallet.flows.sol_transfer")

DEFAULT_AMOUNT_SOL = Decimal("0.05")
FEE_BUFFER_SOL = Decimal("0.01")


@dataclass
class SolTransferResult:
    source: str
    destination: str
    lamports: int
    source_balance: int
    simulation: SimulationResult | None = None
    signature: str | None = None

    @property
    def simulated_only(self) -> bool:
        return self.signature is None


def run_sol_transfer(
    ctx: FlowContext,
    source_id: str = "agent-001",
    destination_id: str = "agent-002",
    amount_sol: float | str | Decimal = DEFAULT_AMOUNT_SOL,
) -> SolTransferResult:
    """Send *amount_sol* from one agent to another.

    When the source holds less than ``amount + 0.01`` SOL the transaction is
    only simulated and the outcome reported; nothing is signed. Otherwise a
    failed simulation raises :class:`SimulationFailed` and a passing one is
    signed, submitted and confirmed.
    """
    try:
        amount = Decimal(str(amount_sol))
    except InvalidOperation as exc:
        raise InvalidAmount("sol-transfer:amount", f"Invalid SOL amount: {amount_sol}") from exc
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount("sol-transfer:amount", f"Invalid SOL amount: {amount_sol}")
    lamports = sol_to_lamports(amount)
    if lamports <= 0:
        raise InvalidAmount("sol-transfer:amount", f"SOL amount below one lamport: {amount_sol}")

    ctx.guardrails.authorize(ProgramInvocation("sol-transfer:system-program", (SYSTEM_PROGRAM_ID,)))
    ctx.guardrails.authorize(ValueTransfer("sol-transfer:amount", lamports))

    source = ctx.wallets.ensure(source_id)
    destination = ctx.wallets.ensure(destination_id)
    balance = ctx.wallets.balance(source.pubkey)

    result = SolTransferResult(
        source=str(source.pubkey),
        destination=str(destination.pubkey),
        lamports=lamports,
        source_balance=balance,
    )

    ix = transfer(
        TransferParams(from_pubkey=source.pubkey, to_pubkey=destination.pubkey, lamports=lamports)
    )
    built = ctx.pipeline.build(source.pubkey, [ix], label="sol-transfer")

    if balance < sol_to_lamports(amount + FEE_BUFFER_SOL):
        logger.warning(f"{source_id} is not funded enough to send {amount} SOL; simulating only")
        try:
            result.simulation = ctx.pipeline.simulate(built)
        except TransientNetworkError as exc:
            logger.warning(f"Simulation failed (RPC may be rate-limited): {exc}")
        return result

    result.simulation = ctx.pipeline.simulate(built)
    if not result.simulation.ok:
        raise SimulationFailed(built.label, result.simulation)

    signed = ctx.pipeline.sign(built, [source.keypair])
    signature = ctx.pipeline.submit(signed, built.checkpoint)
    result.signature = str(signature)
    logger.info(f"{source_id} -> {destination_id} sent {amount} SOL ({signature})")
    return result
