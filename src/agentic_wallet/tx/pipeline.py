"""Build -> simulate -> sign -> submit/confirm transaction pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from agentic_wallet.errors import ExpiredError, SigningError, SimulationFailed
from agentic_wallet.ledger.base import Checkpoint, LedgerClient, SimulationResult

logger = logging.getLogger("agentic_wallet.tx.pipeline")

SIMULATION_LOG_LIMIT = 20


@dataclass
class BuiltTransaction:
    """An unsigned v0 message and the checkpoint it was compiled against."""

    message: MessageV0
    checkpoint: Checkpoint
    fee_payer: Pubkey
    label: str = "tx"
    simulated: bool = False

    @property
    def required_signers(self) -> list[Pubkey]:
        count = self.message.header.num_required_signatures
        return list(self.message.account_keys[:count])

    @property
    def program_ids(self) -> list[Pubkey]:
        keys = self.message.account_keys
        return [keys[ix.program_id_index] for ix in self.message.instructions]


@dataclass(frozen=True)
class ExecutionResult:
    signature: Signature
    simulation: SimulationResult


class TransactionPipeline:
    """Runs transactions through build, simulate, sign and submit/confirm.

    The pipeline never interprets simulation failures itself; callers use
    :meth:`simulate` directly when a failure is informational, or
    :meth:`execute` when it is fatal.
    """

    def __init__(self, ledger: LedgerClient, *, log_limit: int = SIMULATION_LOG_LIMIT) -> None:
        self.ledger = ledger
        self.log_limit = log_limit

    def build(
        self,
        fee_payer: Pubkey,
        instructions: Sequence[Instruction],
        *,
        label: str = "tx",
    ) -> BuiltTransaction:
        """Compile *instructions* against a fresh checkpoint.

        Network failures fetching the checkpoint propagate.
        """
        checkpoint = self.ledger.get_latest_checkpoint()
        message = MessageV0.try_compile(fee_payer, list(instructions), [], checkpoint.blockhash)
        logger.debug(
            f"Built {label}: {len(instructions)} instruction(s), "
            f"valid until height {checkpoint.last_valid_block_height}"
        )
        return BuiltTransaction(
            message=message, checkpoint=checkpoint, fee_payer=fee_payer, label=label
        )

    def simulate(self, built: BuiltTransaction) -> SimulationResult:
        """Dry-run the unsigned envelope. Ledger state is never changed."""
        placeholders = [Signature.default()] * len(built.required_signers)
        unsigned = VersionedTransaction.populate(built.message, placeholders)
        result = self.ledger.simulate(unsigned).excerpt(self.log_limit)
        built.simulated = True
        if result.ok:
            logger.debug(f"Simulation OK for {built.label}")
        else:
            logger.info(f"Simulation error for {built.label}: {result.err}")
        return result

    def sign(self, built: BuiltTransaction, signers: Sequence[Keypair]) -> VersionedTransaction:
        """Attach signatures from *signers* (duplicates are ignored).

        Raises
        ------
        SigningError
            If the transaction has not been simulated, or a required signer
            is missing from *signers*.
        """
        if not built.simulated:
            raise SigningError(f"Refusing to sign {built.label} before it has been simulated.")

        unique: dict[Pubkey, Keypair] = {}
        for kp in signers:
            unique.setdefault(kp.pubkey(), kp)

        missing = [str(pk) for pk in built.required_signers if pk not in unique]
        if missing:
            raise SigningError(f"Missing signer(s) for {built.label}: {', '.join(missing)}")

        ordered = [unique[pk] for pk in built.required_signers]
        return VersionedTransaction(built.message, ordered)

    def submit(self, signed: VersionedTransaction, checkpoint: Checkpoint) -> Signature:
        """Send *signed* and wait for confirmation within the checkpoint window.

        Raises
        ------
        SubmissionError
            From the ledger client on transport or preflight failure.
        ExpiredError
            If confirmation did not land before the window lapsed.
        """
        signature = self.ledger.send_raw(bytes(signed))
        if not self.ledger.confirm(signature, checkpoint):
            raise ExpiredError(str(signature), checkpoint.last_valid_block_height)
        return signature

    def execute(
        self,
        fee_payer: Pubkey,
        instructions: Sequence[Instruction],
        signers: Sequence[Keypair],
        *,
        label: str = "tx",
    ) -> ExecutionResult:
        """Run all four stages, treating a failed simulation as fatal.

        Raises
        ------
        SimulationFailed
            If the dry run reports an error; nothing is signed or sent.
        """
        built = self.build(fee_payer, instructions, label=label)
        simulation = self.simulate(built)
        if not simulation.ok:
            raise SimulationFailed(label, simulation)
        signed = self.sign(built, signers)
        signature = self.submit(signed, built.checkpoint)
        logger.info(f"Confirmed {label}: {signature}")
        return ExecutionResult(signature=signature, simulation=simulation)
