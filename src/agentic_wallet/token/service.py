"""SPL token operations executed through the transaction pipeline."""

from __future__ import annotations

import logging

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import CreateAccountParams, create_account

from agentic_wallet.ledger.base import LedgerClient
from agentic_wallet.ledger.programs import TOKEN_PROGRAM_ID
from agentic_wallet.token import instructions as spl
from agentic_wallet.tx.pipeline import TransactionPipeline
from agentic_wallet.wallet.manager import AgentIdentity

logger = logging.getLogger("agentic_wallet.token.service")


class SplTokenService:
    """Create mints and token accounts, mint and transfer tokens.

    Every state-changing call is a single transaction run through
    :meth:`TransactionPipeline.execute`; a failed simulation aborts it.
    """

    def __init__(self, ledger: LedgerClient, pipeline: TransactionPipeline) -> None:
        self.ledger = ledger
        self.pipeline = pipeline

    def create_mint(
        self,
        payer: AgentIdentity,
        mint_authority: Pubkey,
        decimals: int,
        freeze_authority: Pubkey | None = None,
    ) -> Pubkey:
        """Create and initialize a new mint funded by *payer*."""
        mint = Keypair()
        rent = self.ledger.get_minimum_balance_for_rent_exemption(spl.MINT_SIZE)
        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer.pubkey,
                    to_pubkey=mint.pubkey(),
                    lamports=rent,
                    space=spl.MINT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            spl.initialize_mint2(mint.pubkey(), decimals, mint_authority, freeze_authority),
        ]
        self.pipeline.execute(
            payer.pubkey, instructions, [payer.keypair, mint], label="token:create-mint"
        )
        logger.info(f"Created mint {mint.pubkey()} ({decimals} decimals)")
        return mint.pubkey()

    def ensure_derived_account(self, payer: AgentIdentity, mint: Pubkey, owner: Pubkey) -> Pubkey:
        """Return the ATA for (*owner*, *mint*), creating it if missing."""
        ata = spl.get_associated_token_address(owner, mint)
        if self.ledger.account_exists(ata):
            return ata
        ix = spl.create_associated_token_account_idempotent(payer.pubkey, owner, mint)
        self.pipeline.execute(payer.pubkey, [ix], [payer.keypair], label="token:create-ata")
        logger.info(f"Created token account {ata} for owner {owner}")
        return ata

    def mint_to(
        self,
        payer: AgentIdentity,
        mint: Pubkey,
        destination: Pubkey,
        authority: AgentIdentity,
        amount_raw: int,
    ) -> Signature:
        ix = spl.mint_to(mint, destination, authority.pubkey, amount_raw)
        result = self.pipeline.execute(
            payer.pubkey, [ix], [payer.keypair, authority.keypair], label="token:mint-to"
        )
        return result.signature

    def transfer(
        self,
        payer: AgentIdentity,
        source: Pubkey,
        destination: Pubkey,
        owner: AgentIdentity,
        amount_raw: int,
        *,
        label: str = "token:transfer",
    ) -> Signature:
        """Move tokens; *payer* covers fees while *owner* authorizes the debit."""
        ix = spl.transfer(source, destination, owner.pubkey, amount_raw)
        result = self.pipeline.execute(
            payer.pubkey, [ix], [payer.keypair, owner.keypair], label=label
        )
        return result.signature

    def read_raw_amount(self, account: Pubkey) -> int:
        return self.ledger.get_token_amount(account)
