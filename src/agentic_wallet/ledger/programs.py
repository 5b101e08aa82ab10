"""Well-known program ids."""

from __future__ import annotations

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

PROGRAMS: dict[str, Pubkey] = {
    "system": SYSTEM_PROGRAM_ID,
    "token": TOKEN_PROGRAM_ID,
    "ata": ASSOCIATED_TOKEN_PROGRAM_ID,
}

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "PROGRAMS",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
]
