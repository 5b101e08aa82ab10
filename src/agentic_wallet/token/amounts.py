"""Conversions between minimal units and human-readable amounts.

Amounts are kept as integers in minimal units everywhere; these helpers
are for presentation and configuration boundaries only.
"""

from __future__ import annotations

from decimal import Decimal

from agentic_wallet.ledger.base import LAMPORTS_PER_SOL


def to_raw(tokens: int | str | Decimal, decimals: int) -> int:
    """Whole (or fractional) tokens to minimal units, truncating dust."""
    return int(Decimal(str(tokens)) * (10 ** decimals))


def format_tokens(raw: int, decimals: int) -> str:
    """Render *raw* minimal units with exactly *decimals* fraction digits."""
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10 ** decimals)
    if decimals == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac:0{decimals}d}"


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def sol_to_lamports(sol: float | str | Decimal) -> int:
    return int(Decimal(str(sol)) * LAMPORTS_PER_SOL)
