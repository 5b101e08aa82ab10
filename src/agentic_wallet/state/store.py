"""Durable run state: the mint and each agent's token account.

The state file is a small JSON document::

    {"version": 1, "mint": {"address": "...", "decimals": 6}, "atas": {"agent-001": "..."}}

A single writer is assumed; every mutation is written through immediately.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentic_wallet.errors import ConfigurationError, StateVersionError

logger = logging.getLogger("agentic_wallet.state.store")

STATE_VERSION = 1


class MintInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    address: str
    decimals: int = Field(ge=0, le=255)


class RunState(BaseModel):
    """Maps to the state file. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    version: int = STATE_VERSION
    mint: Optional[MintInfo] = None
    atas: dict[str, str] = Field(default_factory=dict)


class StateStore:
    """Load/save port for :class:`RunState`."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> RunState:
        """Read the state file, or return a fresh default if it is absent.

        Raises
        ------
        StateVersionError
            If the file declares a version other than 1.
        ConfigurationError
            If the file is not valid JSON or does not match the schema.
        """
        if not self.path.exists():
            return RunState()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"State file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"State file {self.path} must contain a JSON object.")

        version = data.get("version")
        if version != STATE_VERSION:
            raise StateVersionError(f"Unsupported state version: {version} ({self.path})")
        if data.get("atas") is None:
            data["atas"] = {}

        try:
            return RunState.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"State file {self.path} is malformed: {exc}") from exc

    def save(self, state: RunState) -> None:
        """Atomically replace the state file with *state*."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            json.dumps(state.model_dump(mode="json", exclude_none=True), indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Write-through mutations
    # ------------------------------------------------------------------

    def record_mint(self, state: RunState, address: str, decimals: int) -> MintInfo:
        """Record the mint if none is set; an existing mint is never replaced.

        Returns the mint now in *state* (which may be the pre-existing one).
        """
        if state.mint is not None:
            if state.mint.address != address:
                logger.warning(
                    f"Ignoring mint {address}; state already records {state.mint.address}"
                )
            return state.mint
        state.mint = MintInfo(address=address, decimals=decimals)
        self.save(state)
        logger.info(f"Recorded mint {address} ({decimals} decimals) in {self.path}")
        return state.mint

    def record_account(self, state: RunState, agent_id: str, address: str) -> None:
        """Record *agent_id*'s token account and persist immediately."""
        state.atas[agent_id] = address
        self.save(state)
        logger.info(f"Recorded token account for {agent_id}: {address}")
