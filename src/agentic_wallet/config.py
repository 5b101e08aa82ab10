"""Configuration system for Agentic Wallet.

Settings come from an optional YAML file (with ``${VAR}`` environment
expansion) and are then overridden by well-known environment variables such
as ``RPC_URL``, ``KEYSTORE_PASSPHRASE`` and the guardrail limits.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from agentic_wallet.errors import ConfigurationError, MissingPassphraseError

# Program ids allowed by default: System, SPL Token, Associated Token Account.
DEFAULT_ALLOWED_PROGRAMS: tuple[str, ...] = (
    "11111111111111111111111111111111",
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL",
)

MIN_PASSPHRASE_LENGTH = 8


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str, environ: Mapping[str, str]) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    Unset variables are left as-is so that validation can catch them later.
    """

    def _replace(match: re.Match) -> str:
        return environ.get(match.group(1), match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object, environ: Mapping[str, str]) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj, environ)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v, environ) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item, environ) for item in obj]
    return obj


def _env_number(environ: Mapping[str, str], name: str, default: float, cast=float):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class GuardrailsConfig(BaseModel):
    """Limits enforced by :class:`~agentic_wallet.security.guardrails.Guardrails`."""

    enabled: bool = True
    kill_switch: bool = False
    max_sol_per_tx: float = 0.1       # native units per value transfer
    max_tokens_per_tx: float = 50     # whole tokens, scaled by mint decimals
    max_actions_per_run: int = 25
    allow_programs: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_PROGRAMS))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        base: GuardrailsConfig | None = None,
    ) -> GuardrailsConfig:
        """Build a config from environment variables.

        Variables that are not set keep the value from *base* (or the
        documented default):

        ``GUARDRAILS_ENABLED``  anything but ``"0"`` enables (default on)
        ``KILL_SWITCH``         ``"1"`` blocks every action (default off)
        ``MAX_SOL_PER_TX``      default 0.1
        ``MAX_TOKENS_PER_TX``   default 50
        ``MAX_ACTIONS_PER_RUN`` default 25
        """
        env = os.environ if environ is None else environ
        base = base or cls()

        enabled = base.enabled
        if "GUARDRAILS_ENABLED" in env:
            enabled = env["GUARDRAILS_ENABLED"] != "0"
        kill_switch = base.kill_switch
        if "KILL_SWITCH" in env:
            kill_switch = env["KILL_SWITCH"] == "1"

        return cls(
            enabled=enabled,
            kill_switch=kill_switch,
            max_sol_per_tx=_env_number(env, "MAX_SOL_PER_TX", base.max_sol_per_tx),
            max_tokens_per_tx=_env_number(env, "MAX_TOKENS_PER_TX", base.max_tokens_per_tx),
            max_actions_per_run=_env_number(
                env, "MAX_ACTIONS_PER_RUN", base.max_actions_per_run, cast=int
            ),
            allow_programs=list(base.allow_programs),
        )


class HarnessConfig(BaseModel):
    """Shape of one multi-agent harness run."""

    agent_count: int = Field(default=5, ge=1)
    rounds: int = Field(default=3, ge=0)
    seed_tokens_per_agent: int = Field(default=25, ge=0)
    threshold_tokens: int = 20
    transfer_tokens: int = 2
    bank_agent_id: str = "agent-001"


class AppConfig(BaseModel):
    """Root configuration object."""

    rpc_url: Optional[str] = None
    keystore_dir: Path = Path("keystore")
    state_path: Optional[Path] = None
    commitment: str = "confirmed"
    passphrase: Optional[str] = Field(default=None, repr=False)
    guardrails: GuardrailsConfig = Field(default_factory=GuardrailsConfig)
    harness: HarnessConfig = Field(default_factory=HarnessConfig)

    @property
    def resolved_state_path(self) -> Path:
        """Where the run state lives (``<keystore_dir>/state.json`` by default)."""
        return self.state_path or self.keystore_dir / "state.json"


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and validate configuration.

    Parameters
    ----------
    path:
        Optional YAML file. Missing files are treated as empty.
    environ:
        Environment mapping, defaults to :data:`os.environ`.

    Raises
    ------
    ConfigurationError
        If the YAML is malformed or a value fails validation.
    """
    env = os.environ if environ is None else environ

    raw_data: dict = {}
    if path is not None and path.exists():
        try:
            raw_data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(raw_data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level.")

    expanded = _expand_env_recursive(raw_data, env)

    overrides = {
        "rpc_url": "RPC_URL",
        "passphrase": "KEYSTORE_PASSPHRASE",
        "keystore_dir": "KEYSTORE_DIR",
        "state_path": "STATE_PATH",
    }
    for field_name, var in overrides.items():
        if env.get(var):
            expanded[field_name] = env[var]

    try:
        config = AppConfig.model_validate(expanded)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    config.guardrails = GuardrailsConfig.from_env(env, base=config.guardrails)
    return config


def require_passphrase(config: AppConfig) -> str:
    """Return the keystore passphrase or raise :class:`MissingPassphraseError`."""
    passphrase = config.passphrase
    if not passphrase:
        raise MissingPassphraseError(
            "Missing KEYSTORE_PASSPHRASE. Set it in the environment or config file."
        )
    if len(passphrase) < MIN_PASSPHRASE_LENGTH:
        raise MissingPassphraseError(
            f"KEYSTORE_PASSPHRASE must be at least {MIN_PASSPHRASE_LENGTH} characters."
        )
    return passphrase
