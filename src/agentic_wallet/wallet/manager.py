"""Per-agent wallet directory backed by encrypted keystore files."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from agentic_wallet.errors import DecryptionError, MissingPassphraseError, UnlockError
from agentic_wallet.ledger.base import LedgerClient
from agentic_wallet.wallet.keystore import decrypt_secret, encrypt_secret, load_record, save_record

logger = logging.getLogger("agentic_wallet.wallet.manager")

_AGENT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")
SECRET_KEY_BYTES = 64
KEYS_SUBDIR = "keys"


@dataclass(frozen=True)
class AgentIdentity:
    """An agent id and its unlocked key pair."""

    agent_id: str
    keypair: Keypair = field(repr=False)

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()


class WalletDirectory:
    """Maps agent ids to encrypted key records on disk.

    ``keystore_dir/keys/<agent_id>.json`` holds one record per agent, apart
    from the run state and anything else kept in ``keystore_dir``. This class
    is the only component that creates key material, and creation is
    serialized per agent id so concurrent callers never produce two
    divergent keys.
    """

    def __init__(
        self,
        keystore_dir: Path,
        passphrase: str,
        ledger: LedgerClient | None = None,
    ) -> None:
        if not passphrase:
            raise MissingPassphraseError("A keystore passphrase is required.")
        self.keystore_dir = Path(keystore_dir)
        self.keys_dir = self.keystore_dir / KEYS_SUBDIR
        self.ledger = ledger
        self._passphrase = passphrase
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Identity lifecycle
    # ------------------------------------------------------------------

    def keystore_path(self, agent_id: str) -> Path:
        if not _AGENT_ID_RE.match(agent_id):
            raise ValueError(f"Invalid agent id: {agent_id!r}")
        return self.keys_dir / f"{agent_id}.json"

    def has_agent(self, agent_id: str) -> bool:
        return self.keystore_path(agent_id).exists()

    def list_agents(self) -> list[str]:
        """Agent ids with a well-formed keystore file, sorted.

        Files in the keys directory that are not key records are skipped.
        """
        if not self.keys_dir.is_dir():
            return []
        agents = []
        for path in sorted(self.keys_dir.glob("*.json")):
            if not path.is_file() or not _AGENT_ID_RE.match(path.stem):
                continue
            try:
                load_record(path)
            except DecryptionError:
                logger.warning(f"Skipping {path}: not a keystore record")
                continue
            agents.append(path.stem)
        return agents

    def _lock_for(self, agent_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(agent_id, threading.Lock())

    def ensure(self, agent_id: str) -> AgentIdentity:
        """Load *agent_id*'s key pair, creating and persisting it on first use.

        A new key is generated only when no keystore file exists. An
        unreadable or undecryptable file is never replaced.

        Raises
        ------
        UnlockError
            If the existing keystore cannot be decrypted (wrong passphrase
            or corruption).
        """
        path = self.keystore_path(agent_id)
        with self._lock_for(agent_id):
            if path.exists():
                return self._unlock(agent_id, path)

            keypair = Keypair()
            record = encrypt_secret(bytes(keypair), self._passphrase)
            try:
                save_record(path, record, exclusive=True)
            except FileExistsError:
                # Another process won the race; its key is authoritative.
                return self._unlock(agent_id, path)

            logger.info(f"Created keystore for {agent_id}: {keypair.pubkey()}")
            return AgentIdentity(agent_id=agent_id, keypair=keypair)

    def load(self, agent_id: str) -> AgentIdentity:
        """Unlock an existing agent without creating one.

        Raises
        ------
        FileNotFoundError
            If *agent_id* has no keystore.
        UnlockError
            If the keystore cannot be decrypted.
        """
        path = self.keystore_path(agent_id)
        if not path.exists():
            raise FileNotFoundError(f"Keystore not found for {agent_id}: {path}")
        return self._unlock(agent_id, path)

    def _unlock(self, agent_id: str, path: Path) -> AgentIdentity:
        try:
            secret = decrypt_secret(load_record(path), self._passphrase)
        except DecryptionError as exc:
            raise UnlockError(f"Could not unlock keystore for {agent_id} ({path}): {exc}") from exc
        if len(secret) != SECRET_KEY_BYTES:
            raise UnlockError(f"Keystore for {agent_id} holds {len(secret)} bytes, expected 64.")
        return AgentIdentity(agent_id=agent_id, keypair=Keypair.from_bytes(secret))

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def balance(self, pubkey: Pubkey) -> int:
        """Live native balance in lamports (never cached)."""
        if self.ledger is None:
            raise RuntimeError("WalletDirectory has no ledger client configured.")
        return self.ledger.get_balance(pubkey)
