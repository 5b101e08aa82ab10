"""Encrypted keystore records using scrypt and AES-256-GCM.

Each record carries its own random salt and nonce, so two records sealed
with the same passphrase never share either. Decryption verifies the GCM
authentication tag before any plaintext is returned.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
import secrets
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from pydantic import BaseModel, ConfigDict, ValidationError

from agentic_wallet.errors import DecryptionError

KEYSTORE_VERSION = 1
KDF_NAME = "scrypt"
CIPHER_NAME = "aes-256-gcm"

SALT_BYTES = 16
IV_BYTES = 12  # recommended nonce size for GCM
TAG_BYTES = 16
KEY_BYTES = 32

# scrypt cost parameters; N must be a power of two.
SCRYPT_N = 1 << 14
SCRYPT_R = 8
SCRYPT_P = 1


class EncryptedKeyRecord(BaseModel):
    """Versioned envelope around an encrypted secret key."""

    model_config = ConfigDict(frozen=True)

    version: int
    kdf: str
    cipher: str
    salt_b64: str
    iv_b64: str
    tag_b64: str
    ciphertext_b64: str


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_BYTES, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(passphrase.encode("utf-8"))


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"), validate=True)


def encrypt_secret(secret: bytes, passphrase: str) -> EncryptedKeyRecord:
    """Seal *secret* under *passphrase*.

    Parameters
    ----------
    secret:
        Raw private-key bytes.
    passphrase:
        Passphrase the scrypt key is derived from.

    Returns
    -------
    EncryptedKeyRecord
        A fresh record with its own salt and nonce.
    """
    salt = secrets.token_bytes(SALT_BYTES)
    iv = secrets.token_bytes(IV_BYTES)
    key = _derive_key(passphrase, salt)

    # AESGCM appends the tag to the ciphertext; the envelope stores it apart.
    sealed = AESGCM(key).encrypt(iv, bytes(secret), None)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]

    return EncryptedKeyRecord(
        version=KEYSTORE_VERSION,
        kdf=KDF_NAME,
        cipher=CIPHER_NAME,
        salt_b64=_b64(salt),
        iv_b64=_b64(iv),
        tag_b64=_b64(tag),
        ciphertext_b64=_b64(ciphertext),
    )


def decrypt_secret(record: EncryptedKeyRecord, passphrase: str) -> bytes:
    """Open a record sealed by :func:`encrypt_secret`.

    Raises
    ------
    DecryptionError
        If the version, KDF or cipher is unsupported, if the encoded fields
        are malformed, or if authentication fails. Wrong passphrases and
        tampered records are reported identically.
    """
    if record.version != KEYSTORE_VERSION:
        raise DecryptionError(f"Unsupported keystore version: {record.version}")
    if record.kdf != KDF_NAME:
        raise DecryptionError(f"Unsupported KDF: {record.kdf}")
    if record.cipher != CIPHER_NAME:
        raise DecryptionError(f"Unsupported cipher: {record.cipher}")

    try:
        salt = _unb64(record.salt_b64)
        iv = _unb64(record.iv_b64)
        tag = _unb64(record.tag_b64)
        ciphertext = _unb64(record.ciphertext_b64)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Keystore fields are not valid base64.") from exc

    if len(salt) != SALT_BYTES or len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
        raise DecryptionError("Keystore fields have invalid lengths.")

    key = _derive_key(passphrase, salt)
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise DecryptionError("Keystore authentication failed.") from exc


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def save_record(path: Path, record: EncryptedKeyRecord, *, exclusive: bool = False) -> None:
    """Write *record* as JSON with owner-only permissions.

    With ``exclusive=True`` the write fails with :class:`FileExistsError`
    when *path* already exists.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(record.model_dump(), indent=2)
    flags = os.O_WRONLY | os.O_CREAT | (os.O_EXCL if exclusive else os.O_TRUNC)
    fd = os.open(path, flags, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(payload)


def load_record(path: Path) -> EncryptedKeyRecord:
    """Read a record from *path*.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    DecryptionError
        If the file is not a well-formed record.
    """
    raw = path.read_text(encoding="utf-8")
    try:
        return EncryptedKeyRecord.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise DecryptionError(f"Malformed keystore file {path}: {exc}") from exc
