"""Fernet symmetric encryption for last-applied infra configuration.

Uses AES-128-CBC + HMAC-SHA256 via the cryptography library's Fernet.
Master key sourced from HARBORMASTER_ENCRYPTION_KEY environment variable,
or passed explicitly per call.
"""

import json
import secrets
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from harbormaster.errors import DecryptionError
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

_fernet: Fernet | None = None


def init_encryption(key: str | bytes | None = None) -> None:
    """Initialize encryption from config. Call during API lifespan startup."""
    global _fernet  # noqa: PLW0603

    if key is None:
        from harbormaster.config import settings

        key = settings.encryption_key

    if not key:
        logger.warning(
            "No encryption key configured (HARBORMASTER_ENCRYPTION_KEY). "
            "Infra configuration cannot be persisted."
        )
        _fernet = None
        return

    try:
        _fernet = _make_fernet(key)
        logger.info("Encryption initialized")
    except ValueError as e:
        logger.error("Invalid encryption key", error=str(e))
        _fernet = None


def is_encryption_available() -> bool:
    """Check if encryption is configured and available."""
    return _fernet is not None


def _make_fernet(key: str | bytes) -> Fernet:
    return Fernet(key.encode() if isinstance(key, str) else key)


def _resolve(key: str | bytes | None) -> Fernet:
    if key is not None:
        return _make_fernet(key)
    if _fernet is None:
        raise RuntimeError(
            "Encryption not configured. Set HARBORMASTER_ENCRYPTION_KEY."
        )
    return _fernet


def encrypt(plaintext: bytes, key: str | bytes | None = None) -> bytes:
    """Encrypt an opaque payload. Returns Fernet token bytes."""
    return _resolve(key).encrypt(plaintext)


def decrypt(ciphertext: bytes, key: str | bytes | None = None) -> bytes:
    """Decrypt a Fernet token.

    Raises DecryptionError when the token was tampered with or was written
    under a different key.
    """
    try:
        return _resolve(key).decrypt(ciphertext)
    except InvalidToken:
        raise DecryptionError(
            "Failed to decrypt value: key mismatch or corrupted data"
        ) from None


def random_token(n_bytes: int) -> str:
    """Return n_bytes of randomness as lowercase hex (2 * n_bytes characters)."""
    return secrets.token_hex(n_bytes)


# --- Configuration payloads (dict ↔ encrypted JSON) ---


def encrypt_config(values: dict[str, Any], key: str | bytes | None = None) -> bytes:
    """Serialize and encrypt a configuration mapping for persistence."""
    return encrypt(json.dumps(values, sort_keys=True).encode(), key)


def decrypt_config(ciphertext: bytes | None, key: str | bytes | None = None) -> dict[str, Any]:
    """Decrypt and deserialize a stored configuration mapping.

    An empty column decodes to an empty mapping. A payload that decrypts but
    is not a JSON object is a data-integrity failure.
    """
    if not ciphertext:
        return {}
    raw = decrypt(ciphertext, key)
    try:
        values = json.loads(raw)
    except ValueError:
        raise DecryptionError("Decrypted configuration is not valid JSON") from None
    if not isinstance(values, dict):
        raise DecryptionError("Decrypted configuration is not a JSON object")
    return values
