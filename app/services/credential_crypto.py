"""Credential encryption utilities.

Subscriber RADIUS passwords and NAS shared secrets are stored with a prefix
describing how they are held at rest:

- ``enc:``   Fernet ciphertext (CREDENTIAL_ENCRYPTION_KEY configured)
- ``plain:`` stored unencrypted because no key was configured
- no prefix: legacy value, treated as plaintext
"""

from __future__ import annotations

import logging
import os

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings

_ENCRYPTION_KEY_ENV = "CREDENTIAL_ENCRYPTION_KEY"
_logger = logging.getLogger(__name__)
_encryption_warning_logged = False


def get_encryption_key() -> bytes | None:
    """Return the Fernet key from the environment, falling back to settings."""
    global _encryption_warning_logged

    key_str = os.environ.get(_ENCRYPTION_KEY_ENV) or settings.credential_encryption_key
    if not key_str:
        if not _encryption_warning_logged:
            _logger.warning(
                "CREDENTIAL_ENCRYPTION_KEY not configured. "
                "Subscriber credentials and NAS secrets will be stored unencrypted."
            )
            _encryption_warning_logged = True
        return None
    return key_str.encode("ascii")


def generate_encryption_key() -> str:
    """Generate a URL-safe base64 Fernet key for CREDENTIAL_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode("ascii")


def is_encrypted(value: str | None) -> bool:
    if not value:
        return False
    return value.startswith(("enc:", "plain:"))


def encrypt_credential(value: str | None) -> str | None:
    """Encrypt a credential for storage at rest.

    Without a configured key the value is kept as ``plain:<value>``.
    """
    if not value:
        return value
    if is_encrypted(value):
        return value

    encryption_key = get_encryption_key()
    if not encryption_key:
        return f"plain:{value}"

    fernet = Fernet(encryption_key)
    encrypted = fernet.encrypt(value.encode("utf-8"))
    return f"enc:{encrypted.decode('ascii')}"


def decrypt_credential(value: str | None) -> str | None:
    """Return the plaintext of a stored credential.

    Raises:
        ValueError: If an ``enc:`` value cannot be decrypted.
    """
    if not value:
        return value

    if value.startswith("plain:"):
        return value[6:]

    if value.startswith("enc:"):
        encryption_key = get_encryption_key()
        if not encryption_key:
            raise ValueError(
                "Encrypted credential found but CREDENTIAL_ENCRYPTION_KEY not set"
            )
        fernet = Fernet(encryption_key)
        try:
            decrypted = fernet.decrypt(value[4:].encode("ascii"))
            return decrypted.decode("utf-8")
        except InvalidToken as e:
            raise ValueError("Failed to decrypt credential: invalid token") from e

    return value


def needs_encryption(value: str | None) -> bool:
    """True for stored values that are not Fernet ciphertext yet."""
    return bool(value) and not value.startswith("enc:")


def encrypt_stored_credential(value: str) -> str:
    """Re-store a ``plain:`` or legacy value as ciphertext.

    Raises:
        ValueError: If no encryption key is configured.
    """
    if not get_encryption_key():
        raise ValueError("CREDENTIAL_ENCRYPTION_KEY not set")
    return encrypt_credential(decrypt_credential(value))
