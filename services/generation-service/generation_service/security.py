"""Encryption of AI provider credentials at rest (Fernet)."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

MIN_PASSPHRASE_LENGTH = 8
PBKDF2_ITERATIONS = 100_000


class SecretDecryptionError(Exception):
    pass


def derive_fernet_key(passphrase: str) -> bytes:
    """Derive a stable Fernet key; the same passphrase always yields the same key."""
    if len(passphrase) < MIN_PASSPHRASE_LENGTH:
        raise ValueError(f"SECRET_ENCRYPTION_KEY must be at least {MIN_PASSPHRASE_LENGTH} characters")
    salt = hashlib.sha256((passphrase + "salt").encode()).digest()[:16]
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=PBKDF2_ITERATIONS)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))


class SecretCipher:
    def __init__(self, passphrase: str):
        self._fernet = Fernet(derive_fernet_key(passphrase))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as exc:
            # no detail: the token itself must not end up in logs
            raise SecretDecryptionError("stored credential could not be decrypted") from exc
