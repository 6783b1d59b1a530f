"""
Symmetric encryption of sensitive payment-method fields.

Account numbers and UPI ids are stored only as Fernet tokens.  The Fernet key
is derived from a configured secret: ``urlsafe_b64encode(sha256(secret))``.
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from payout_kernel.exceptions import EncryptionError


class SensitiveDataCipher:
    """Encrypts and decrypts sensitive strings with a key derived from ``secret``."""

    def __init__(self, secret: str):
        seed = (secret or "").strip()
        if not seed:
            raise EncryptionError("Payment data encryption key is not configured")
        key = base64.urlsafe_b64encode(hashlib.sha256(seed.encode("utf-8")).digest())
        self._fernet = Fernet(key)

    def encrypt(self, value: str) -> str:
        if not value:
            raise EncryptionError("Sensitive value missing")
        return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        if not token:
            raise EncryptionError("Encrypted sensitive value missing")
        try:
            raw = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken:
            raise EncryptionError("Encrypted value cannot be decrypted with the configured key")
        return raw.decode("utf-8")
