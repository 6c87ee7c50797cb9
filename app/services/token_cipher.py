"""Symmetric encryption for shop access tokens kept at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class CredentialCipher:
    """Encrypt and decrypt offline access tokens using a derived Fernet key."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        """Return the Fernet ciphertext for ``plaintext``."""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """Recover a stored access token."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt access token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def __repr__(self) -> str:
        return "CredentialCipher(secret=***)"


__all__ = ["CredentialCipher"]
