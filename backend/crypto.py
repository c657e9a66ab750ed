"""Encryption of AI provider credentials at rest."""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

# Stored in place of a real key after an import; the user must re-enter it.
RECONFIGURATION_SENTINEL = "NEEDS_RECONFIGURATION"


class CredentialError(Exception):
    """Stored credential could not be decrypted."""
    pass


class CredentialCipher:
    """Symmetric (Fernet) encryption for provider API keys."""

    def __init__(self, key: Optional[str] = None):
        if not key:
            logger.warning(
                "CREDENTIAL_ENCRYPTION_KEY is not set; using an ephemeral key. "
                "Stored provider credentials will be unreadable after restart."
            )
            key = Fernet.generate_key().decode()
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, credential: str) -> str:
        return self._fernet.encrypt(credential.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        if not token:
            raise CredentialError("No credential stored")
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError) as e:
            raise CredentialError("Stored credential cannot be decrypted") from e

    def needs_reconfiguration(self, token: str) -> bool:
        """True when no usable credential is stored."""
        try:
            return self.decrypt(token) == RECONFIGURATION_SENTINEL
        except CredentialError:
            return True
