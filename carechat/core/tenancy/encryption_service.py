# ============================================================================
# SCOPE: INFRASTRUCTURE
# Description: Servicio de encriptación/desencriptación de credenciales con
#              Fernet (AES-128-CBC + HMAC-SHA256).
# ============================================================================
"""
Credential Encryption Service - Fernet-based encryption infrastructure.

This service provides:
- Symmetric encryption/decryption of credential blobs stored on associations
- JSON (de)serialization of ExternalCredentials

Security:
- Encryption key stored in CREDENTIAL_ENCRYPTION_KEY environment variable
- Never exposes encryption key or plaintext in logs or error messages

Usage:
    service = get_encryption_service()
    blob = service.encrypt_credentials(ExternalCredentials(username="u", password="p"))
    credentials = service.decrypt_credentials(blob)
"""

import json
import logging

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from carechat.config.settings import get_settings

from .tenant_config import ExternalCredentials

logger = logging.getLogger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when encryption/decryption fails."""

    pass


class CredentialEncryptionService:
    """
    Service for encrypting and decrypting tenant credentials using Fernet.
    """

    def __init__(self, encryption_key: str | None = None) -> None:
        """Initialize the encryption service.

        Args:
            encryption_key: Fernet key (defaults to settings.CREDENTIAL_ENCRYPTION_KEY)
        """
        self._encryption_key = encryption_key
        self._cipher: Fernet | None = None

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    @property
    def cipher(self) -> Fernet:
        """Get the Fernet cipher.

        Raises:
            CredentialEncryptionError: If key is missing or malformed.
        """
        if self._cipher is None:
            key = self._encryption_key or get_settings().CREDENTIAL_ENCRYPTION_KEY
            if not key:
                raise CredentialEncryptionError(
                    "Missing CREDENTIAL_ENCRYPTION_KEY in settings. "
                    'Generate one with: python -c "from cryptography.fernet import Fernet; '
                    'print(Fernet.generate_key().decode())"'
                )
            try:
                self._cipher = Fernet(key.encode())
            except (ValueError, TypeError) as e:
                raise CredentialEncryptionError("CREDENTIAL_ENCRYPTION_KEY is not a valid Fernet key") from e
        return self._cipher

    def encrypt_value(self, value: str) -> str:
        """Encrypt a plain text value into a Fernet token."""
        return self.cipher.encrypt(value.encode()).decode()

    def decrypt_value(self, encrypted: str) -> str:
        """Decrypt a Fernet token.

        Raises:
            CredentialEncryptionError: If the token is invalid or was encrypted with another key
        """
        try:
            return self.cipher.decrypt(encrypted.encode()).decode()
        except InvalidToken as e:
            raise CredentialEncryptionError("Invalid credential token - wrong key or corrupted data") from e

    def encrypt_credentials(self, credentials: ExternalCredentials) -> str:
        return self.encrypt_value(credentials.model_dump_json(exclude_none=True))

    def decrypt_credentials(self, blob: str) -> ExternalCredentials:
        """Decrypt and parse a credential blob.

        Args:
            blob: Fernet token holding the credentials JSON

        Returns:
            Parsed ExternalCredentials

        Raises:
            CredentialEncryptionError: If decryption or parsing fails
        """
        plaintext = self.decrypt_value(blob)
        try:
            return ExternalCredentials.model_validate(json.loads(plaintext))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Decrypted credentials are not a valid credentials document")
            raise CredentialEncryptionError("Decrypted credentials have an invalid format") from e


# Singleton instance
_encryption_service: CredentialEncryptionService | None = None


def get_encryption_service() -> CredentialEncryptionService:
    """Get the singleton encryption service instance."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = CredentialEncryptionService()
    return _encryption_service
