"""
Unit tests for CredentialEncryptionService.
"""

import pytest
from cryptography.fernet import Fernet

from carechat.core.tenancy.encryption_service import CredentialEncryptionError, CredentialEncryptionService
from carechat.core.tenancy.tenant_config import ExternalCredentials


@pytest.mark.unit
def test_credentials_survive_encryption(encryption_service):
    """Test decrypt_credentials returns what encrypt_credentials stored."""
    credentials = ExternalCredentials(username="api", password="pw", api_key="k-123")

    blob = encryption_service.encrypt_credentials(credentials)

    assert encryption_service.decrypt_credentials(blob) == credentials


@pytest.mark.unit
def test_decrypt_with_other_key_fails(encryption_service, credentials):
    """Test a token from another key raises CredentialEncryptionError."""
    blob = CredentialEncryptionService(Fernet.generate_key().decode()).encrypt_credentials(credentials)

    with pytest.raises(CredentialEncryptionError):
        encryption_service.decrypt_credentials(blob)


@pytest.mark.unit
def test_decrypt_invalid_document_fails(encryption_service):
    """Test a valid token holding a non-credentials document is rejected."""
    blob = encryption_service.encrypt_value('{"user": "missing password"}')

    with pytest.raises(CredentialEncryptionError):
        encryption_service.decrypt_credentials(blob)


@pytest.mark.unit
def test_malformed_key_is_reported():
    """Test a malformed key raises on first use."""
    service = CredentialEncryptionService(encryption_key="not-a-fernet-key")

    with pytest.raises(CredentialEncryptionError):
        service.encrypt_value("x")


@pytest.mark.unit
def test_auth_method():
    """Test auth method reflects the optional API key."""
    assert ExternalCredentials(username="u", password="p").auth_method == "basic"
    assert ExternalCredentials(username="u", password="p", api_key="k").auth_method == "basic+api_key"
