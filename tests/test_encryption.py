"""Tests for access-token encryption at rest."""
import pytest
from cryptography.fernet import Fernet, InvalidToken

from integrations.encryption import decrypt_token, encrypt_token, is_encryption_configured
from integrations.errors import ConfigurationError


@pytest.fixture
def fernet_key(monkeypatch):
    key = Fernet.generate_key().decode()
    monkeypatch.setenv("INTEGRATION_ENCRYPTION_KEY", key)
    return key


def test_encrypt_token_hides_plaintext(fernet_key):
    encrypted = encrypt_token("gho_secret")
    assert isinstance(encrypted, str)
    assert "gho_secret" not in encrypted
    assert decrypt_token(encrypted) == "gho_secret"


def test_empty_values_are_rejected(fernet_key):
    with pytest.raises(ValueError, match="cannot be empty"):
        encrypt_token("")
    with pytest.raises(ValueError, match="cannot be empty"):
        decrypt_token("")


def test_missing_key_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("INTEGRATION_ENCRYPTION_KEY", raising=False)
    assert is_encryption_configured() is False
    with pytest.raises(ConfigurationError):
        encrypt_token("gho_secret")


def test_invalid_key_is_a_configuration_error(monkeypatch):
    monkeypatch.setenv("INTEGRATION_ENCRYPTION_KEY", "not-a-fernet-key")
    with pytest.raises(ConfigurationError):
        encrypt_token("gho_secret")


def test_rotated_key_cannot_decrypt_old_tokens(monkeypatch, fernet_key):
    encrypted = encrypt_token("gho_secret")
    monkeypatch.setenv("INTEGRATION_ENCRYPTION_KEY", Fernet.generate_key().decode())
    with pytest.raises(InvalidToken):
        decrypt_token(encrypted)
