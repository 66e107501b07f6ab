"""Access-token encryption at rest using Fernet symmetric encryption.

GitHub access tokens are encrypted before they reach the github_integrations
table and decrypted only when a request to GitHub is about to be made. The key
lives in the INTEGRATION_ENCRYPTION_KEY environment variable and is read on
use, so rotating it only requires a restart of whatever sets the env.
"""

import os
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from integrations.errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_ENV_VAR = "INTEGRATION_ENCRYPTION_KEY"

_fernet: Optional[Fernet] = None
_fernet_key: Optional[str] = None


def _get_fernet() -> Fernet:
    """Get the Fernet instance for the currently configured key."""
    global _fernet, _fernet_key
    key = os.environ.get(KEY_ENV_VAR)
    if not key:
        raise ConfigurationError(
            f"{KEY_ENV_VAR} not set. "
            "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
        )
    if _fernet is None or key != _fernet_key:
        try:
            _fernet = Fernet(key.encode())
        except ValueError as e:
            raise ConfigurationError(f"{KEY_ENV_VAR} is not a valid Fernet key") from e
        _fernet_key = key
    return _fernet


def encrypt_token(token: str) -> str:
    """Encrypt a plaintext access token for database storage.

    Raises:
        ValueError: If the token is empty
        ConfigurationError: If INTEGRATION_ENCRYPTION_KEY is missing or invalid
    """
    if not token:
        raise ValueError("Token cannot be empty")

    return _get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored access token.

    Raises:
        ValueError: If the encrypted token is empty
        ConfigurationError: If INTEGRATION_ENCRYPTION_KEY is missing or invalid
        InvalidToken: If the token was encrypted with another key or is corrupted
    """
    if not encrypted_token:
        raise ValueError("Encrypted token cannot be empty")

    try:
        return _get_fernet().decrypt(encrypted_token.encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt token: invalid or corrupted")
        raise


def is_encryption_configured() -> bool:
    return bool(os.environ.get(KEY_ENV_VAR))
