"""External integrations.

Currently GitHub: OAuth account linking, repository listing and issue import.
Access tokens are encrypted at rest with integrations.encryption.
"""

from integrations.encryption import encrypt_token, decrypt_token
from integrations.state_store import TTLStore, InMemoryTTLStore

__all__ = [
    "encrypt_token",
    "decrypt_token",
    "TTLStore",
    "InMemoryTTLStore",
]
