"""
PassVault - a local, encrypted password vault
"""
from passvault.config.config_vault import VERSION as __version__
from passvault.utils.Entry import Entry
from passvault.utils.errors import (
    AuthenticationFailed, CorruptVault, DuplicateEntry, EntryNotFound,
    InvalidKeyLength, NoActiveSession, SerializationError, SessionAlreadyActive,
    SessionExpired, VaultAlreadyExists, VaultConflict, VaultError, VaultIOError,
    VaultNotFound,
)
from passvault.utils.session import Session, SessionManager
from passvault.utils.vault_utils import create_vault, vault_exists

__all__ = [
    "__version__",
    "Entry",
    "Session",
    "SessionManager",
    "create_vault",
    "vault_exists",
    "VaultError",
    "VaultNotFound",
    "VaultAlreadyExists",
    "AuthenticationFailed",
    "CorruptVault",
    "NoActiveSession",
    "SessionExpired",
    "SessionAlreadyActive",
    "EntryNotFound",
    "DuplicateEntry",
    "InvalidKeyLength",
    "VaultConflict",
    "VaultIOError",
    "SerializationError",
]
