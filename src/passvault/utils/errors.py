"""
Exceptions raised by the vault core.

Everything derives from VaultError so the front end can catch the whole
family in one place. Messages never contain key material or passwords.
"""


class VaultError(Exception):
    """Base class for every error the vault core raises."""


class VaultNotFound(VaultError):
    """No vault file exists at the requested path."""


class VaultAlreadyExists(VaultError):
    """A vault file already exists where a new one was requested."""


class AuthenticationFailed(VaultError):
    """
    Wrong master password, or the encrypted payload failed authentication.

    The two causes are deliberately indistinguishable to callers.
    """

    def __init__(self, message: str = "invalid master password"):
        super().__init__(message)


class CorruptVault(VaultError):
    """The container or the decrypted payload is not well formed."""


class NoActiveSession(VaultError):
    """An operation needs an open session and there is none."""


class SessionExpired(NoActiveSession):
    """The session sat idle past its timeout and has been wiped."""


class SessionAlreadyActive(VaultError):
    """A session is already open; close it before opening another."""


class EntryNotFound(VaultError, KeyError):
    """No entry with the requested id."""

    def __str__(self):
        return Exception.__str__(self)


class DuplicateEntry(VaultError):
    """An entry with the same id is already in the vault."""


class InvalidKeyLength(VaultError, ValueError):
    """An encryption key of the wrong size was supplied."""


class VaultConflict(VaultError):
    """The vault file changed on disk since this session loaded it."""


class VaultIOError(VaultError):
    """Reading or writing the vault file failed."""


class SerializationError(VaultError):
    """The payload could not be encoded for storage."""
