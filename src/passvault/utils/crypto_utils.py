import base64
import binascii
import hmac
import logging
import secrets

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from argon2.low_level import hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from passvault.config import config_vault as cfg
from passvault.config.config_vault import UTF8
from passvault.utils.errors import AuthenticationFailed, CorruptVault, InvalidKeyLength

logger = logging.getLogger(__name__)


class SecureBuffer:
    """
    Mutable byte buffer for key material that can be zeroed on demand.

    Python cannot guarantee that no other copy of a secret exists, but
    everything held here is overwritten in place by `wipe()`. Use it as a
    context manager to wipe on every exit path:

        with derive_key(pw, salt) as key:
            token = encrypt(data, key)
    """
    __slots__ = ("_buf",)

    def __init__(self, data: bytes | bytearray | memoryview = b""):
        self._buf = bytearray(data)

    @classmethod
    def adopt(cls, buf: bytearray) -> "SecureBuffer":
        """Take ownership of an existing bytearray without copying it."""
        if not isinstance(buf, bytearray):
            raise TypeError("adopt() needs a bytearray")
        obj = cls.__new__(cls)
        obj._buf = buf
        return obj

    @property
    def raw(self) -> bytearray:
        """The live buffer. Do not keep references past the buffer's lifetime."""
        return self._buf

    @property
    def wiped(self) -> bool:
        return not self._buf

    def copy(self) -> "SecureBuffer":
        return SecureBuffer(self._buf)

    def wipe(self) -> None:
        """
        Overwrite the buffer with zeros, then release it.

        Safe to call repeatedly. A wiped buffer has length zero, so any
        later attempt to use it as a key fails the key length check.
        """
        for i in range(len(self._buf)):
            self._buf[i] = 0
        del self._buf[:]

    def __enter__(self) -> "SecureBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __len__(self) -> int:
        return len(self._buf)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SecureBuffer):
            return NotImplemented
        return hmac.compare_digest(self._buf, other._buf)

    __hash__ = None

    def __repr__(self) -> str:
        return f"SecureBuffer(len={len(self._buf)}, data=<hidden>)"

    def __del__(self):
        """
        Best-effort cleanup of sensitive data.

        Intended as a fallback; wipe() should be called explicitly.
        """
        try:
            self.wipe()
        except Exception:
            # no errors in __del__ allowed
            pass


def secret_buffer(master_secret: str | bytes | bytearray) -> SecureBuffer:
    """
    Copy a master password into a SecureBuffer as UTF-8 bytes.

    A bytearray argument is copied, not consumed; the caller still owns
    (and should wipe) the buffer it passed in.
    """
    if isinstance(master_secret, str):
        return SecureBuffer(master_secret.encode(UTF8))
    if isinstance(master_secret, (bytes, bytearray, memoryview)):
        return SecureBuffer(master_secret)
    raise TypeError("Master password must be str or bytes")


def generate_salt(length: int | None = None) -> bytes:
    """Return `length` (default SALT_LEN) bytes from the OS CSPRNG."""
    return secrets.token_bytes(length or cfg.SALT_LEN)


def derive_key(master_secret: str | bytes | bytearray, salt: bytes) -> SecureBuffer:
    """
    Derive the vault encryption key from the master password and salt.

    Applies Argon2id with the configured ARGON_* cost parameters. The
    output is deterministic for a given (password, salt) pair and
    independent across salts.

    Args:
        master_secret: Master password.
        salt: Per-vault random salt, at least MIN_SALT_LEN bytes.

    Returns:
        A KEY_LEN byte key in a SecureBuffer owned by the caller.

    Raises:
        ValueError: If the salt is too short.

    Security:
        - Argon2id is memory hard; its latency is the point.
        - The password copy used here is wiped before returning.
        - This is not the verification hash. The two use separate
          salts and parameters so each can be tuned on its own.
    """
    if len(salt) < cfg.MIN_SALT_LEN:
        raise ValueError(f"Salt must be at least {cfg.MIN_SALT_LEN} bytes")

    with secret_buffer(master_secret) as pw:
        key = hash_secret_raw(
            secret=bytes(pw.raw),
            salt=bytes(salt),
            time_cost=cfg.ARGON_TIME,
            memory_cost=cfg.ARGON_MEMORY,
            parallelism=cfg.ARGON_PARALLELISM,
            hash_len=cfg.KEY_LEN,
            type=Type.ID,
        )
    return SecureBuffer(key)


def _password_hasher() -> PasswordHasher:
    return PasswordHasher(
        time_cost=cfg.VERIFY_TIME,
        memory_cost=cfg.VERIFY_MEMORY,
        parallelism=cfg.VERIFY_PARALLELISM,
        type=Type.ID,
    )


def hash_master_password(master_secret: str | bytes | bytearray) -> str:
    """
    Produce the self-describing verification hash for a master password.

    Returns:
        An Argon2id PHC string ("$argon2id$v=19$m=...,t=...,p=...$salt$hash").
        Parameters and salt travel inside the string, so verification never
        depends on settings stored elsewhere.
    """
    with secret_buffer(master_secret) as pw:
        return _password_hasher().hash(bytes(pw.raw))


def verify_master_password(candidate: str | bytes | bytearray, encoded_hash: str) -> bool:
    """
    Check a candidate master password against a stored verification hash.

    Comparison is constant time (done by libargon2).

    Returns:
        True on match, False on mismatch.

    Raises:
        CorruptVault: If the stored hash is malformed.
    """
    with secret_buffer(candidate) as pw:
        try:
            return _password_hasher().verify(encoded_hash, bytes(pw.raw))
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            raise CorruptVault("Stored verification hash is malformed") from e


def verification_needs_rehash(encoded_hash: str) -> bool:
    """True if the hash was made with parameters other than VERIFY_*."""
    try:
        return _password_hasher().check_needs_rehash(encoded_hash)
    except InvalidHashError as e:
        raise CorruptVault("Stored verification hash is malformed") from e


def _cipher(key: SecureBuffer | bytes | bytearray) -> ChaCha20Poly1305:
    raw = key.raw if isinstance(key, SecureBuffer) else key
    if len(raw) != cfg.KEY_LEN:
        raise InvalidKeyLength(f"Key must be {cfg.KEY_LEN} bytes, got {len(raw)}")
    return ChaCha20Poly1305(raw)


def encrypt(plaintext: bytes | bytearray, key: SecureBuffer | bytes | bytearray) -> bytes:
    """
    Encrypt a payload with ChaCha20-Poly1305.

    A fresh random nonce is drawn for every call and prepended to the
    output, so decryption needs nothing but the key.

    Args:
        plaintext: Bytes to encrypt.
        key: KEY_LEN byte symmetric key.

    Returns:
        nonce || ciphertext || tag

    Raises:
        InvalidKeyLength: If the key is not KEY_LEN bytes.

    Security:
        - Nonces are never stored or reused by this module.
    """
    aead = _cipher(key)
    nonce = secrets.token_bytes(cfg.NONCE_LEN)
    return nonce + aead.encrypt(nonce, plaintext, None)


def decrypt(token: bytes, key: SecureBuffer | bytes | bytearray) -> bytes:
    """
    Decrypt and authenticate a token produced by `encrypt`.

    Raises:
        InvalidKeyLength: If the key is not KEY_LEN bytes.
        AuthenticationFailed: If the token is truncated, was modified, or
            the key is wrong. The cases are not distinguished.

    Security:
        - No plaintext is released unless the tag verifies.
    """
    aead = _cipher(key)
    if len(token) < cfg.NONCE_LEN + cfg.TAG_LEN:
        raise AuthenticationFailed()

    nonce = token[:cfg.NONCE_LEN]
    ciphertext = token[cfg.NONCE_LEN:]
    try:
        return aead.decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise AuthenticationFailed() from None


def bytes_to_str(raw: bytes) -> str:
    """Encode bytes as a URL-safe base64 string without padding."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def str_to_bytes(text: str) -> bytes:
    """
    Decode a URL-safe base64 string, with or without padding.

    Raises:
        ValueError: If the text is not valid base64.
    """
    padding = "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(text + padding)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Invalid base64 data") from e
