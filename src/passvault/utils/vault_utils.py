import os
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from passvault.config.config_vault import (
    FORMAT_VERSION, MIN_SALT_LEN, SUPPORTED_FORMATS, UTF8, ensure_config_dir,
)
from passvault.utils.Entry import VaultPayload, now_utc
from passvault.utils.crypto_utils import (
    SecureBuffer, bytes_to_str, decrypt, derive_key, encrypt, generate_salt,
    hash_master_password, secret_buffer, str_to_bytes, verification_needs_rehash,
    verify_master_password,
)
from passvault.utils.errors import (
    AuthenticationFailed, CorruptVault, SerializationError, VaultAlreadyExists,
    VaultConflict, VaultIOError, VaultNotFound,
)

logger = logging.getLogger(__name__)

CONTAINER_FIELDS = (
    "format_version",
    "verification_hash",
    "salt",
    "encrypted_payload",
    "created_at",
    "updated_at",
)


@dataclass
class LoadedVault:
    """
    Everything a session needs after a successful unlock.

    The key is owned by whoever receives this object and must be wiped
    when they are done with it.
    """
    payload: VaultPayload
    key: SecureBuffer
    verification_hash: str
    salt: bytes
    updated_at: str


def vault_exists(path: Path | str) -> bool:
    """Return True if something exists at the vault path."""
    return Path(path).exists()


def create_vault(master_pw: str | bytes | bytearray, path: Path | str) -> None:
    """
    Create a new, empty encrypted vault file.

    Generates a random salt, derives the encryption key, builds the
    verification hash, and writes an empty payload.

    Args:
        master_pw: The new master password. Must not be empty.
        path: Where to write the vault.

    Raises:
        VaultAlreadyExists: If anything already exists at `path`.
        ValueError: If the master password is empty.
        VaultIOError: If the file cannot be written.

    Security Notes:
        - The derived key and the password copy are wiped on every exit.
    """
    path = Path(path)
    if vault_exists(path):
        raise VaultAlreadyExists(f"Vault already exists at {path}")

    with secret_buffer(master_pw) as pw:
        if not pw.raw:
            raise ValueError("Master password cannot be empty")

        verification_hash = hash_master_password(pw.raw)
        salt = generate_salt()
        # save_vault wipes the key it is given
        save_vault(VaultPayload(), path, derive_key(pw.raw, salt), verification_hash, salt,
                   exclusive=True)

    logger.info("Created vault at %s", path)


def load_vault(master_pw: str | bytes | bytearray, path: Path | str) -> LoadedVault:
    """
    Open an existing vault and decrypt its payload.

    The master password is checked against the stored verification hash
    first; a wrong password is rejected before any key is derived or any
    byte is decrypted. The file is never modified.

    Args:
        master_pw: Candidate master password.
        path: Vault file to open.

    Returns:
        LoadedVault with the payload, the derived key and the container
        metadata needed to save again.

    Raises:
        VaultNotFound: If there is no file at `path`.
        CorruptVault: If the container or decrypted payload is malformed.
        AuthenticationFailed: On a wrong password or a payload that fails
            authentication.
        VaultIOError: If the file cannot be read.
    """
    path = Path(path)
    container = _read_container(path)

    try:
        salt = str_to_bytes(container["salt"])
        token = str_to_bytes(container["encrypted_payload"])
    except ValueError as e:
        raise CorruptVault("Vault salt or payload is not valid base64") from e
    if len(salt) < MIN_SALT_LEN:
        raise CorruptVault("Vault salt is too short")

    verification_hash = container["verification_hash"]

    with secret_buffer(master_pw) as pw:
        if not verify_master_password(pw.raw, verification_hash):
            logger.warning("Rejected master password for %s", path)
            raise AuthenticationFailed()

        # Upgrade the stored hash on the next save if VERIFY_* changed
        if verification_needs_rehash(verification_hash):
            logger.info("Verification hash parameters changed, rehashing")
            verification_hash = hash_master_password(pw.raw)

        key = derive_key(pw.raw, salt)

    try:
        with SecureBuffer(decrypt(token, key)) as plaintext:
            try:
                payload = VaultPayload.from_bytes(plaintext.raw)
            except (TypeError, ValueError, KeyError, RecursionError) as e:
                raise CorruptVault("Decrypted vault is not a well-formed payload") from e
    except BaseException:
        key.wipe()
        raise

    logger.info("Unlocked vault at %s (%d entries)", path, len(payload.entries))
    return LoadedVault(
        payload=payload,
        key=key,
        verification_hash=verification_hash,
        salt=salt,
        updated_at=container["updated_at"],
    )


def save_vault(payload: VaultPayload,
               path: Path | str,
               key: SecureBuffer,
               verification_hash: str,
               salt: bytes,
               expected_updated_at: str | None = None,
               exclusive: bool = False) -> str:
    """
    Encrypt the payload and write the full container to disk.

    Writes to a temporary file in the same directory, fsyncs it, then
    atomically replaces the vault file. Parent directories are created
    owner-only and the vault file is readable by the owner only.

    Args:
        payload: Decrypted vault. Its updated_at is advanced.
        path: Destination vault file.
        key: Encryption key. Wiped before this function returns, so pass
            a copy of any key you still need.
        verification_hash: Stored unchanged in the container.
        salt: Stored unchanged in the container.
        expected_updated_at: If given, the save is refused unless the file
            on disk still carries this updated_at value.
        exclusive: Fail instead of replacing a file that already exists at
            `path`. Used when creating a vault.

    Returns:
        The container updated_at that was written.

    Raises:
        VaultConflict: If the file changed since `expected_updated_at`.
        VaultAlreadyExists: If `exclusive` and the file already exists.
        SerializationError: If the payload cannot be encoded.
        VaultIOError: If the file cannot be written.
    """
    path = Path(path)
    try:
        if expected_updated_at is not None:
            _check_unchanged(path, expected_updated_at)

        payload.updated_at = now_utc()
        try:
            plaintext = SecureBuffer.adopt(payload.to_bytes())
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Failed to encode vault: {e}") from e

        with plaintext:
            token = encrypt(plaintext.raw, key)

        updated_at = payload.updated_at.to_iso8601_string()
        container = {
            "format_version": FORMAT_VERSION,
            "verification_hash": verification_hash,
            "salt": bytes_to_str(salt),
            "encrypted_payload": bytes_to_str(token),
            "created_at": payload.created_at.to_iso8601_string(),
            "updated_at": updated_at,
        }
        _write_atomic(path, json.dumps(container, indent=2), exclusive=exclusive)
    finally:
        key.wipe()

    logger.debug("Saved vault to %s", path)
    return updated_at


def _read_container(path: Path) -> dict:
    """Read and validate the unencrypted envelope of a vault file."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise VaultNotFound(f"Vault not found at {path}") from None
    except OSError as e:
        raise VaultIOError(f"Failed to read vault file: {e}") from e

    try:
        container = json.loads(raw.decode(UTF8))
    except (ValueError, RecursionError) as e:
        raise CorruptVault("Vault file is not valid JSON") from e

    if not isinstance(container, dict):
        raise CorruptVault("Vault file is not a JSON object")

    for name in CONTAINER_FIELDS:
        if not isinstance(container.get(name), str):
            raise CorruptVault(f"Vault file is missing or has an invalid '{name}'")

    if container["format_version"] not in SUPPORTED_FORMATS:
        raise CorruptVault(
            f"Unsupported vault format {container['format_version']!r}"
        )
    return container


def _check_unchanged(path: Path, expected_updated_at: str) -> None:
    try:
        current = _read_container(path)["updated_at"]
    except VaultNotFound:
        raise VaultConflict(f"Vault file {path} was removed by another process") from None

    if current != expected_updated_at:
        logger.warning("Refusing to overwrite %s: changed on disk", path)
        raise VaultConflict(
            f"Vault file {path} was modified by another process; reopen it"
        )


def _write_atomic(path: Path, text: str, exclusive: bool = False) -> None:
    """
    Write text to path via a 0600 temp file, fsync and os.replace.

    With `exclusive`, the temp file is hard-linked into place instead, which
    fails if anything already exists at `path`.
    """
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        ensure_config_dir(path.parent)

        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding=UTF8) as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno()) # force to disk

            if exclusive:
                os.link(tmp, path)
            else:
                # Atomic replace the vault file.
                os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

        os.chmod(path, 0o600)
    except FileExistsError:
        raise VaultAlreadyExists(f"Vault already exists at {path}") from None
    except OSError as e:
        raise VaultIOError(f"Failed to write vault file: {e}") from e
