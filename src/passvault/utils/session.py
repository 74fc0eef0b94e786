"""
Session lifecycle for an unlocked vault.

A Session holds the decrypted payload and the derived key for as long as
it is used. The timeout is sliding and checked lazily: every access
either extends the window or, if the session sat idle for longer than
the timeout, wipes the key and ends it. Nothing runs in the background,
so an idle session stays in memory until the next access, an explicit
close, or process exit.

SessionManager owns at most one Session. Opening a second one while the
first is still live raises SessionAlreadyActive; close it first.
"""
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, List, Optional

from pendulum import DateTime

from passvault.config import config_vault as cfg
from passvault.utils.Entry import Entry, now_utc
from passvault.utils.entry_repository import EntryRepository
from passvault.utils.errors import NoActiveSession, SessionAlreadyActive, SessionExpired
from passvault.utils.locks import ReadWriteLock
from passvault.utils.vault_utils import LoadedVault, load_vault, save_vault

logger = logging.getLogger(__name__)

Clock = Callable[[], DateTime]


class Session:
    """
    Handle to an unlocked vault.

    Every public method first checks the session is still live. A closed
    handle raises NoActiveSession; one idle past its timeout is wiped and
    raises SessionExpired. Successful calls slide the timeout window.
    """

    def __init__(self, loaded: LoadedVault, path: Path | str,
                 timeout: float = cfg.SESSION_TIMEOUT, clock: Clock = now_utc):
        self.path = Path(path)
        self.timeout = timeout
        self._clock = clock

        self._payload = loaded.payload
        self._key = loaded.key
        self._verification_hash = loaded.verification_hash
        self._salt = loaded.salt
        self._disk_updated_at = loaded.updated_at

        self._lock = ReadWriteLock()
        self._entries = EntryRepository(self._payload, self._lock, clock,
                                        guard=self._ensure_live)
        self._closed = False
        self.last_activity = clock()

    def __repr__(self):
        state = "closed" if self._closed else "active"
        return f"Session(path={self.path}, {state}, key=<hidden>)"

    @property
    def active(self) -> bool:
        return not self._closed

    def is_expired(self, now: Optional[DateTime] = None) -> bool:
        """True once more than `timeout` seconds passed since the last access."""
        now = now if now is not None else self._clock()
        return (now - self.last_activity).total_seconds() > self.timeout

    def _ensure_live(self) -> None:
        # caller holds self._lock
        if self._closed:
            raise NoActiveSession("Vault is locked")
        now = self._clock()
        if self.is_expired(now):
            logger.info("Session for %s expired", self.path)
            raise SessionExpired("Session expired, unlock the vault again")
        self.last_activity = now

    @contextmanager
    def _close_on_expiry(self):
        # close() takes the write lock, so it runs only once the failed
        # operation has released it
        try:
            yield
        except SessionExpired:
            self.close()
            raise

    def refresh(self) -> bool:
        """
        Slide the timeout window if the session is still live.

        Returns:
            False if the session is closed, or just expired and was wiped.
        """
        try:
            with self._close_on_expiry(), self._lock.write_locked():
                self._ensure_live()
        except NoActiveSession:
            return False
        return True

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self) -> List[Entry]:
        with self._close_on_expiry():
            return self._entries.list()

    def get_entry(self, entry_id: str) -> Entry:
        with self._close_on_expiry():
            return self._entries.get(entry_id)

    def add_entry(self, entry: Entry) -> None:
        with self._close_on_expiry():
            self._entries.add(entry)

    def update_entry(self, entry: Entry) -> None:
        with self._close_on_expiry():
            self._entries.update(entry)

    def delete_entry(self, entry_id: str) -> None:
        with self._close_on_expiry():
            self._entries.delete(entry_id)

    def touch_entry(self, entry_id: str) -> Entry:
        """Mark an entry as viewed and return it."""
        with self._close_on_expiry():
            return self._entries.touch(entry_id)

    @property
    def metadata(self) -> dict:
        """Copy of the free-form vault metadata."""
        with self._close_on_expiry(), self._lock.read_locked():
            self._ensure_live()
            return dict(self._payload.metadata)

    def set_metadata(self, name: str, value: str | None) -> None:
        """Set a metadata value, or remove it when value is None."""
        with self._close_on_expiry(), self._lock.write_locked():
            self._ensure_live()
            if value is None:
                self._payload.metadata.pop(name, None)
            else:
                self._payload.metadata[str(name)] = str(value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def persist(self) -> None:
        """
        Encrypt and write the vault back to its file.

        Raises:
            VaultConflict: If another process rewrote the file since this
                session loaded or last saved it.
        """
        with self._close_on_expiry(), self._lock.write_locked():
            self._ensure_live()
            self._disk_updated_at = save_vault(
                self._payload,
                self.path,
                self._key.copy(),
                self._verification_hash,
                self._salt,
                expected_updated_at=self._disk_updated_at,
            )
        logger.info("Saved vault %s", self.path)

    def close(self) -> None:
        """Wipe the key, drop the decrypted entries. Safe to call twice."""
        with self._lock.write_locked():
            if self._closed:
                return
            self._key.wipe()
            self._payload.entries.clear()
            self._payload.metadata.clear()
            self._closed = True
        logger.info("Closed session for %s", self.path)


class SessionManager:
    """
    Owns the single active Session of a caller.

    States: closed (no session), active, expired (noticed lazily on the
    next access, which wipes it and returns to closed).
    """

    def __init__(self, timeout: Optional[float] = None, clock: Clock = now_utc):
        self.timeout = cfg.SESSION_TIMEOUT if timeout is None else timeout
        self._clock = clock
        self._session: Optional[Session] = None
        self._mutex = threading.Lock()

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_session()

    def open_session(self, master_pw: str | bytes | bytearray, path: Path | str) -> Session:
        """
        Unlock the vault at `path` and install it as the active session.

        Raises:
            SessionAlreadyActive: If a live session is already installed.
            VaultNotFound, AuthenticationFailed, CorruptVault, VaultIOError:
                From loading the vault.
        """
        with self._mutex:
            if self._take_live() is not None:
                raise SessionAlreadyActive("A vault session is already open")

            loaded = load_vault(master_pw, path)
            self._session = Session(loaded, path, timeout=self.timeout, clock=self._clock)
            logger.info("Opened session for %s", path)
            return self._session

    def current_session(self) -> Optional[Session]:
        """
        The active session, or None.

        Each call slides the timeout window. A session idle past its
        timeout is wiped here and None is returned.
        """
        with self._mutex:
            return self._take_live()

    def require_session(self) -> Session:
        """
        Like current_session, but raise instead of returning None.

        Raises:
            SessionExpired: If the session just timed out.
            NoActiveSession: If there is no session at all.
        """
        with self._mutex:
            had_session = self._session is not None and self._session.active
            session = self._take_live()
        if session is not None:
            return session
        if had_session:
            raise SessionExpired("Session expired, unlock the vault again")
        raise NoActiveSession("Vault is locked")

    def persist_session(self) -> None:
        """Write the active session back to disk."""
        self.require_session().persist()

    def close_session(self) -> None:
        """End the session, if any, wiping its key."""
        with self._mutex:
            if self._session is not None:
                self._session.close()
                self._session = None

    def _take_live(self) -> Optional[Session]:
        # caller holds self._mutex
        session = self._session
        if session is None:
            return None
        if not session.refresh():
            self._session = None
            return None
        return session
