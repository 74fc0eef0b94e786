import logging
from typing import Callable, List, Optional

from pendulum import DateTime

from passvault.utils.Entry import Entry, VaultPayload, now_utc
from passvault.utils.errors import DuplicateEntry, EntryNotFound
from passvault.utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)


class EntryRepository:
    """
    CRUD over the decrypted entries of one session.

    Reads take the shared lock, mutations the exclusive one. Entries go
    in and come out as copies, so nothing outside holds a live reference
    into the payload.

    `guard`, if given, runs first inside every lock acquisition and may
    raise to refuse the operation. Session uses it so that a close cannot
    slip in between its liveness check and the operation itself.
    """

    def __init__(self, payload: VaultPayload, lock: ReadWriteLock,
                 clock: Callable[[], DateTime] = now_utc,
                 guard: Optional[Callable[[], None]] = None):
        self._payload = payload
        self._lock = lock
        self._clock = clock
        self._guard = guard or (lambda: None)

    def add(self, entry: Entry) -> None:
        """
        Insert a new entry.

        Titles may repeat; only ids must be unique.

        Raises:
            DuplicateEntry: If an entry with the same id exists.
        """
        with self._lock.write_locked():
            self._guard()
            if self._payload.entries is None:
                self._payload.entries = {}
            if entry.id in self._payload.entries:
                raise DuplicateEntry(f"Entry {entry.id} already exists")
            self._payload.entries[entry.id] = entry.copy()
        logger.debug("Added entry %s", entry.id)

    def get(self, entry_id: str) -> Entry:
        """
        Raises:
            EntryNotFound: If no entry has this id.
        """
        with self._lock.read_locked():
            self._guard()
            return self._lookup(entry_id).copy()

    def list(self) -> List[Entry]:
        """
        Snapshot of every entry, in no particular order.

        Callers that need a stable order sort it themselves.
        """
        with self._lock.read_locked():
            self._guard()
            return [entry.copy() for entry in self._payload.entries.values()]

    def update(self, entry: Entry) -> None:
        """
        Replace a stored entry and advance its updated_at.

        The caller's object gets the new updated_at as well.

        Raises:
            EntryNotFound: If no entry has this id. Nothing is inserted.
        """
        with self._lock.write_locked():
            self._guard()
            self._lookup(entry.id)
            entry.updated_at = self._clock()
            self._payload.entries[entry.id] = entry.copy()
        logger.debug("Updated entry %s", entry.id)

    def delete(self, entry_id: str) -> None:
        """
        Remove an entry for good. There is no undo.

        Raises:
            EntryNotFound: If no entry has this id.
        """
        with self._lock.write_locked():
            self._guard()
            self._lookup(entry_id)
            del self._payload.entries[entry_id]
        logger.debug("Deleted entry %s", entry_id)

    def touch(self, entry_id: str) -> Entry:
        """Record that an entry was shown; only accessed_at changes."""
        with self._lock.write_locked():
            self._guard()
            entry = self._lookup(entry_id)
            entry.accessed_at = self._clock()
            return entry.copy()

    def __len__(self) -> int:
        with self._lock.read_locked():
            self._guard()
            return len(self._payload.entries)

    def _lookup(self, entry_id: str) -> Entry:
        # caller holds the lock
        try:
            return self._payload.entries[entry_id]
        except KeyError:
            raise EntryNotFound(f"Entry '{entry_id}' not found") from None
