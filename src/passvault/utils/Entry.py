from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
import json, secrets

import pendulum
from pendulum import DateTime

from passvault.config.config_vault import EID_LEN, SCHEMA_VERSION, UTF8
from passvault.utils.crypto_utils import bytes_to_str


def now_utc() -> DateTime:
    return pendulum.now("UTC")


def new_entry_id() -> str:
    """Random entry id: EID_LEN bytes from the CSPRNG, URL-safe base64."""
    return bytes_to_str(secrets.token_bytes(EID_LEN))


@dataclass
class Entry:
    """
    Represents a single vault entry.

    Stores the credential for one site plus free-form notes, tags and
    custom fields. All three timestamps start equal; the repository
    advances updated_at on every change and accessed_at when the entry
    is shown to the user.
    """
    title: str
    username: str = ''
    password: str = ''
    url: str = ''
    notes: str = ''

    tags: List[str] = field(default_factory=list)

    # Used to add any other fields into the entry.
    custom: Dict[str, str] = field(default_factory=dict)

    id: str = field(default_factory=new_entry_id)
    created_at: DateTime = field(default_factory=now_utc)
    updated_at: Optional[DateTime] = None
    accessed_at: Optional[DateTime] = None

    def __post_init__(self):
        """
        Validate and normalize required fields.

        Ensures the title is a non-empty string and fills missing
        timestamps from created_at.
        """
        if not isinstance(self.title, str):
            raise TypeError("Title must be a string")

        self.title = self.title.strip()
        if not self.title:
            raise ValueError("Title cannot be empty")

        if self.updated_at is None:
            self.updated_at = self.created_at
        if self.accessed_at is None:
            self.accessed_at = self.created_at

    def __repr__(self):
        return (
            f"Entry(id={self.id}, "
            f"title={self.title}, "
            f"username={self.username}, "
            f"pw=<hidden>, "
            f"tags={self.tags}, "
            f"updated_at={self.updated_at})"
        )

    def copy(self) -> "Entry":
        """Independent copy; tags and custom fields are not shared."""
        return replace(self, tags=list(self.tags), custom=dict(self.custom))

    def to_dict(self) -> dict:
        """
        Serialize entry to a dictionary.

        Empty optional fields are left out to keep the payload small.

        Returns:
            Dictionary representation of the entry.
        """
        data = {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "password": self.password,
            "created_at": self.created_at.to_iso8601_string(),
            "updated_at": self.updated_at.to_iso8601_string(),
            "accessed_at": self.accessed_at.to_iso8601_string(),
        }
        if self.url:
            data["url"] = self.url
        if self.notes:
            data["notes"] = self.notes
        if self.tags:
            data["tags"] = list(self.tags)
        if self.custom:
            data["custom"] = dict(self.custom)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Entry":
        """
        Create an entry from stored data.

        Args:
            data: Stored entry data.

        Returns:
            Reconstructed Entry instance.

        Raises:
            TypeError, ValueError, KeyError: If the data is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("Entry data must be a dict")

        tags = data.get("tags", [])
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise TypeError("Entry tags must be a list of strings")

        custom = data.get("custom", {})
        if not isinstance(custom, dict):
            raise TypeError("Entry custom fields must be a dict")

        return cls(
            id=_require_str(data, "id"),
            title=_require_str(data, "title"),
            username=data.get("username", ""),
            password=data.get("password", ""),
            url=data.get("url", ""),
            notes=data.get("notes", ""),
            tags=list(tags),
            custom={str(k): str(v) for k, v in custom.items()},
            created_at=_parse_time(data["created_at"]),
            updated_at=_parse_time(data["updated_at"]),
            accessed_at=_parse_time(data["accessed_at"]),
        )


@dataclass
class VaultPayload:
    """
    The decrypted vault: every entry keyed by id, plus free-form metadata.

    The entries mapping is the only record of which entries exist.
    """
    schema_version: int = SCHEMA_VERSION
    created_at: DateTime = field(default_factory=now_utc)
    updated_at: Optional[DateTime] = None
    entries: Dict[str, Entry] = field(default_factory=dict)
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    def to_dict(self) -> dict:
        return {
            "schema_version": self.schema_version,
            "created_at": self.created_at.to_iso8601_string(),
            "updated_at": self.updated_at.to_iso8601_string(),
            "entries": {eid: entry.to_dict() for eid, entry in self.entries.items()},
            "metadata": dict(self.metadata),
        }

    def to_bytes(self) -> bytearray:
        """
        Serialize the payload to compact JSON.

        Returns:
            UTF-8 encoded JSON in a bytearray so the caller can wipe it.
        """
        return bytearray(json.dumps(
            self.to_dict(),
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode(UTF8))

    @classmethod
    def from_dict(cls, data: dict) -> "VaultPayload":
        """
        Rebuild a payload from its decoded JSON form.

        Raises:
            TypeError, ValueError, KeyError: If the data is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("Payload must be a dict")

        schema = data.get("schema_version")
        if not isinstance(schema, int) or schema < 1 or schema > SCHEMA_VERSION:
            raise ValueError(f"Unsupported payload schema: {schema!r}")

        raw_entries = data.get("entries", {})
        if not isinstance(raw_entries, dict):
            raise TypeError("Payload entries must be a dict")

        entries: Dict[str, Entry] = {}
        for eid, raw in raw_entries.items():
            entry = Entry.from_dict(raw)
            if entry.id != eid:
                raise ValueError(f"Entry id mismatch for key {eid}")
            entries[eid] = entry

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise TypeError("Payload metadata must be a dict")

        return cls(
            schema_version=schema,
            created_at=_parse_time(data["created_at"]),
            updated_at=_parse_time(data["updated_at"]),
            entries=entries,
            metadata={str(k): str(v) for k, v in metadata.items()},
        )

    @classmethod
    def from_bytes(cls, raw: bytes | bytearray) -> "VaultPayload":
        """
        Deserialize a payload from JSON bytes.

        Raises:
            TypeError, ValueError, KeyError: If the bytes are not a payload.
        """
        if not isinstance(raw, (bytes, bytearray)):
            raise TypeError("Input must be bytes")

        return cls.from_dict(json.loads(raw.decode(UTF8)))


def _require_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"Entry {key} must be a string")
    return value


def _parse_time(value: str) -> DateTime:
    """Parse an ISO-8601 timestamp into an aware DateTime."""
    if not isinstance(value, str):
        raise TypeError("Timestamp must be an ISO-8601 string")
    parsed = pendulum.parse(value)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Not a date-time: {value}")
    return parsed
