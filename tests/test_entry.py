"""
Tests for the Entry and VaultPayload data model.
"""
import json

import pendulum
import pytest

from passvault.config import config_vault as cfg
from passvault.utils.Entry import Entry, VaultPayload, new_entry_id
from passvault.utils.crypto_utils import str_to_bytes


@pytest.fixture
def entry():
    return Entry(
        "Email",
        username="me@x.com",
        password="p@ss",
        url="https://mail.example.com",
        notes="line one\nline two",
        tags=["mail", "personal"],
        custom={"pin": "1234"},
    )


class TestEntry:

    def test_timestamps_start_equal(self):
        e = Entry("Bank")
        assert e.created_at == e.updated_at == e.accessed_at
        assert e.created_at.timezone_name == "UTC"

    def test_title_is_required(self):
        with pytest.raises(ValueError):
            Entry("   ")
        with pytest.raises(TypeError):
            Entry(None)

    def test_title_is_stripped(self):
        assert Entry("  Bank  ").title == "Bank"

    def test_ids_are_random_16_bytes(self):
        ids = {new_entry_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(str_to_bytes(i)) == cfg.EID_LEN for i in ids)

    def test_repr_hides_password(self, entry):
        assert "p@ss" not in repr(entry)
        assert "Email" in repr(entry)

    def test_copy_does_not_share_collections(self, entry):
        dup = entry.copy()
        dup.tags.append("new")
        dup.custom["pin"] = "0000"
        assert entry.tags == ["mail", "personal"]
        assert entry.custom == {"pin": "1234"}

    def test_dict_round_trip(self, entry):
        restored = Entry.from_dict(json.loads(json.dumps(entry.to_dict())))
        assert restored == entry

    def test_empty_optional_fields_are_omitted(self):
        data = Entry("Bank").to_dict()
        for name in ("url", "notes", "tags", "custom"):
            assert name not in data

    def test_from_dict_rejects_bad_tags(self, entry):
        data = entry.to_dict()
        data["tags"] = "mail"
        with pytest.raises(TypeError):
            Entry.from_dict(data)

    def test_from_dict_requires_timestamps(self, entry):
        data = entry.to_dict()
        del data["accessed_at"]
        with pytest.raises(KeyError):
            Entry.from_dict(data)


class TestVaultPayload:

    def test_bytes_round_trip(self, entry):
        payload = VaultPayload(entries={entry.id: entry}, metadata={"owner": "me"})
        restored = VaultPayload.from_bytes(payload.to_bytes())
        assert restored.entries == {entry.id: entry}
        assert restored.metadata == {"owner": "me"}
        assert restored.created_at == payload.created_at

    def test_to_bytes_is_wipeable(self):
        assert isinstance(VaultPayload().to_bytes(), bytearray)

    def test_empty_payload_layout(self):
        data = json.loads(bytes(VaultPayload().to_bytes()))
        assert data["schema_version"] == cfg.SCHEMA_VERSION
        assert data["entries"] == {}
        assert data["metadata"] == {}

    def test_unknown_schema_is_rejected(self):
        data = VaultPayload().to_dict()
        data["schema_version"] = cfg.SCHEMA_VERSION + 1
        with pytest.raises(ValueError):
            VaultPayload.from_dict(data)

    def test_entry_key_must_match_id(self, entry):
        data = VaultPayload(entries={entry.id: entry}).to_dict()
        data["entries"] = {"other-id": data["entries"][entry.id]}
        with pytest.raises(ValueError):
            VaultPayload.from_dict(data)

    def test_not_json(self):
        with pytest.raises(ValueError):
            VaultPayload.from_bytes(b"\x00\x01")

    def test_timestamps_parse_to_datetimes(self):
        restored = VaultPayload.from_bytes(VaultPayload().to_bytes())
        assert isinstance(restored.updated_at, pendulum.DateTime)
