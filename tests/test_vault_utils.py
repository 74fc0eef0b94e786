"""
Tests for the on-disk vault container: create, load and save.
"""
import json
import os
import stat
import sys

import pytest

from passvault.config import config_vault as cfg
from passvault.utils import vault_utils
from passvault.utils.Entry import Entry
from passvault.utils.crypto_utils import bytes_to_str, encrypt, str_to_bytes
from passvault.utils.errors import (
    AuthenticationFailed, CorruptVault, VaultAlreadyExists, VaultConflict, VaultNotFound,
)
from passvault.utils.vault_utils import (
    CONTAINER_FIELDS, create_vault, load_vault, save_vault, vault_exists,
)

from conftest import MASTER_PW


def read_container(path):
    return json.loads(path.read_text(encoding="utf-8"))


def write_container(path, container):
    path.write_text(json.dumps(container), encoding="utf-8")


def replace_payload(path, plaintext):
    """Encrypt arbitrary bytes under the vault key and store them as the payload."""
    loaded = load_vault(MASTER_PW, path)
    with loaded.key as key:
        token = encrypt(plaintext, key)
    container = read_container(path)
    container["encrypted_payload"] = bytes_to_str(token)
    write_container(path, container)


def capture_derived_keys(monkeypatch):
    keys = []
    real_derive = vault_utils.derive_key

    def derive(*args):
        key = real_derive(*args)
        keys.append(key)
        return key

    monkeypatch.setattr(vault_utils, "derive_key", derive)
    return keys


# --- Create ---

class TestCreateVault:

    def test_create_then_exists(self, vault_path):
        assert vault_exists(vault_path) is False
        create_vault(MASTER_PW, vault_path)
        assert vault_exists(vault_path) is True

    def test_container_has_every_field(self, existing_vault):
        container = read_container(existing_vault)
        assert set(CONTAINER_FIELDS) <= set(container)
        assert container["format_version"] == cfg.FORMAT_VERSION
        assert len(str_to_bytes(container["salt"])) == cfg.SALT_LEN
        assert container["verification_hash"].startswith("$argon2id$")

    def test_create_refuses_to_overwrite(self, existing_vault):
        before = existing_vault.read_bytes()
        with pytest.raises(VaultAlreadyExists):
            create_vault("other", existing_vault)
        assert existing_vault.read_bytes() == before

    def test_empty_master_password(self, vault_path):
        with pytest.raises(ValueError):
            create_vault("", vault_path)
        assert not vault_exists(vault_path)

    def test_new_vault_is_empty(self, existing_vault):
        loaded = load_vault(MASTER_PW, existing_vault)
        assert loaded.payload.entries == {}
        loaded.key.wipe()

    def test_create_loses_race_to_other_writer(self, existing_vault, monkeypatch):
        # vault_exists saw nothing, but the file appeared before the write
        before = existing_vault.read_bytes()
        monkeypatch.setattr(vault_utils, "vault_exists", lambda path: False)
        with pytest.raises(VaultAlreadyExists):
            create_vault("other", existing_vault)
        assert existing_vault.read_bytes() == before
        assert [p.name for p in existing_vault.parent.iterdir()] == ["vault.json"]
        loaded = load_vault(MASTER_PW, existing_vault)
        assert loaded.payload.entries == {}
        loaded.key.wipe()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_and_directory_are_owner_only(self, existing_vault):
        assert stat.S_IMODE(os.stat(existing_vault).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(existing_vault.parent).st_mode) == 0o700

    def test_no_temp_file_left_behind(self, existing_vault):
        assert [p.name for p in existing_vault.parent.iterdir()] == ["vault.json"]


# --- Load ---

class TestLoadVault:

    def test_not_found(self, vault_path):
        with pytest.raises(VaultNotFound):
            load_vault(MASTER_PW, vault_path)

    def test_wrong_password_leaves_file_untouched(self, existing_vault):
        before = existing_vault.read_bytes()
        with pytest.raises(AuthenticationFailed) as exc:
            load_vault("wrong", existing_vault)
        assert str(exc.value) == "invalid master password"
        assert existing_vault.read_bytes() == before

    def test_wrong_then_correct_password(self, existing_vault):
        before = existing_vault.read_bytes()
        with pytest.raises(AuthenticationFailed):
            load_vault("wrong", existing_vault)
        assert existing_vault.read_bytes() == before

        loaded = load_vault(MASTER_PW, existing_vault)
        assert len(loaded.key) == cfg.KEY_LEN
        loaded.key.wipe()

    def test_wrong_password_never_derives_or_decrypts(self, existing_vault, monkeypatch):
        calls = []
        monkeypatch.setattr(vault_utils, "derive_key", lambda *a: calls.append("derive"))
        monkeypatch.setattr(vault_utils, "decrypt", lambda *a: calls.append("decrypt"))
        with pytest.raises(AuthenticationFailed):
            load_vault("wrong", existing_vault)
        assert calls == []

    def test_not_json(self, existing_vault):
        existing_vault.write_text("{not json", encoding="utf-8")
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_not_an_object(self, existing_vault):
        existing_vault.write_text("[]", encoding="utf-8")
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_deeply_nested_json(self, existing_vault):
        existing_vault.write_text("[" * 200000, encoding="utf-8")
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    @pytest.mark.parametrize("plaintext", [
        b"not json",
        b"\xff\xfe",
        b"[]",
        b'{"schema_version": 99, "entries": {}}',
        b'{"schema_version": 1, "entries": {"x": {"title": 5}}}',
        b"[" * 200000,
    ])
    def test_authentic_but_malformed_payload(self, existing_vault, monkeypatch, plaintext):
        replace_payload(existing_vault, plaintext)
        keys = capture_derived_keys(monkeypatch)

        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)
        assert len(keys) == 1
        assert keys[0].wiped

    @pytest.mark.parametrize("field", CONTAINER_FIELDS)
    def test_missing_field(self, existing_vault, field):
        container = read_container(existing_vault)
        del container[field]
        write_container(existing_vault, container)
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_unsupported_format_version(self, existing_vault):
        container = read_container(existing_vault)
        container["format_version"] = "9.0.0"
        write_container(existing_vault, container)
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_short_salt(self, existing_vault):
        container = read_container(existing_vault)
        container["salt"] = bytes_to_str(b"x" * 8)
        write_container(existing_vault, container)
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_malformed_verification_hash(self, existing_vault):
        container = read_container(existing_vault)
        container["verification_hash"] = "garbage"
        write_container(existing_vault, container)
        with pytest.raises(CorruptVault):
            load_vault(MASTER_PW, existing_vault)

    def test_tampered_payload_fails_authentication(self, existing_vault):
        container = read_container(existing_vault)
        token = bytearray(str_to_bytes(container["encrypted_payload"]))
        token[-1] ^= 0x01
        container["encrypted_payload"] = bytes_to_str(bytes(token))
        write_container(existing_vault, container)
        with pytest.raises(AuthenticationFailed):
            load_vault(MASTER_PW, existing_vault)

    def test_swapped_salt_fails_authentication(self, existing_vault):
        container = read_container(existing_vault)
        container["salt"] = bytes_to_str(b"\x00" * cfg.SALT_LEN)
        write_container(existing_vault, container)
        with pytest.raises(AuthenticationFailed):
            load_vault(MASTER_PW, existing_vault)

    def test_verification_hash_upgraded_on_parameter_change(self, existing_vault, monkeypatch):
        old_hash = read_container(existing_vault)["verification_hash"]
        monkeypatch.setattr(cfg, "VERIFY_TIME", 2)

        loaded = load_vault(MASTER_PW, existing_vault)
        assert loaded.verification_hash != old_hash
        assert "t=2" in loaded.verification_hash
        # nothing written until the next save
        assert read_container(existing_vault)["verification_hash"] == old_hash
        loaded.key.wipe()


# --- Save ---

class TestSaveVault:

    def test_save_then_load(self, existing_vault):
        loaded = load_vault(MASTER_PW, existing_vault)
        entry = Entry("Email", username="me@x.com", password="p@ss")
        loaded.payload.entries[entry.id] = entry

        save_vault(loaded.payload, existing_vault, loaded.key,
                   loaded.verification_hash, loaded.salt)

        reloaded = load_vault(MASTER_PW, existing_vault)
        assert reloaded.payload.entries == {entry.id: entry}
        reloaded.key.wipe()

    def test_save_wipes_the_key_it_is_given(self, existing_vault):
        loaded = load_vault(MASTER_PW, existing_vault)
        save_vault(loaded.payload, existing_vault, loaded.key,
                   loaded.verification_hash, loaded.salt)
        assert loaded.key.wiped

    def test_salt_and_created_at_are_preserved(self, existing_vault):
        before = read_container(existing_vault)
        loaded = load_vault(MASTER_PW, existing_vault)
        save_vault(loaded.payload, existing_vault, loaded.key,
                   loaded.verification_hash, loaded.salt)
        after = read_container(existing_vault)

        assert after["salt"] == before["salt"]
        assert after["created_at"] == before["created_at"]
        assert after["encrypted_payload"] != before["encrypted_payload"]

    def test_returns_written_updated_at(self, existing_vault):
        loaded = load_vault(MASTER_PW, existing_vault)
        written = save_vault(loaded.payload, existing_vault, loaded.key,
                             loaded.verification_hash, loaded.salt)
        assert read_container(existing_vault)["updated_at"] == written

    def test_conflict_when_file_changed(self, existing_vault):
        first = load_vault(MASTER_PW, existing_vault)
        second = load_vault(MASTER_PW, existing_vault)

        save_vault(first.payload, existing_vault, first.key,
                   first.verification_hash, first.salt,
                   expected_updated_at=first.updated_at)

        before = existing_vault.read_bytes()
        with pytest.raises(VaultConflict):
            save_vault(second.payload, existing_vault, second.key,
                       second.verification_hash, second.salt,
                       expected_updated_at=second.updated_at)
        assert existing_vault.read_bytes() == before
        assert second.key.wiped

    def test_conflict_when_file_removed(self, existing_vault):
        loaded = load_vault(MASTER_PW, existing_vault)
        existing_vault.unlink()
        with pytest.raises(VaultConflict):
            save_vault(loaded.payload, existing_vault, loaded.key,
                       loaded.verification_hash, loaded.salt,
                       expected_updated_at=loaded.updated_at)
