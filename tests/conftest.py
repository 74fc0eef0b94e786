"""
Shared pytest fixtures for the PassVault test suite.

Autouse fixtures below keep the suite fast and isolated:
  - Argon2 cost parameters -> minimum values (real derivation, tiny cost)
  - Vault path             -> temp directory (never touches ~/.config)
"""
from datetime import timedelta

import pendulum
import pytest

from passvault.config import config_vault as cfg
from passvault.utils.session import SessionManager
from passvault.utils.vault_utils import create_vault


MASTER_PW = "Correct-Horse-1"


class FakeClock:
    """Controllable clock returning UTC pendulum DateTimes."""

    def __init__(self, start=None):
        self.now = start or pendulum.now("UTC")

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _fast_argon2(monkeypatch):
    """Lower both Argon2id configurations to the library minimum."""
    monkeypatch.setattr(cfg, "ARGON_TIME", 1)
    monkeypatch.setattr(cfg, "ARGON_MEMORY", 8)
    monkeypatch.setattr(cfg, "ARGON_PARALLELISM", 1)
    monkeypatch.setattr(cfg, "VERIFY_TIME", 1)
    monkeypatch.setattr(cfg, "VERIFY_MEMORY", 8)
    monkeypatch.setattr(cfg, "VERIFY_PARALLELISM", 1)


@pytest.fixture
def vault_path(tmp_path):
    """Vault file inside a directory that does not exist yet."""
    return tmp_path / "passvault" / "vault.json"


@pytest.fixture
def existing_vault(vault_path):
    """A freshly created, empty vault protected by MASTER_PW."""
    create_vault(MASTER_PW, vault_path)
    return vault_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    mgr = SessionManager(timeout=900, clock=clock)
    yield mgr
    mgr.close_session()
