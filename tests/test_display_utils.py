"""
Tests for listing, masking and numeric entry selection.
"""
import pendulum
import pytest

from passvault.config.config_vault import MASK_LEN
from passvault.utils.Entry import Entry
from passvault.utils.display_utils import (
    display_entry, filter_entries, mask_password, print_entry_table, resolve_entry,
    sort_entries, time_ago, truncate,
)


@pytest.fixture
def entries():
    return [
        Entry("github", username="octo", url="https://github.com", tags=["dev"]),
        Entry("Bank", username="me", password="hunter2"),
        Entry("amazon", username="shopper"),
    ]


class TestMasking:

    def test_mask_does_not_leak_length(self):
        assert mask_password("a") == mask_password("a" * 40) == "*" * MASK_LEN

    def test_empty_password_not_masked(self):
        assert mask_password("") == ""

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 30, 10) == "aaaaaaa..."


class TestOrdering:

    def test_sorted_by_title_case_insensitive(self, entries):
        assert [e.title for e in sort_entries(entries)] == ["amazon", "Bank", "github"]

    def test_filter_matches_all_terms(self, entries):
        assert [e.title for e in filter_entries(entries, "git dev")] == ["github"]
        assert filter_entries(entries, "git shop") == []

    def test_empty_filter_keeps_all(self, entries):
        assert len(filter_entries(entries, "  ")) == 3


class TestResolveEntry:

    def test_by_number_uses_sorted_order(self, entries):
        assert resolve_entry(entries, "1").title == "amazon"
        assert resolve_entry(entries, "3").title == "github"

    def test_by_id(self, entries):
        target = entries[1]
        assert resolve_entry(entries, target.id) is target

    @pytest.mark.parametrize("selector", ["0", "4", "", "   ", "nope"])
    def test_no_match(self, entries, selector):
        assert resolve_entry(entries, selector) is None


class TestOutput:

    def test_time_ago(self):
        now = pendulum.datetime(2024, 1, 1, 12, 0, tz="UTC")
        assert time_ago(now.subtract(minutes=5), now) == "5 minutes ago"
        assert time_ago(now, now) == "just now"

    def test_table_is_numbered_and_masked(self, entries, capsys):
        shown = print_entry_table(entries)
        out = capsys.readouterr().out
        assert [e.title for e in shown] == ["amazon", "Bank", "github"]
        assert "hunter2" not in out
        assert "  1  amazon" in out
        assert "Total: 3 entries" in out

    def test_empty_table(self, capsys):
        assert print_entry_table([]) == []
        assert "Empty vault" in capsys.readouterr().out

    def test_details_mask_password_unless_revealed(self, entries, capsys):
        display_entry(entries[1])
        assert "hunter2" not in capsys.readouterr().out
        display_entry(entries[1], show_pass=True)
        assert "hunter2" in capsys.readouterr().out
