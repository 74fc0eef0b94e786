import os
from typing import List, Sequence

import pendulum
from pendulum import DateTime

from passvault.config.config_vault import (
    CLEAR_SCREEN, DT_FORMAT, MASK_LEN, SEP_LG, SEP_SM, TITLE_LEN, URL_LEN, USERNAME_LEN,
)
from passvault.utils.Entry import Entry


def mask_password(password: str) -> str:
    """Fixed-width mask, so the length of the password is not revealed."""
    return "*" * MASK_LEN if password else ""


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[:width - 3] + "..."


def format_time(dt: DateTime) -> str:
    """Local wall-clock time in DT_FORMAT."""
    return dt.in_timezone(pendulum.local_timezone()).format(DT_FORMAT)


def time_ago(dt: DateTime, now: DateTime | None = None) -> str:
    """Human readable age of a timestamp, e.g. '5 minutes ago'."""
    now = now or pendulum.now("UTC")
    if dt >= now:
        return "just now"
    return f"{dt.diff_for_humans(now, absolute=True)} ago"


def sort_entries(entries: Sequence[Entry]) -> List[Entry]:
    """Order entries for display: case-insensitive title, then username."""
    return sorted(entries, key=lambda e: (e.title.lower(), e.username.lower(), e.id))


def filter_entries(entries: Sequence[Entry], query: str = "") -> List[Entry]:
    """
    Keep entries matching every whitespace separated term of the query.

    Title, username, URL and tags are searched, case-insensitively.
    An empty query keeps everything.
    """
    terms = query.lower().split()
    if not terms:
        return list(entries)

    matches = []
    for entry in entries:
        haystack = " ".join([entry.title, entry.username, entry.url, *entry.tags]).lower()
        if all(term in haystack for term in terms):
            matches.append(entry)
    return matches


def resolve_entry(entries: Sequence[Entry], selector: str) -> Entry | None:
    """
    Find an entry by id or by its 1-based number in the sorted listing.

    Numbers are only meaningful against the listing the user just saw;
    they shift as entries are added or removed.

    Args:
        entries: Snapshot of the entries, in any order.
        selector: An entry id, or a number as shown by print_entry_table.

    Returns:
        The matching entry, or None.
    """
    selector = selector.strip()
    if not selector:
        return None

    for entry in entries:
        if entry.id == selector:
            return entry

    if selector.isdigit():
        ordered = sort_entries(entries)
        index = int(selector)
        if 1 <= index <= len(ordered):
            return ordered[index - 1]
    return None


def print_entry_table(entries: Sequence[Entry], now: DateTime | None = None) -> List[Entry]:
    """
    Print a numbered table of entries sorted by title.

    Passwords are always masked here.

    Returns:
        The entries in the order they were numbered.
    """
    ordered = sort_entries(entries)
    if not ordered:
        print(" Empty vault — no entries yet.")
        return ordered

    print(SEP_LG)
    print(f"{'#':>3}  {'Title':{TITLE_LEN}} {'Username':{USERNAME_LEN}} "
          f"{'URL':{URL_LEN}} Updated")
    print(SEP_LG)
    for i, entry in enumerate(ordered, start=1):
        print(f"{i:>3}  {truncate(entry.title, TITLE_LEN):{TITLE_LEN}} "
              f"{truncate(entry.username, USERNAME_LEN):{USERNAME_LEN}} "
              f"{truncate(entry.url, URL_LEN):{URL_LEN}} "
              f"{time_ago(entry.updated_at, now)}")
    print(SEP_SM)
    print(f" Total: {len(ordered)} entries")
    return ordered


def display_entry(entry: Entry, *, show_pass: bool = False) -> None:
    """
    Print one entry in detail.

    Args:
        entry: The entry to show.
        show_pass: Reveal the password instead of the mask.
    """
    print(f"\n{SEP_LG}")
    print(f"Title        : {entry.title}")
    if entry.username:
        print(f"Username     : {entry.username}")
    password = entry.password if show_pass else mask_password(entry.password)
    print(f"Password     : {password}")
    if entry.url:
        print(f"URL          : {entry.url}")
    if entry.tags:
        print(f"Tags         : {', '.join(entry.tags)}")
    for name, value in sorted(entry.custom.items()):
        print(f"{truncate(name, 12):12} : {value}")
    if entry.notes:
        print(SEP_SM)
        print(entry.notes)
    print(SEP_SM)
    print(f"ID           : {entry.id}")
    print(f"Created      : {format_time(entry.created_at)}")
    print(f"Updated      : {format_time(entry.updated_at)}")
    print(f"Accessed     : {format_time(entry.accessed_at)}")
    print(SEP_LG)


def wipe_terminal(force: bool = False) -> None:
    """Clear the terminal if CLEAR_SCREEN is set, or always when forced."""
    if CLEAR_SCREEN or force:
        os.system('cls' if os.name == 'nt' else 'clear')
