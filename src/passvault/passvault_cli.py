"""
PassVault - a local, encrypted password vault for the terminal
"""
# ==============================================================
# Standard imports
# ==============================================================
import sys
import atexit
import logging
from pathlib import Path

# ==============================================================
# Other imports
# ==============================================================
import pendulum

from passvault.config.config_vault import CLIPBOARD_TIMEOUT, PASS_DEFAULTS, SEP_SM, VAULT_FILE
from passvault.config.logging_config import setup_logging
from passvault.utils.Entry import Entry
from passvault.utils.clipboard_utils import clear_clipboard, copy_to_clipboard
from passvault.utils.display_utils import (
    display_entry, filter_entries, print_entry_table, resolve_entry, wipe_terminal,
)
from passvault.utils.errors import (
    AuthenticationFailed, CorruptVault, EntryNotFound, NoActiveSession, VaultError,
    VaultIOError,
)
from passvault.utils.password_generator import ask_password, generate_passwords
from passvault.utils.password_utils import print_strength
from passvault.utils.session import Session, SessionManager
from passvault.utils.user_input import (
    ask_yes_no, confirm_delete, get_custom_fields, get_int, get_note_from_user,
    parse_tags, prompt_master_password,
)
from passvault.utils.vault_utils import create_vault, vault_exists

logger = logging.getLogger(__name__)

MAX_UNLOCK_ATTEMPTS = 3


# ==============================================================
# Functions
# ==============================================================

def report_error(e: VaultError) -> None:
    """Print a vault error on one line and log it with a timestamp."""
    print(f"\n Error: {e}")
    logger.error("[%s] %s: %s", pendulum.now().to_iso8601_string(), type(e).__name__, e)


def unlock(manager: SessionManager, path: Path) -> Session | None:
    """
    Open the vault, creating it on first run.

    Returns:
        The new session, or None if the user gave up or the vault
        cannot be opened.
    """
    if not vault_exists(path):
        print(f" No vault found at {path}. Creating a new one.")
        master_pw = prompt_master_password(confirm=True)
        if master_pw is None:
            return None
        create_vault(master_pw, path)
        print(" Vault created.")
        return manager.open_session(master_pw, path)

    for _ in range(MAX_UNLOCK_ATTEMPTS):
        master_pw = prompt_master_password()
        if master_pw is None:
            continue
        try:
            return manager.open_session(master_pw, path)
        except AuthenticationFailed as e:
            print(f" {e}")

    print(" Too many failed attempts.")
    return None


def add_entry(manager: SessionManager) -> str | None:
    """Ask for the fields of a new entry, store and save it. Returns its id."""
    title = input("Title (required): ").strip()
    if not title:
        print(" Title cannot be empty!")
        return None

    username = input("Username: ").strip()
    password = ask_password("New password")
    if password is None:
        return None
    url = input("URL: ").strip()
    notes = get_note_from_user("Notes:")
    tags = parse_tags(input("Tags (comma separated): "))
    custom = get_custom_fields() if ask_yes_no(" Add custom fields?") else {}

    entry = Entry(title, username=username, password=password, url=url,
                  notes=notes, tags=tags, custom=custom)

    session = manager.require_session()
    session.add_entry(entry)
    session.persist()
    print(f"\n Entry '{entry.title}' added.")
    return entry.id


def edit_entry(manager: SessionManager, entry_id: str) -> None:
    """
    Interactive editor for one entry.

    Changes are made on a copy and only stored and saved on 's'.
    """
    entry = manager.require_session().get_entry(entry_id)

    while True:
        display_entry(entry)
        print(
            f"\n--- Editing Menu --- \n"
            f"   1. Title        5. Notes \n"
            f"   2. Username     6. Tags \n"
            f"   3. Password     7. Custom fields \n"
            f"   4. URL \n"
            f"   S. Save         X. Discard changes"
        )
        choice = input(" > ").strip().lower()

        if choice == "1":
            new_title = input(f"New title [{entry.title}]: ").strip()
            if new_title:
                entry.title = new_title
        elif choice == "2":
            entry.username = input(f"New username [{entry.username}]: ").strip()
        elif choice == "3":
            new_pw = ask_password("New password")
            if new_pw is not None:
                entry.password = new_pw
                print_strength(new_pw)
        elif choice == "4":
            entry.url = input(f"New URL [{entry.url}]: ").strip()
        elif choice == "5":
            if entry.notes:
                print(SEP_SM)
                print(entry.notes)
                print(SEP_SM)
            entry.notes = get_note_from_user()
        elif choice == "6":
            entry.tags = parse_tags(input(f"Tags [{', '.join(entry.tags)}]: "))
        elif choice == "7":
            entry.custom = get_custom_fields(entry.custom)
        elif choice == "s":
            session = manager.require_session()
            session.update_entry(entry)
            session.persist()
            print("\n Entry updated and saved.")
            return
        elif choice == "x":
            print(" All changes discarded.")
            return
        else:
            print("   Invalid option")


def entry_menu(manager: SessionManager, entry_id: str) -> None:
    """
    Actions on one entry: show, copy, edit, delete, strength check.

    Showing an entry counts as an access and is saved.
    """
    while True:
        session = manager.require_session()
        entry = session.touch_entry(entry_id)
        session.persist()
        display_entry(entry)

        print(f"\n--- Entry Menu ---\n"
              f"(S) Show Password    (C) Copy Password\n"
              f"(U) Copy Username    (P) Password Strength\n"
              f"(E) Edit Entry       (D) Delete Entry\n"
              f"(Enter) Main Menu",
              end="\n > ")
        choice = input().strip().lower()

        if choice == "s":
            display_entry(entry, show_pass=True)
            input(" Press Enter to hide ")
            wipe_terminal()
        elif choice == "c":
            copy_to_clipboard(entry.password, timeout=CLIPBOARD_TIMEOUT)
        elif choice == "u":
            copy_to_clipboard(entry.username, timeout=0)
        elif choice == "p":
            print_strength(entry.password)
        elif choice == "e":
            edit_entry(manager, entry_id)
        elif choice == "d":
            if confirm_delete(entry.title):
                session = manager.require_session()
                session.delete_entry(entry_id)
                session.persist()
                print(" Entry deleted.")
                return
            print(" Delete cancelled.")
        elif choice in {"", "q"}:
            return
        else:
            print(" Invalid Choice")


def find_entry(manager: SessionManager) -> None:
    """List entries, optionally filtered, and open the one the user picks."""
    query = input(" Search (Enter for all): ").strip()
    entries = filter_entries(manager.require_session().list_entries(), query)
    shown = print_entry_table(entries)
    if not shown:
        return

    selector = input("\n Select entry by # or ID (Enter to go back): ").strip()
    if not selector:
        return
    entry = resolve_entry(shown, selector)
    if entry is None:
        print(f" No entry '{selector}'")
        return
    entry_menu(manager, entry.id)


def generate_menu() -> None:
    """Print freshly generated passwords, optionally copying the first."""
    count = get_int(" How many? (Enter for 1): ", default=1)
    if count is None:
        return
    length = get_int(f" Length (Enter for {PASS_DEFAULTS['length']}): ",
                     default=PASS_DEFAULTS["length"])
    if length is None:
        return

    try:
        passwords = generate_passwords(count, length=length)
    except ValueError as e:
        print(f" {e}")
        return

    for i, pw in enumerate(passwords, start=1):
        print(f" {i:>2}. {pw}")
    if ask_yes_no(" Copy the first one to the clipboard?"):
        copy_to_clipboard(passwords[0])


# ==============================================================
# MAIN
# ==============================================================
def run(manager: SessionManager, path: Path) -> int:
    """Menu loop. Returns the process exit code."""
    while True:
        session = manager.current_session()
        if session is None:
            print("\n Vault is locked.")
            try:
                session = unlock(manager, path)
            except (CorruptVault, VaultIOError) as e:
                report_error(e)
                return 1
            if session is None:
                return 1

        print("\n--- Main Menu ---")
        print("\n 1) New Entry   2) Find Entry   3) Generate Password"
              "\n 8) Lock        9) Quit")
        choice = input(" > ").strip()

        try:
            if choice == "1":
                entry_id = add_entry(manager)
                if entry_id is not None:
                    entry_menu(manager, entry_id)
            elif choice == "2":
                find_entry(manager)
            elif choice == "3":
                generate_menu()
            elif choice == "8":
                manager.close_session()
                wipe_terminal()
            elif choice == "9":
                print("Goodbye!")
                return 0
            else:
                print("Invalid Choice")
        except NoActiveSession as e:
            # locked or timed out mid-action; the loop unlocks again
            print(f"\n {e}")
        except EntryNotFound as e:
            print(f"\n {e}")
        except VaultError as e:
            report_error(e)


def main() -> int:
    setup_logging()
    path = Path(sys.argv[1]).expanduser() if len(sys.argv) > 1 else VAULT_FILE

    print("- PassVault —\n")
    manager = SessionManager()
    # Runs in reverse order: the clipboard is cleared last
    atexit.register(clear_clipboard)
    atexit.register(manager.close_session)

    try:
        return run(manager, path)
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye!")
        return 0
    except VaultError as e:
        report_error(e)
        return 1
    finally:
        manager.close_session()


if __name__ == "__main__":
    sys.exit(main())
