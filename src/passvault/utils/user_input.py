import re
import getpass
from typing import Dict, List

from passvault.config.config_vault import PASS_DEFAULTS


def get_int(prompt: str, default=None, reprompt=True):
    """
    Prompt the user until a valid positive integer is entered.

    Allows the user to press Enter to accept a default value if provided.

    Args:
        prompt: Text displayed to the user.
        default: Value returned if the user submits empty input. If None,
            the prompt repeats until a valid integer is entered.
        reprompt: If False, bypasses user input and returns the default.

    Returns:
        The integer entered, the default, or None if the user enters 'q'.
    """
    while True:
        val = input(prompt).strip() if reprompt else default

        if not val and default is not None:
            return default
        if isinstance(val, int):
            return val
        if re.fullmatch(r"[0-9]+", val):
            return int(val)
        if val == 'q':
            return None

        print("   Invalid — numbers only  (q) to quit")


def ask_yes_no(prompt: str, default: bool = False) -> bool:
    """Ask a y/n question. Enter returns the default."""
    hint = "Y/n" if default else "y/N"
    answer = input(f"{prompt} ({hint}): ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def confirm_delete(title: str) -> bool:
    """
    Two-step confirmation before a destructive action.

    The user must answer 'y' and then type the entry title exactly.
    """
    if not ask_yes_no(f" Delete '{title}'? This cannot be undone."):
        return False
    typed = input(" Type the title to confirm: ").strip()
    return typed == title


def prompt_master_password(confirm: bool = False) -> str | None:
    """
    Read the master password without echo.

    Args:
        confirm: Ask twice and require both to match (vault creation).

    Returns:
        The password, or None if it was empty or the confirmation failed.
    """
    pw = getpass.getpass(" Master password: ")
    if not pw:
        print(" Master password cannot be empty.")
        return None

    if confirm:
        if len(pw) < PASS_DEFAULTS["min_length"]:
            print(f" Use at least {PASS_DEFAULTS['min_length']} characters.")
            return None
        if getpass.getpass(" Confirm master password: ") != pw:
            print(" Passwords do not match.")
            return None
    return pw


def get_note_from_user(prompt: str = "Enter note:") -> str:
    """
    Prompt the user to enter a multi-line note.

    Input continues until the user presses Enter three times consecutively.
    Pressing Enter once immediately will result in an empty note.

    Returns:
        The note with line breaks kept, or an empty string.
    """
    print(f"{prompt} (Enter 3x to end or 1x to leave empty)")
    lines = []
    consecutive_empty = 0

    while True:
        line = input()
        if line == "":
            consecutive_empty += 1
            if consecutive_empty >= 3 or (consecutive_empty == 1 and not lines):
                break
        else:
            # keep single blank lines inside the note
            lines.extend([""] * consecutive_empty)
            consecutive_empty = 0
            lines.append(line)

    return "\n".join(lines).strip()


def parse_tags(text: str) -> List[str]:
    """Split a comma separated tag list, dropping blanks and duplicates."""
    tags = []
    for tag in text.split(","):
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def get_custom_fields(existing: Dict[str, str] | None = None) -> Dict[str, str]:
    """
    Collect key=value custom fields until an empty line.

    An entry of `key=` removes that key.
    """
    fields = dict(existing or {})
    print(" Custom fields as key=value (Enter on empty line to finish)")
    while True:
        line = input("  ").strip()
        if not line:
            return fields
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            print("   Use the form key=value")
            continue
        if value.strip():
            fields[key] = value.strip()
        else:
            fields.pop(key, None)
