import string
import secrets
import getpass
from typing import List

from passvault.config.config_vault import PASS_DEFAULTS
from passvault.utils.user_input import ask_yes_no, get_int


def character_pools(lower: bool = PASS_DEFAULTS["lower"],
                    upper: bool = PASS_DEFAULTS["upper"],
                    digits: bool = PASS_DEFAULTS["digits"],
                    symbols: bool = PASS_DEFAULTS["symbols"],
                    exclude_ambiguous: bool = PASS_DEFAULTS["exclude_ambiguous"]) -> List[str]:
    """
    Build the character pool of every enabled class.

    Returns:
        One string per enabled class, ambiguous characters removed if
        requested. Empty if no class is enabled.
    """
    pools = []
    if lower:
        pools.append(string.ascii_lowercase)
    if upper:
        pools.append(string.ascii_uppercase)
    if digits:
        pools.append(string.digits)
    if symbols:
        pools.append(PASS_DEFAULTS["symbols_pool"])

    if exclude_ambiguous:
        exclude = PASS_DEFAULTS["ambiguous_chars"]
        pools = [''.join(c for c in pool if c not in exclude) for pool in pools]

    return pools


def random_password(length: int = PASS_DEFAULTS["length"],
                    lower: bool = PASS_DEFAULTS["lower"],
                    upper: bool = PASS_DEFAULTS["upper"],
                    digits: bool = PASS_DEFAULTS["digits"],
                    symbols: bool = PASS_DEFAULTS["symbols"],
                    exclude_ambiguous: bool = PASS_DEFAULTS["exclude_ambiguous"]) -> str:
    """
    Generate a cryptographically secure random password.

    Every enabled character class appears at least once. Randomness is
    provided by the `secrets` module.

    Args:
        length: Total length of the password, at least PASS_DEFAULTS["min_length"].
        lower: Include lowercase letters.
        upper: Include uppercase letters.
        digits: Include digits.
        symbols: Include symbols.
        exclude_ambiguous: Leave out look-alike characters (0 O 1 l I |).

    Returns:
        The generated password.

    Raises:
        ValueError: If no class is enabled or the length is too short.

    Security Notes:
        - Runs of identical characters longer than
          PASS_DEFAULTS["max_consecutive"] are broken up by reshuffling.
    """
    pools = character_pools(lower, upper, digits, symbols, exclude_ambiguous)
    if not pools:
        raise ValueError("Enable at least one character class")

    min_length = max(PASS_DEFAULTS["min_length"], len(pools))
    if length < min_length:
        raise ValueError(f"Password length must be at least {min_length}")

    all_chars = ''.join(pools)
    rng = secrets.SystemRandom()

    # One from each class, then fill
    password = [secrets.choice(pool) for pool in pools]
    password.extend(secrets.choice(all_chars) for _ in range(length - len(password)))
    rng.shuffle(password)
    pw = ''.join(password)

    max_shuffles = 1000
    shuffle_count = 0
    while max_consecutive_chars(pw) > PASS_DEFAULTS["max_consecutive"]:
        rng.shuffle(password)
        pw = ''.join(password)
        shuffle_count += 1
        if shuffle_count >= max_shuffles:
            break

    return pw


def generate_passwords(count: int = 1, **options) -> List[str]:
    """
    Generate several passwords with the same options.

    Raises:
        ValueError: If count is not between 1 and PASS_DEFAULTS["max_count"],
            or the options are rejected by random_password.
    """
    if count < 1 or count > PASS_DEFAULTS["max_count"]:
        raise ValueError(f"Count must be between 1 and {PASS_DEFAULTS['max_count']}")
    return [random_password(**options) for _ in range(count)]


def max_consecutive_chars(pw: str) -> int:
    """
    Determine the longest run of identical consecutive characters.

    Args:
        pw: Password string to analyze.

    Returns:
        Length of the longest run, 0 for an empty string.
    """
    if not pw:
        return 0

    max_run = 1
    current_run = 1
    for a, b in zip(pw, pw[1:]):
        if a == b:
            current_run += 1
            max_run = max(max_run, current_run)
        else:
            current_run = 1
    return max_run


def ask_password(prompt: str = "Password") -> str | None:
    """
    Prompt the user to type or generate a password.

    Loops until a password is accepted or the user quits.

    Returns:
        The accepted password, or None if the user quits.
    """
    min_length = PASS_DEFAULTS["min_length"]
    while True:
        print(f"\n{prompt}:")
        print(f"  • Type 'g' → generate strong {PASS_DEFAULTS['length']}-char password")
        print("  • Type 'c' → generate customizable random password")
        print("  • Type 'q' → quit")
        print("  • Press Enter to type your own")
        choice = input(" → ").strip().lower()

        if choice == "":
            pw = getpass.getpass(f"Enter password (min length = {min_length}): ")
            if len(pw) < min_length:
                print(f"  Password too short (minimum {min_length} characters)")
                continue
            return pw

        elif choice in ("g", "c"):
            try:
                pw = random_password() if choice == "g" else _custom_password()
            except ValueError as e:
                print(f"\n  {e}")
                continue
            if pw is None:
                return None

            print(f"\n Generated: {pw}")
            if not ask_yes_no("\n Accept this password?"):
                continue
            return pw

        elif choice == "q":
            return None
        else:
            print("Invalid — press Enter, 'g', 'c' or 'q'")


def _custom_password() -> str | None:
    """Ask for length and character classes, then generate. None on quit."""
    pw_len = get_int(
        f"\n  Length (minimum {PASS_DEFAULTS['min_length']}, "
        f"Enter for {PASS_DEFAULTS['length']}): ",
        default=PASS_DEFAULTS["length"],
    )
    if pw_len is None:
        return None

    return random_password(
        length=pw_len,
        lower=ask_yes_no("  Lowercase?", default=PASS_DEFAULTS["lower"]),
        upper=ask_yes_no("  Uppercase?", default=PASS_DEFAULTS["upper"]),
        digits=ask_yes_no("  Digits?", default=PASS_DEFAULTS["digits"]),
        symbols=ask_yes_no("  Symbols?", default=PASS_DEFAULTS["symbols"]),
        exclude_ambiguous=ask_yes_no("  Exclude look-alike characters?",
                                     default=PASS_DEFAULTS["exclude_ambiguous"]),
    )
