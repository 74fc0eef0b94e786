# config_vault.py
"""
Configuration constants
"""
import os
import sys
from pathlib import Path

# ==============================================================
# Vault settings
# ==============================================================
# Software version
VERSION = "1.0.0"

# On-disk container format. Bump only with a migration path.
FORMAT_VERSION = "1.0.0"
SUPPORTED_FORMATS = ("1.0.0",)

# Decrypted payload schema
SCHEMA_VERSION = 1

# Where the vault lives
if sys.platform == "win32":
    CONFIG_DIR = Path(os.environ.get("APPDATA", Path.home())) / "passvault"
else:
    CONFIG_DIR = Path.home() / ".config" / "passvault"
VAULT_FILE = CONFIG_DIR / "vault.json"

# Length of generated random salt
SALT_LEN = 32
MIN_SALT_LEN = 16

# Argon2id parameters for the encryption key
# Changing these will invalidate existing vaults!
ARGON_TIME = 3             # Iterations - controls CPU cost
ARGON_MEMORY = 64 * 1024   # 64 MiB - controls RAM cost
ARGON_PARALLELISM = 4
KEY_LEN = 32               # bytes - ChaCha20Poly1305 key size - DO NOT CHANGE

# Argon2id parameters for the master password verification hash.
# Stored inside the hash itself, safe to change.
VERIFY_TIME = 2
VERIFY_MEMORY = 32 * 1024  # 32 MiB
VERIFY_PARALLELISM = 2

# ChaCha20Poly1305 nonce and tag length. DO NOT CHANGE
NONCE_LEN = 12
TAG_LEN = 16

# ==============================================================
# Session settings
# ==============================================================
# Seconds of inactivity before the decrypted vault is dropped
SESSION_TIMEOUT = 15 * 60

# ==============================================================
# Password generation defaults
# ==============================================================
PASS_DEFAULTS = {
    "length": 16,                    # Default generated password length
    "min_length": 4,                 # Shortest password the generator builds
    "lower": True,
    "upper": True,
    "digits": True,
    "symbols": True,
    "exclude_ambiguous": True,
    "max_consecutive": 3,            # Reject "aaaa", "1111", etc.
    "ambiguous_chars": "0O1lI|",
    "symbols_pool": "!@#$%^&*()_+-=[]{}|;:,.<>?",
    "max_count": 50,                 # Most passwords generated in one go
}

# ==============================================================
# Clipboard security
# ==============================================================
CLIPBOARD_TIMEOUT = 30               # Seconds before auto-clear

# ==============================================================
# Display & formatting
# ==============================================================
UTF8 = "utf-8"
DT_FORMAT = "YYYY-MM-DD HH:mm:ss"
MASK_LEN = 8
TITLE_LEN = 20
USERNAME_LEN = 20
URL_LEN = 30
CLEAR_SCREEN = True

# ==============================================================
# System Constants
# ==============================================================
# Raw bytes in an entry id
EID_LEN = 16

# Errors only, unless overridden locally
LOG_FILE = CONFIG_DIR / "error.log"

# separator
SEP_LG = "=" * 60
SEP_SM = "-" * 60


def ensure_config_dir(path: Path = CONFIG_DIR) -> Path:
    """Create the configuration directory, owner access only."""
    path = Path(path)
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return path


# ==============================================================
# Optional: local overrides
# Drop a config_local.py next to this file to change defaults
# ==============================================================
try:
    from passvault.config.config_local import *
except ImportError:
    pass  # No local config - use defaults above
