import logging
import os
import sys
import traceback
from pathlib import Path

import pendulum

from passvault.config.config_vault import LOG_FILE, ensure_config_dir

logger = logging.getLogger("passvault")


def setup_logging(log_file: Path | str = LOG_FILE, level: int = logging.ERROR) -> None:
    """
    Send passvault log records to the error log and hook uncaught exceptions.

    Only the first call configures anything; later calls are no-ops so the
    CLI and tests can both call it freely.

    Args:
        log_file: Destination file. Its directory is created owner-only.
        level: Minimum level written to the file.
    """
    if logger.handlers:
        return  # already configured

    log_file = Path(log_file)
    ensure_config_dir(log_file.parent)

    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)

    sys.excepthook = log_uncaught_exceptions


def log_uncaught_exceptions(exctype, value, tb):
    """
    Write a condensed, newest-frame-first traceback to the log.

    Only file names and line numbers are kept. Locals are never
    rendered, so secrets held in frames cannot leak into the log.
    """
    stamp = pendulum.now().to_iso8601_string()

    frames = [
        f'  {os.path.basename(frame.filename)}:{frame.lineno} in {frame.name}'
        for frame in traceback.extract_tb(tb)
    ]
    frames.reverse()
    summary = "\n".join(frames) or "  <no traceback>"

    logger.error(
        "[%s] Uncaught %s: %s\n%s\n", stamp, exctype.__name__, value, summary
    )

    print("\nError! Something went wrong.", file=sys.stderr)
    print(f"Details saved to {LOG_FILE}\n", file=sys.stderr)
