import time
import logging
import threading

import pyperclip

from passvault.config.config_vault import CLIPBOARD_TIMEOUT

logger = logging.getLogger(__name__)

# What we last put on the clipboard, so auto-clear never wipes
# something the user copied afterwards.
_last_copied: str | None = None
_clip_lock = threading.Lock()


def copy_to_clipboard(text: str, timeout: int = CLIPBOARD_TIMEOUT) -> bool:
    """
    Copy sensitive text to the system clipboard with auto-clear.

    A background daemon thread clears the clipboard after `timeout`
    seconds, unless the clipboard content changed in the meantime.

    Args:
        text: Text to copy.
        timeout: Seconds before the clipboard is cleared. 0 or less
            disables auto-clear.

    Returns:
        True if the text was copied, False if there was nothing to copy
        or no clipboard is available.
    """
    global _last_copied

    if not text:
        print(" Nothing to copy.")
        return False

    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        print(" Clipboard not available on this system.")
        logger.warning("Clipboard copy failed: %s", e)
        return False

    with _clip_lock:
        _last_copied = text

    print(" Copied!" + (f" (auto-clears in {timeout}s)" if timeout > 0 else ""), flush=True)

    if timeout > 0:
        def auto_clear():
            time.sleep(timeout)
            clear_clipboard(only_if=text)

        threading.Thread(target=auto_clear, daemon=True).start()
    return True


def clear_clipboard(only_if: str | None = None) -> None:
    """
    Empty the clipboard if it still holds what this process copied.

    Args:
        only_if: Clear only if the clipboard still holds this text. By
            default, the last text copied by copy_to_clipboard.
    """
    global _last_copied

    with _clip_lock:
        expected = only_if if only_if is not None else _last_copied
        if expected is None:
            return
        try:
            if pyperclip.paste() == expected:
                pyperclip.copy("")
        except pyperclip.PyperclipException as e:
            logger.warning("Clipboard clear failed: %s", e)
            return
        if expected == _last_copied:
            _last_copied = None
