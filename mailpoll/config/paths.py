"""Path constants and directory utilities for mailpoll config.

Follows the XDG Base Directory specification:
- Config: ~/.config/mailpoll/config.toml
- Logs: ~/.local/state/mailpoll/mailpoll.log (only when enabled)
"""

from pathlib import Path


# XDG-compliant config directory
CONFIG_DIR = Path.home() / ".config" / "mailpoll"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_LOG_FILE = Path.home() / ".local" / "state" / "mailpoll" / "mailpoll.log"


def ensure_config_dir() -> Path:
    """Create config directory if it doesn't exist.

    The directory holds the mailbox password, so it is restricted to
    the owner (700).

    Returns the config directory path.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_DIR.chmod(0o700)
    return CONFIG_DIR
