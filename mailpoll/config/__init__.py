"""Configuration management module.

Handles loading, saving, and validating the mailpoll configuration.
Config is stored at ~/.config/mailpoll/config.toml

Usage:
    from mailpoll.config import load_config, validate_config

    config = load_config()
    run_config = validate_config(config.get("imap", {}))
"""

import tomllib
from pathlib import Path

import tomli_w

from .paths import CONFIG_FILE, ensure_config_dir
from .schema import ImapConfig, MailpollConfig
from .template import CONFIG_TEMPLATE
from .validation import RunConfig, validate_config

# Re-export for convenience
__all__ = [
    "load_config",
    "save_config",
    "init_config",
    "get_imap_options",
    "set_config_value",
    "validate_config",
    "RunConfig",
    "CONFIG_FILE",
]

# Last file read, keyed by its path; one CLI invocation reads it once
_cached_config: MailpollConfig | None = None
_cached_path: Path | None = None


def load_config(
    path: Path | None = None, *, force_reload: bool = False
) -> MailpollConfig:
    """Read config.toml, or return the cached copy of the same file.

    A missing file yields an empty dict.

    Args:
        path: Config file to read. Defaults to CONFIG_FILE.
        force_reload: Read the file even if it is cached.

    Returns:
        The parsed TOML document.
    """
    global _cached_config, _cached_path

    path = path or CONFIG_FILE

    if _cached_config is not None and _cached_path == path and not force_reload:
        return _cached_config

    _cached_path = path

    if not path.exists():
        _cached_config = {}
        return _cached_config

    with open(path, "rb") as f:
        _cached_config = tomllib.load(f)

    return _cached_config


def save_config(config: MailpollConfig, path: Path | None = None) -> None:
    """Write the config as TOML, readable by the owner only.

    Args:
        config: Document to write.
        path: Config file to write. Defaults to CONFIG_FILE.
    """
    global _cached_config, _cached_path

    path = path or CONFIG_FILE
    if path == CONFIG_FILE:
        ensure_config_dir()

    with open(path, "wb") as f:
        tomli_w.dump(config, f)
    # The file may hold the mailbox password
    path.chmod(0o600)

    # What was written is now the cached config
    _cached_config = config
    _cached_path = path


def init_config(*, overwrite: bool = False) -> bool:
    """Initialize config directory and create template config file.

    Args:
        overwrite: If True, overwrite existing config file.

    Returns:
        True if config was created, False if it already existed.
    """
    ensure_config_dir()

    if CONFIG_FILE.exists() and not overwrite:
        return False

    CONFIG_FILE.write_text(CONFIG_TEMPLATE)
    CONFIG_FILE.chmod(0o600)
    return True


def get_imap_options(config: MailpollConfig) -> ImapConfig:
    """Return the [imap] table, or an empty dict when it is missing."""
    return config.get("imap", {})


def set_config_value(key: str, value: str, path: Path | None = None) -> None:
    """Set a configuration value using dot notation.

    Examples:
        set_config_value("imap.fetch_count", "100")
        set_config_value("imap.delete", "true")

    Args:
        key: Dot-separated key path (e.g., "imap.fetch_count").
        value: Value to set (will be type-converted for known fields).
        path: Config file to update. Defaults to CONFIG_FILE.

    Raises:
        ValueError: If value cannot be converted to expected type.
    """
    config = load_config(path, force_reload=True)

    *tables, field_name = key.split(".")

    table: dict = config
    for name in tables:
        table = table.setdefault(name, {})
    table[field_name] = _convert_value(field_name, value)

    save_config(config, path)


def _convert_value(key: str, value: str) -> str | int | float | bool | list[str]:
    """Convert string value to appropriate type based on field name.

    Args:
        key: The field name (last part of dot notation key).
        value: The string value from CLI.

    Returns:
        Converted value for known fields, the string otherwise.

    Raises:
        ValueError: If value cannot be converted to expected type.
    """
    int_fields = {"port", "fetch_count", "workers"}
    float_fields = {"check_interval", "timeout"}
    bool_fields = {
        "secure",
        "verify_cert",
        "flag_when_read",
        "delete",
        "include_body",
        "lowercase_headers",
        "save_attachments",
        "mail_in_attachment",
    }

    if key in int_fields:
        return int(value)

    if key in float_fields:
        number = float(value)
        return int(number) if number.is_integer() else number

    if key in bool_fields:
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise ValueError(f"{key} expects a boolean, got {value!r}")

    if key == "tags":
        return [tag.strip() for tag in value.split(",") if tag.strip()]

    # logging.file: "true" selects the default log path, anything else is a path
    if key == "file" and value.strip().lower() == "true":
        return True

    return value
