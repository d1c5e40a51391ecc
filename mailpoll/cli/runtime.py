"""Helpers shared by the run and check commands."""

from pathlib import Path
from typing import Any

import typer

from mailpoll.config import get_imap_options, load_config, validate_config
from mailpoll.config.paths import DEFAULT_LOG_FILE
from mailpoll.config.validation import RunConfig
from mailpoll.errors import ConfigError
from mailpoll.logging_cfg import setup_logging


def load_run_config(config_path: Path | None, **overrides: Any) -> RunConfig:
    """Load config.toml, configure logging and validate the [imap] table.

    CLI overrides that are None are ignored. Exits with code 1 and a
    message on stderr when the configuration is invalid.
    """
    config = load_config(config_path)

    debug = bool(overrides.pop("debug", False))
    logging_options = config.get("logging", {})
    setup_logging(
        level=logging_options.get("level", "INFO"),
        log_file=resolve_log_file(logging_options.get("file")),
        debug=debug,
    )

    options = dict(get_imap_options(config))
    options.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return validate_config(options)
    except ConfigError as e:
        typer.echo("Invalid configuration:", err=True)
        for problem in e.problems:
            typer.echo(f"  - {problem}", err=True)
        typer.echo("Run 'mailpoll config init' to create a config file.", err=True)
        raise typer.Exit(1)


def resolve_log_file(value: str | bool | None) -> Path | None:
    """Map the [logging] file option to a path.

    ``true`` selects the default log location; a string is used as given.
    """
    if value is True:
        return DEFAULT_LOG_FILE
    if not value:
        return None
    return Path(value)
