"""CLI commands module."""

from . import check, config, run

__all__ = ["run", "check", "config"]
