"""Validated run configuration.

Raw options (a TOML table, CLI overrides) are checked once at startup
and turned into an immutable RunConfig that every component receives.
Any field may also come from a MAILPOLL_* environment variable, which
is how the password is usually supplied.
"""

import logging
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import (
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from mailpoll.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "MAILPOLL_"
PASSWORD_ENV_VAR = f"{ENV_PREFIX}PASSWORD"

# Older configs used a boolean instead of header_casing
LEGACY_CASING_KEY = "lowercase_headers"


class RunConfig(BaseSettings):
    """Immutable polling configuration.

    ``headers_target`` selects where header fields go: None puts them at
    the top level of the record, "" drops them, any other value is a
    dotted path (a path starting with "@metadata" lands in the record's
    metadata instead of its fields).
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    host: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)
    secure: bool = True
    verify_cert: bool = True
    # None picks 993 or 143 depending on ``secure``
    port: int = Field(None, ge=1, le=65535, validate_default=True)
    folder: str = Field("INBOX", min_length=1)
    query: str = Field("NOT SEEN", min_length=1)
    fetch_count: int = Field(50, gt=0)
    check_interval: float = Field(300, gt=0)
    flag_when_read: bool = True
    delete: bool = False
    include_body: bool = True
    content_type: str = Field("text/plain", min_length=1)
    header_casing: Literal["lowercase", "preserve"] = "lowercase"
    headers_target: str | None = None
    save_attachments: bool = False
    mail_in_attachment: bool = False
    workers: int = Field(3, gt=0)
    timeout: float = Field(30, gt=0)
    tags: tuple[str, ...] = ()
    add_field: tuple[tuple[str, str], ...] = ()

    @field_validator("host", mode="before")
    @classmethod
    def _strip_host(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("port", mode="before")
    @classmethod
    def _default_port(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return 993 if info.data.get("secure", True) else 143
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _single_tag(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("add_field", mode="before")
    @classmethod
    def _field_pairs(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return tuple((str(k), str(v)) for k, v in value.items())
        if isinstance(value, tuple):
            return value
        raise ValueError("must be a table of field = value")

    @model_validator(mode="after")
    def _warn_unverified(self) -> "RunConfig":
        if self.secure and not self.verify_cert:
            logger.warning(
                "Running IMAP without verifying the certificate may grant attackers "
                "unauthorized access to your mailbox or data"
            )
        return self

    @property
    def lowercase_headers(self) -> bool:
        return self.header_casing == "lowercase"

    def with_overrides(self, **changes: Any) -> "RunConfig":
        """Return a copy with some fields replaced (e.g. from CLI flags)."""
        return self.model_copy(update=changes)


def validate_config(options: Mapping[str, Any]) -> RunConfig:
    """Build a RunConfig from raw options.

    Missing optional values get their defaults; an empty or missing
    password falls back to the MAILPOLL_PASSWORD environment variable.

    Args:
        options: Raw option mapping, typically the [imap] table.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: Listing every missing or invalid option.
    """
    known = set(RunConfig.model_fields) | {LEGACY_CASING_KEY}
    for key in sorted(set(options) - known):
        logger.warning("Ignoring unknown option %r", key)

    values = {key: value for key, value in options.items() if key in known}
    if not values.get("password"):
        values.pop("password", None)

    problems: list[str] = []
    if LEGACY_CASING_KEY in values:
        lowercase = values.pop(LEGACY_CASING_KEY)
        if not isinstance(lowercase, bool):
            problems.append(f"{LEGACY_CASING_KEY}: Input should be a valid boolean")
        else:
            values.setdefault("header_casing", "lowercase" if lowercase else "preserve")

    try:
        config = RunConfig(**values)
    except ValidationError as e:
        raise ConfigError(problems + _describe(e)) from e

    if problems:
        raise ConfigError(problems)
    return config


def _describe(error: ValidationError) -> list[str]:
    """One readable line per validation error."""
    problems = []
    for item in error.errors():
        name = ".".join(str(part) for part in item["loc"])
        if item["type"] == "missing":
            problems.append(f"{name} is required")
        elif name:
            problems.append(f"{name}: {item['msg']}")
        else:
            problems.append(item["msg"])
    return problems
