"""Data models for message decoding."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class HeaderEntry:
    """A single header field as it appeared in the message.

    The name keeps its original casing; ``value`` is the raw, still
    encoded header text.
    """

    name: str
    value: str


@dataclass(frozen=True)
class BodyPart:
    """One node of a message's MIME tree."""

    content_type: str  # Full Content-Type value, parameters included
    mime_type: str  # e.g. "text/plain"
    disposition: str | None = None  # "attachment", "inline" or None
    filename: str | None = None
    transfer_encoding: str | None = None  # lowercased, None when absent
    charset: str | None = None
    payload: bytes = b""  # transfer-decoded content, empty for containers
    parts: tuple["BodyPart", ...] = ()

    @property
    def is_attachment(self) -> bool:
        """Explicit attachment disposition, or any named part not marked inline."""
        if self.disposition == "attachment":
            return True
        return bool(self.filename) and self.disposition != "inline"

    def walk(self) -> Iterator["BodyPart"]:
        """Yield this part's descendants in document order."""
        for part in self.parts:
            yield part
            yield from part.walk()


@dataclass(frozen=True)
class ParsedMessage:
    """An immutable view of a parsed RFC 822 message.

    ``parts`` is empty for single-part messages, whose content is then in
    ``body``.
    """

    headers: tuple[HeaderEntry, ...]
    date: datetime | None = None
    content_type: str = "text/plain"
    body: bytes = b""
    charset: str | None = None
    parts: tuple[BodyPart, ...] = ()
    message_id: str | None = None

    @property
    def is_multipart(self) -> bool:
        return bool(self.parts)

    def walk(self) -> Iterator[BodyPart]:
        """Yield every body part in document order, depth first."""
        for part in self.parts:
            yield part
            yield from part.walk()

    def attachments(self) -> list[BodyPart]:
        return [part for part in self.walk() if part.is_attachment]


@dataclass(frozen=True)
class Attachment:
    """Attachment metadata carried by an event record."""

    filename: str
    data: str | None = None  # Only set when attachments are saved

    def to_dict(self) -> dict[str, str]:
        result = {"filename": self.filename}
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass(frozen=True)
class EventRecord:
    """A decoded message, ready for the downstream sink.

    ``fields`` holds the top-level event fields (flat headers or a nested
    header namespace, plus any added fields); ``metadata`` holds the
    "@metadata" namespace that serializers may strip.
    """

    message: str
    timestamp: datetime
    fields: dict[str, Any] = field(default_factory=dict)
    attachments: tuple[Attachment, ...] = ()
    tags: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "message": self.message,
            "@timestamp": self.timestamp.isoformat(),
        }
        result.update(self.fields)
        if self.attachments:
            result["attachments"] = [a.to_dict() for a in self.attachments]
        if self.tags:
            result["tags"] = list(self.tags)
        if self.metadata:
            result["@metadata"] = self.metadata
        return result
