"""Turn parsed messages into flat event records.

Body selection, header normalization, attachment extraction and record
decoration all happen here. Nothing in this module does I/O.
"""

import base64
import logging
import re
from datetime import datetime, timezone
from typing import Any

from mailpoll.config.validation import RunConfig
from mailpoll.decode.mime import (
    decode_body_part,
    decode_header,
    parse_message,
    transcode_to_utf8,
)
from mailpoll.decode.models import (
    Attachment,
    BodyPart,
    EventRecord,
    HeaderEntry,
    ParsedMessage,
)
from mailpoll.errors import DecodeError

logger = logging.getLogger(__name__)

# Transfer encodings whose decoded payload is already text
TEXT_TRANSFER_ENCODINGS = (None, "7bit", "8bit")

METADATA_ROOT = "@metadata"

HeaderValue = str | list[str]


class MailDecoder:
    """Decodes ParsedMessage values into EventRecords for one RunConfig.

    Example:
        decoder = MailDecoder(config)
        record = decoder.decode(parse_message(raw_bytes))
    """

    def __init__(self, config: RunConfig):
        self._config = config

    def decode(self, message: ParsedMessage) -> EventRecord:
        """Build the event record for a message.

        With mail-in-attachment enabled, the first attachment is parsed
        as a message and decoded instead of the outer message.
        """
        config = self._config
        logger.debug("Working with message_id %s", message.message_id)

        if config.mail_in_attachment:
            inner = self._unwrap(message)
            if inner is not None:
                single_level = config.with_overrides(mail_in_attachment=False)
                return MailDecoder(single_level).decode(inner)

        body = select_body(message, config.content_type) if config.include_body else ""
        headers = normalize_headers(message.headers, config.lowercase_headers)

        fields: dict[str, Any] = {}
        metadata: dict[str, Any] = {}
        _place_headers(headers, config.headers_target, fields, metadata)

        for name, value in config.add_field:
            fields.setdefault(name, value)

        return EventRecord(
            message=body,
            timestamp=message.date or datetime.now(timezone.utc),
            fields=fields,
            attachments=tuple(
                extract_attachments(message, save=config.save_attachments)
            ),
            tags=config.tags,
            metadata=metadata,
        )

    def decode_raw(self, raw: bytes) -> EventRecord:
        """Parse and decode raw message bytes.

        Raises:
            DecodeError: If the message cannot be decoded.
        """
        try:
            return self.decode(parse_message(raw))
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Cannot decode message: {e}") from e

    def _unwrap(self, message: ParsedMessage) -> ParsedMessage | None:
        attachments = message.attachments()
        if not attachments:
            logger.debug(
                "No attachment in message_id %s, decoding outer message",
                message.message_id,
            )
            return None
        return parse_message(attachments[0].payload)


def decode_message(message: ParsedMessage, config: RunConfig) -> EventRecord:
    """Decode a parsed message with the given configuration."""
    return MailDecoder(config).decode(message)


def select_body(message: ParsedMessage, content_type: str) -> str:
    """Pick and decode the part used as the record's message text.

    Single-part messages use their body. Multipart messages use the first
    top-level part whose Content-Type starts with ``content_type``
    (falling back to the first part), descending once into a
    multipart/alternative wrapper.
    """
    if not message.is_multipart:
        return decode_body_part(message)

    part = next(
        (p for p in message.parts if p.content_type.startswith(content_type)),
        message.parts[0],
    )
    if part.mime_type == "multipart/alternative" and part.parts:
        part = part.parts[0]
    return decode_body_part(part)


def normalize_headers(
    headers: tuple[HeaderEntry, ...] | list[HeaderEntry], lowercase: bool = True
) -> dict[str, HeaderValue]:
    """Decode headers into a name -> value mapping.

    Repeated names collect their values into a list, in message order.
    The Date header is left out; it becomes the record timestamp.
    """
    fields: dict[str, HeaderValue] = {}
    for header in headers:
        if header.name.lower() == "date":
            continue

        name = header.name.lower() if lowercase else header.name
        value = transcode_to_utf8(decode_header(header.value))

        if name in fields:
            existing = fields[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                fields[name] = [existing, value]
        else:
            fields[name] = value
    return fields


def extract_attachments(message: ParsedMessage, save: bool = False) -> list[Attachment]:
    """List the message's attachments in document order."""
    attachments = []
    for part in message.attachments():
        data = _attachment_data(part) if save else None
        attachments.append(Attachment(filename=part.filename or "unnamed", data=data))
    return attachments


def _attachment_data(part: BodyPart) -> str:
    # Text sent without transfer encoding is kept as is
    if part.transfer_encoding in TEXT_TRANSFER_ENCODINGS:
        return transcode_to_utf8(part.payload, part.charset)
    return base64.b64encode(part.payload).decode("ascii")


def _place_headers(
    headers: dict[str, HeaderValue],
    target: str | None,
    fields: dict[str, Any],
    metadata: dict[str, Any],
) -> None:
    """Put headers where ``target`` says: top level, nested, or nowhere."""
    if target is None:
        fields.update(headers)
        return

    path = _split_target(target)
    if not path:
        return

    container = fields
    if path[0] == METADATA_ROOT:
        container = metadata
        path = path[1:]
        if not path:
            metadata.update(headers)
            return

    for key in path[:-1]:
        container = container.setdefault(key, {})
    container[path[-1]] = headers


def _split_target(target: str) -> list[str]:
    """Split "a.b" or "[a][b]" field references into keys."""
    target = target.strip()
    if target.startswith("["):
        return re.findall(r"\[([^\[\]]+)\]", target)
    return [key for key in target.split(".") if key]
