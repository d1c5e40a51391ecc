"""RFC 822 parsing and text decoding helpers.

Turns raw message bytes into immutable ParsedMessage values using
Python's email package, and provides the header/body decoding used when
building event records.
"""

import codecs
import re
from datetime import datetime, timezone
from email import policy
from email.errors import HeaderParseError
from email.header import Header
from email.header import decode_header as _decode_header_chunks
from email.message import Message
from email.parser import BytesParser
from email.utils import parsedate_to_datetime

from mailpoll.decode.models import BodyPart, HeaderEntry, ParsedMessage

__all__ = [
    "parse_message",
    "decode_header",
    "decode_body_part",
    "transcode_to_utf8",
]

# Charsets that name "unknown" rather than a real codec
_UNKNOWN_CHARSETS = {"unknown-8bit", "x-unknown", "unknown"}

_FOLD_RE = re.compile(r"\r?\n(?=[ \t])")


def parse_message(raw: bytes) -> ParsedMessage:
    """Parse raw RFC 822 bytes into a ParsedMessage.

    Args:
        raw: The message exactly as fetched from the server.

    Returns:
        ParsedMessage with raw headers, date and the MIME part tree.
    """
    # BytesParser with the default (compat32) policy handles
    # real-world malformed emails better than the "email" policy.
    parser = BytesParser(policy=policy.compat32)
    msg = parser.parsebytes(raw)

    headers = tuple(
        HeaderEntry(name=str(name), value=_header_text(value))
        for name, value in msg.raw_items()
    )

    date_value = next(
        (h.value for h in headers if h.name.lower() == "date"), None
    )
    message_id = next(
        (h.value.strip() for h in headers if h.name.lower() == "message-id"), None
    )

    if _is_container(msg):
        parts = tuple(_build_part(sub) for sub in msg.get_payload())
        body = b""
    else:
        parts = ()
        body = _payload_bytes(msg)

    return ParsedMessage(
        headers=headers,
        date=_parse_date(date_value),
        content_type=_header_text(msg.get("Content-Type", "")) or msg.get_content_type(),
        body=body,
        charset=msg.get_content_charset(),
        parts=parts,
        message_id=message_id,
    )


def decode_header(value: str) -> str:
    """Decode RFC 2047 encoded-words in a header value.

    Folded lines are joined first. Text outside encoded-words is returned
    as is; call transcode_to_utf8 on the result to clean up stray 8-bit
    bytes.

    Example:
        decode_header("=?iso-8859-1?Q?foo_:_bar?=")  # "foo : bar"
    """
    value = _FOLD_RE.sub("", value)
    try:
        chunks = _decode_header_chunks(value)
    except HeaderParseError:
        return value

    pieces = []
    for chunk, charset in chunks:
        if isinstance(chunk, bytes):
            pieces.append(transcode_to_utf8(chunk, charset))
        else:
            pieces.append(chunk)
    return "".join(pieces)


def transcode_to_utf8(value: str | bytes | None, charset: str | None = None) -> str | None:
    """Return ``value`` as clean text, replacing undecodable sequences.

    Bytes are decoded with ``charset`` (UTF-8 when unknown). Strings may
    carry raw 8-bit header bytes as surrogate escapes; those are
    reinterpreted as UTF-8.
    """
    if value is None:
        return None

    if isinstance(value, bytes):
        return value.decode(_codec_name(charset), "replace")

    try:
        value.encode("utf-8")
        return value
    except UnicodeEncodeError:
        pass

    try:
        raw = value.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        raw = value.encode("utf-8", "replace")
    return raw.decode("utf-8", "replace")


def decode_body_part(part: BodyPart | ParsedMessage) -> str:
    """Decode a leaf part (or a single-part message) to text."""
    if isinstance(part, ParsedMessage):
        return transcode_to_utf8(part.body, part.charset)
    return transcode_to_utf8(part.payload, part.charset)


def _build_part(msg: Message) -> BodyPart:
    """Convert one email.message.Message node into a BodyPart."""
    filename = msg.get_filename()
    if filename:
        filename = transcode_to_utf8(decode_header(_header_text(filename)))

    encoding = msg.get("Content-Transfer-Encoding")
    if encoding is not None:
        encoding = _header_text(encoding).strip().lower() or None

    if _is_container(msg):
        children = tuple(_build_part(sub) for sub in msg.get_payload())
        payload = b""
    else:
        children = ()
        payload = _payload_bytes(msg)

    return BodyPart(
        content_type=_header_text(msg.get("Content-Type", "")) or msg.get_content_type(),
        mime_type=msg.get_content_type(),
        disposition=msg.get_content_disposition(),
        filename=filename,
        transfer_encoding=encoding,
        charset=msg.get_content_charset(),
        payload=payload,
        parts=children,
    )


def _is_container(msg: Message) -> bool:
    # message/rfc822 parts are multipart in the email package's model,
    # but are kept as leaves carrying the serialized inner message.
    return msg.is_multipart() and msg.get_content_maintype() == "multipart"


def _payload_bytes(msg: Message) -> bytes:
    """Return the transfer-decoded payload of a leaf part."""
    if msg.is_multipart():
        return b"".join(sub.as_bytes() for sub in msg.get_payload())
    payload = msg.get_payload(decode=True)
    return payload or b""


def _header_text(value: str | Header) -> str:
    if isinstance(value, Header):
        return str(value)
    return value


def _parse_date(value: str | None) -> datetime | None:
    """Parse an RFC 2822 date, treating zone-less dates as UTC."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _codec_name(charset: str | None) -> str:
    if not charset or charset.lower() in _UNKNOWN_CHARSETS:
        return "utf-8"
    try:
        return codecs.lookup(charset).name
    except LookupError:
        return "utf-8"
