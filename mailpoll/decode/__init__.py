"""Message decoding.

Parses raw RFC 822 messages and turns them into flat EventRecords:
selected body text, normalized headers and attachment metadata.
"""

from mailpoll.decode.decoder import MailDecoder, decode_message
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

__all__ = [
    "MailDecoder",
    "decode_message",
    "parse_message",
    "decode_header",
    "decode_body_part",
    "transcode_to_utf8",
    "Attachment",
    "BodyPart",
    "EventRecord",
    "HeaderEntry",
    "ParsedMessage",
]
