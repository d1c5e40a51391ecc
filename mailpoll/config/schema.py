"""Configuration schema definitions.

Uses TypedDict for type safety without runtime overhead.
These types match the structure of config.toml; validated values live
in RunConfig (see validation.py).
"""

from typing import TypedDict


class ImapConfig(TypedDict, total=False):
    """Mailbox polling options, the [imap] table of config.toml.

    Attributes:
        host: IMAP server host name (required).
        port: Server port; 993 when secure, 143 otherwise.
        user: Login user name (required).
        password: Login password (required, or MAILPOLL_PASSWORD).
        secure: Use implicit TLS.
        verify_cert: Verify the server certificate.
        folder: Folder to poll.
        query: IMAP SEARCH criteria, passed to the server as is.
        fetch_count: Number of messages fetched per batch.
        check_interval: Seconds to wait between polling cycles.
        flag_when_read: Flag processed messages.
        delete: Flag processed messages as Deleted instead of Seen.
        include_body: Put the message body in the record.
        content_type: Preferred body part content-type prefix.
        header_casing: "lowercase" or "preserve".
        headers_target: Where headers go; unset = top level, "" = dropped.
        save_attachments: Include attachment payloads.
        mail_in_attachment: Decode the first attachment as the message.
        workers: Number of concurrent fetch workers.
        timeout: Socket timeout in seconds.
        tags: Tags added to every record.
        add_field: Extra fields added to every record.
    """

    host: str
    port: int
    user: str
    password: str
    secure: bool
    verify_cert: bool
    folder: str
    query: str
    fetch_count: int
    check_interval: int | float
    flag_when_read: bool
    delete: bool
    include_body: bool
    content_type: str
    header_casing: str
    lowercase_headers: bool
    headers_target: str
    save_attachments: bool
    mail_in_attachment: bool
    workers: int
    timeout: int | float
    tags: list[str]
    add_field: dict[str, str]


class LoggingConfig(TypedDict, total=False):
    """Logging options, the [logging] table of config.toml.

    Attributes:
        level: Log level name (default "INFO").
        file: Path of a rotating log file, or true for the default path.
    """

    level: str
    file: str | bool


class MailpollConfig(TypedDict, total=False):
    """Root configuration structure."""

    imap: ImapConfig
    logging: LoggingConfig
