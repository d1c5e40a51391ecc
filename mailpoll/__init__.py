"""mailpoll - poll an IMAP mailbox and emit decoded messages as events."""

__version__ = "0.1.0"
