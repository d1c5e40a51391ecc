"""Error hierarchy for mailpoll.

Connection failures abort a whole polling cycle, protocol failures abort
a single fetch batch and decode failures skip a single message.
"""


class MailpollError(Exception):
    """Base class for all mailpoll errors."""


class MailboxConnectionError(MailpollError, ConnectionError):
    """Raised when the mailbox cannot be reached or login fails."""


class ProtocolError(MailpollError):
    """Raised when the server answers a search, fetch or store unexpectedly."""


class DecodeError(MailpollError):
    """Raised when a message cannot be turned into an event record."""


class ConfigError(MailpollError):
    """Raised when configuration options are missing or invalid."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))
