"""Mailbox client interface and its IMAP implementation.

The scheduler only relies on the MailboxClient protocol. IMAPMailboxClient
implements it on top of imapclient, translating library and socket errors
into mailpoll errors.
"""

import logging
import ssl
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import imapclient
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError

from mailpoll.config.validation import RunConfig
from mailpoll.errors import MailboxConnectionError, ProtocolError

logger = logging.getLogger(__name__)

# PEEK leaves \Seen alone; the response is keyed by the plain item name
RAW_CONTENT_FETCH = "BODY.PEEK[]"
RAW_CONTENT_ATTR = b"BODY[]"


class Flag(Enum):
    """Server-side flags applied to processed messages."""

    SEEN = "\\Seen"
    DELETED = "\\Deleted"


@dataclass(frozen=True)
class FetchedMessage:
    """A fetched message: its mailbox id and raw bytes, if the server sent them."""

    id: int
    raw: bytes | None = None


class MailboxClient(Protocol):
    """Operations a polling cycle needs from a mailbox connection."""

    def connect(self) -> None: ...

    def select_folder(self, name: str) -> None: ...

    def search(self, query: str) -> list[int]: ...

    def fetch(self, ids: Iterable[int]) -> list[FetchedMessage]: ...

    def store_flags(self, ids: Iterable[int], flag: Flag) -> None: ...

    def close(self) -> None: ...

    def disconnect(self) -> None: ...


_IMAP_FLAGS = {
    Flag.SEEN: imapclient.SEEN,
    Flag.DELETED: imapclient.DELETED,
}


class IMAPMailboxClient:
    """MailboxClient backed by imapclient.IMAPClient.

    Messages are addressed by UID. A connection serves one polling cycle:
    connect() opens and logs in, disconnect() logs out.

    Example:
        client = IMAPMailboxClient(config)
        client.connect()
        client.select_folder("INBOX")
        ids = client.search("NOT SEEN")
    """

    def __init__(self, config: RunConfig):
        """Initialize the client.

        Args:
            config: Run configuration providing host, port, credentials
                    and TLS settings.
        """
        self._config = config
        self._imap: imapclient.IMAPClient | None = None

    @property
    def connected(self) -> bool:
        return self._imap is not None

    def connect(self) -> None:
        """Open the connection and log in.

        Raises:
            MailboxConnectionError: If the server is unreachable or
                                    rejects the credentials.
        """
        config = self._config
        try:
            self._imap = imapclient.IMAPClient(
                config.host,
                port=config.port,
                ssl=config.secure,
                ssl_context=self._ssl_context() if config.secure else None,
                timeout=config.timeout,
            )
        except (OSError, IMAPClientError) as e:
            raise MailboxConnectionError(
                f"Cannot connect to {config.host}:{config.port}: {e}"
            ) from e

        try:
            self._imap.login(config.user, config.password)
        except (LoginError, IMAPClientError, OSError) as e:
            self._shutdown()
            raise MailboxConnectionError(f"Login failed for {config.user}: {e}") from e

        logger.debug("Logged in to %s:%s as %s", config.host, config.port, config.user)

    def select_folder(self, name: str) -> None:
        self._call("select_folder", name)

    def search(self, query: str) -> list[int]:
        """Run an IMAP SEARCH; the query string is passed to the server as is."""
        return list(self._call("search", query))

    def fetch(self, ids: Iterable[int]) -> list[FetchedMessage]:
        """Fetch raw messages, in the order the ids were given.

        The fetch does not mark messages as read; flags change only
        through store_flags().
        """
        ids = list(ids)
        response = self._call("fetch", ids, [RAW_CONTENT_FETCH])

        messages = []
        for msg_id in ids:
            data = response.get(msg_id)
            if data is None:
                logger.debug("Server returned nothing for message %s", msg_id)
                continue
            messages.append(FetchedMessage(id=msg_id, raw=data.get(RAW_CONTENT_ATTR)))
        return messages

    def store_flags(self, ids: Iterable[int], flag: Flag) -> None:
        self._call("add_flags", list(ids), [_IMAP_FLAGS[flag]])

    def close(self) -> None:
        """Close the selected folder."""
        self._call("close_folder")

    def disconnect(self) -> None:
        """Log out and drop the connection. Safe to call when not connected."""
        if self._imap is None:
            return
        try:
            self._imap.logout()
        except (IMAPClientError, OSError) as e:
            logger.debug("Error during logout: %s", e)
            self._shutdown()
        finally:
            self._imap = None

    def _call(self, method: str, *args):
        """Invoke an IMAPClient method, translating its errors."""
        if self._imap is None:
            raise MailboxConnectionError("Not connected")
        try:
            return getattr(self._imap, method)(*args)
        except IMAPClientAbortError as e:
            raise MailboxConnectionError(f"Connection lost during {method}: {e}") from e
        except IMAPClientError as e:
            raise ProtocolError(f"{method} failed: {e}") from e
        except OSError as e:
            raise MailboxConnectionError(f"Network error during {method}: {e}") from e

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self._config.verify_cert:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _shutdown(self) -> None:
        if self._imap is None:
            return
        try:
            self._imap.shutdown()
        except OSError as e:
            logger.debug("Error closing socket: %s", e)
        self._imap = None
