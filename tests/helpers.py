"""Shared fixtures-as-functions for the mailpoll tests."""

import threading
import time

from mailpoll.config.validation import RunConfig
from mailpoll.fetch.client import FetchedMessage, Flag


def make_config(**overrides) -> RunConfig:
    values = {"host": "imap.example.test", "user": "poller", "password": "secret"}
    values.update(overrides)
    return RunConfig(**values)


def make_raw_message(n: int, body: str | None = None) -> bytes:
    """A small single-part message whose subject and body carry ``n``."""
    body = body if body is not None else f"body {n}"
    return (
        f"From: sender{n}@example.test\n"
        f"To: poller@example.test\n"
        f"Subject: message {n}\n"
        f"Date: Mon, 15 Jan 2024 10:00:00 +0000\n"
        f"Message-ID: <{n}@example.test>\n"
        f"\n"
        f"{body}"
    ).encode()


class FakeMailbox:
    """In-memory MailboxClient that records every call.

    ``messages`` maps ids to raw bytes (None = server sent no content).
    ``fetch_errors`` maps the first id of a batch to the exception its
    fetch raises.
    """

    def __init__(self, messages: dict[int, bytes | None], fetch_delay: float = 0.0):
        self.messages = messages
        self.fetch_delay = fetch_delay
        self.fetch_errors: dict[int, Exception] = {}
        self.connect_error: Exception | None = None
        self.store_error: Exception | None = None
        self.calls: list[tuple] = []
        self.flags: list[tuple[tuple[int, ...], Flag]] = []
        self.overlapping_fetches = False
        self._active_fetches = 0
        self._lock = threading.Lock()

    def _log(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def connect(self) -> None:
        self._log("connect")
        if self.connect_error is not None:
            raise self.connect_error

    def select_folder(self, name: str) -> None:
        self._log("select_folder", name)

    def search(self, query: str) -> list[int]:
        self._log("search", query)
        return list(self.messages)

    def fetch(self, ids) -> list[FetchedMessage]:
        ids = tuple(ids)
        with self._lock:
            self._active_fetches += 1
            if self._active_fetches > 1:
                self.overlapping_fetches = True
        try:
            self._log("fetch", ids)
            if self.fetch_delay:
                time.sleep(self.fetch_delay)
            error = self.fetch_errors.get(ids[0])
            if error is not None:
                raise error
            return [FetchedMessage(id=i, raw=self.messages[i]) for i in ids]
        finally:
            with self._lock:
                self._active_fetches -= 1

    def store_flags(self, ids, flag: Flag) -> None:
        ids = tuple(ids)
        self._log("store_flags", ids, flag)
        if self.store_error is not None:
            raise self.store_error
        self.flags.append((ids, flag))

    def close(self) -> None:
        self._log("close")

    def disconnect(self) -> None:
        self._log("disconnect")
