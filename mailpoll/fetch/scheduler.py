"""One polling cycle: search, fetch and decode in batches, then flag.

Batches are fetched and decoded by a small thread pool sharing a single
mailbox connection. Fetch and flag calls are serialized with a lock,
and flags are only applied once all workers have finished.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from mailpoll.config.validation import RunConfig
from mailpoll.decode import EventRecord, MailDecoder
from mailpoll.errors import (
    DecodeError,
    MailboxConnectionError,
    MailpollError,
    ProtocolError,
)
from mailpoll.fetch.client import Flag, MailboxClient

logger = logging.getLogger(__name__)

# Receives each decoded record; called concurrently from worker threads
EmitFn = Callable[[EventRecord], None]


@dataclass
class BatchResult:
    """Outcome of fetching and decoding one batch of ids.

    ``pending_flags`` holds the ids to flag once the cycle's workers have
    all finished; it is None when nothing should be flagged.
    """

    ids: tuple[int, ...]
    emitted: int = 0
    skipped: int = 0
    decode_errors: list[tuple[int, str]] = field(default_factory=list)
    pending_flags: frozenset[int] | None = None
    error: Exception | None = None


@dataclass
class CycleResult:
    """Result of a polling cycle.

    Tracks counts of messages processed and any errors encountered.
    """

    found: int = 0
    batches: int = 0
    emitted: int = 0
    skipped: int = 0
    flagged: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)

    def add_error(self, context: str, error: str) -> None:
        """Record an error for a message or batch.

        Args:
            context: What failed (message id or batch description).
            error: Error description.
        """
        self.errors += 1
        self.error_details.append(f"{context}: {error}")


def partition(ids: Sequence[int], size: int) -> list[tuple[int, ...]]:
    """Split ids into consecutive batches of at most ``size`` ids."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [tuple(ids[i : i + size]) for i in range(0, len(ids), size)]


class FetchScheduler:
    """Runs polling cycles against a mailbox.

    Example:
        scheduler = FetchScheduler(config)
        result = scheduler.run_cycle(IMAPMailboxClient(config), sink.emit)
        print(f"Emitted {result.emitted} records")
    """

    def __init__(self, config: RunConfig, decoder: MailDecoder | None = None):
        """Initialize the scheduler.

        Args:
            config: Validated run configuration.
            decoder: Decoder to use; defaults to one built from ``config``.
        """
        self._config = config
        self._decoder = decoder or MailDecoder(config)

    def run_cycle(self, client: MailboxClient, emit: EmitFn) -> CycleResult:
        """Poll the mailbox once.

        Connection failures abort the cycle before any flag is applied and
        are re-raised. A batch that fails for any other reason is logged
        and left unflagged, so its messages come back on the next cycle.

        Args:
            client: Unconnected mailbox client; it is connected and
                    disconnected here.
            emit: Sink receiving each decoded record.

        Returns:
            CycleResult with counts of emitted, skipped and flagged messages.

        Raises:
            MailboxConnectionError: If the connection fails at any point.
        """
        config = self._config
        result = CycleResult()

        client.connect()
        try:
            client.select_folder(config.folder)
            ids = list(client.search(config.query))
            result.found = len(ids)

            batches = partition(ids, config.fetch_count)
            result.batches = len(batches)
            if not batches:
                logger.debug("No messages matching %r in %s", config.query, config.folder)
                return result

            lock = threading.Lock()
            with ThreadPoolExecutor(
                max_workers=config.workers, thread_name_prefix="mailpoll-fetch"
            ) as pool:
                futures = [
                    pool.submit(self._process_batch, client, lock, batch, emit)
                    for batch in batches
                ]
            # Leaving the executor block joins every worker
            batch_results = [future.result() for future in futures]

            self._collect(batch_results, result)
            self._apply_flags(client, lock, batch_results, result)
        finally:
            self._close(client)

        logger.info(
            "Cycle done: %d found, %d emitted, %d skipped, %d flagged, %d errors",
            result.found,
            result.emitted,
            result.skipped,
            result.flagged,
            result.errors,
        )
        return result

    def _process_batch(
        self,
        client: MailboxClient,
        lock: threading.Lock,
        batch: tuple[int, ...],
        emit: EmitFn,
    ) -> BatchResult:
        """Fetch, decode and emit one batch. Runs on a worker thread."""
        outcome = BatchResult(ids=batch)
        try:
            with lock:
                messages = client.fetch(batch)

            for message in messages:
                if message.raw is None:
                    outcome.skipped += 1
                    continue
                try:
                    record = self._decoder.decode_raw(message.raw)
                except DecodeError as e:
                    logger.warning("Skipping message %s: %s", message.id, e)
                    outcome.decode_errors.append((message.id, str(e)))
                    continue
                emit(record)
                outcome.emitted += 1
        except Exception as e:
            # Fetch or sink failure: the batch stays unflagged
            outcome.error = e
            return outcome

        if self._config.flag_when_read:
            outcome.pending_flags = frozenset(batch)
        return outcome

    def _collect(self, batch_results: list[BatchResult], result: CycleResult) -> None:
        """Fold batch outcomes into the cycle result.

        Raises:
            MailboxConnectionError: The first connection failure seen.
        """
        connection_error = None
        for outcome in batch_results:
            result.emitted += outcome.emitted
            result.skipped += outcome.skipped
            for msg_id, error in outcome.decode_errors:
                result.add_error(f"message {msg_id}", error)

            if outcome.error is None:
                continue

            context = f"batch {outcome.ids[0]}..{outcome.ids[-1]}"
            result.add_error(context, str(outcome.error))
            if isinstance(outcome.error, MailboxConnectionError):
                connection_error = connection_error or outcome.error
            elif isinstance(outcome.error, MailpollError):
                logger.error("Batch failed for %s: %s", context, outcome.error)
            else:
                logger.error(
                    "Unexpected error processing %s", context, exc_info=outcome.error
                )

        if connection_error is not None:
            logger.error("Connection lost, no messages flagged this cycle")
            raise connection_error

    def _apply_flags(
        self,
        client: MailboxClient,
        lock: threading.Lock,
        batch_results: list[BatchResult],
        result: CycleResult,
    ) -> None:
        flag = Flag.DELETED if self._config.delete else Flag.SEEN
        for outcome in batch_results:
            if outcome.error is not None or not outcome.pending_flags:
                continue
            try:
                with lock:
                    client.store_flags(sorted(outcome.pending_flags), flag)
            except ProtocolError as e:
                context = f"flagging {outcome.ids[0]}..{outcome.ids[-1]}"
                logger.error("Store failed for %s: %s", context, e)
                result.add_error(context, str(e))
                continue
            result.flagged += len(outcome.pending_flags)
            logger.debug("Flagged %d messages %s", len(outcome.pending_flags), flag.value)

    def _close(self, client: MailboxClient) -> None:
        """Close the folder and disconnect, never masking the cycle's outcome."""
        try:
            client.close()
        except MailpollError as e:
            logger.debug("Error closing folder: %s", e)
        try:
            client.disconnect()
        except MailpollError as e:
            logger.debug("Error disconnecting: %s", e)


def run_cycle(client: MailboxClient, config: RunConfig, emit: EmitFn) -> CycleResult:
    """Run one polling cycle with a default scheduler."""
    return FetchScheduler(config).run_cycle(client, emit)
