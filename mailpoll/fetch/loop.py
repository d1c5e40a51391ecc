"""Fixed-interval polling loop.

Runs a cycle function every ``interval`` seconds until stopped. The wait
between cycles is a threading.Event wait, so stop() takes effect
immediately instead of after the interval elapses.
"""

import enum
import logging
import threading
from collections.abc import Callable
from typing import Any

from mailpoll.errors import MailpollError

logger = logging.getLogger(__name__)


class LoopState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PollLoop:
    """Calls ``cycle`` repeatedly with a fixed pause in between.

    Mailbox errors (MailpollError) are logged and the loop carries on with
    the next cycle; any other exception stops the loop and propagates.
    An in-flight cycle is never interrupted by stop().

    Example:
        loop = PollLoop(lambda: scheduler.run_cycle(client, sink), interval=300)
        loop.start()
        ...
        loop.stop()
        loop.join()
    """

    def __init__(
        self,
        cycle: Callable[[], Any],
        interval: float,
        *,
        run_immediately: bool = False,
        max_cycles: int | None = None,
    ):
        """Initialize the loop.

        Args:
            cycle: Function running one polling cycle.
            interval: Seconds to wait before each cycle.
            run_immediately: Run the first cycle before the first wait.
            max_cycles: Stop after this many cycles (None = forever).
        """
        self._cycle = cycle
        self._interval = interval
        self._run_immediately = run_immediately
        self._max_cycles = max_cycles
        self._state = LoopState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.cycles_run = 0

    @property
    def state(self) -> LoopState:
        return self._state

    def run(self) -> None:
        """Run the loop in the calling thread until stopped.

        Raises:
            RuntimeError: If the loop was already started.
        """
        with self._state_lock:
            if self._state is LoopState.STOPPED:
                return
            if self._state is not LoopState.IDLE:
                raise RuntimeError("Poll loop already started")
            self._state = LoopState.RUNNING

        try:
            first = True
            while not self._stop_event.is_set():
                if not (first and self._run_immediately):
                    if self._stop_event.wait(self._interval):
                        break
                first = False

                self._run_cycle()
                self.cycles_run += 1
                if self._max_cycles is not None and self.cycles_run >= self._max_cycles:
                    break
        finally:
            with self._state_lock:
                self._state = LoopState.STOPPED
            logger.debug("Poll loop stopped after %d cycles", self.cycles_run)

    def start(self) -> threading.Thread:
        """Run the loop on a background daemon thread."""
        self._thread = threading.Thread(target=self.run, name="mailpoll-loop", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Ask the loop to stop. Safe to call repeatedly and from any thread."""
        with self._state_lock:
            if self._state is LoopState.RUNNING:
                self._state = LoopState.STOPPING
            elif self._state is LoopState.IDLE:
                self._state = LoopState.STOPPED
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for a loop started with start() to finish."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run_cycle(self) -> None:
        try:
            self._cycle()
        except MailpollError as e:
            logger.error("Polling cycle failed: %s", e)
