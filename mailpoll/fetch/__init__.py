"""Mailbox polling: the IMAP client, the per-cycle scheduler and the loop."""

from mailpoll.fetch.client import FetchedMessage, Flag, IMAPMailboxClient, MailboxClient
from mailpoll.fetch.loop import LoopState, PollLoop
from mailpoll.fetch.scheduler import (
    BatchResult,
    CycleResult,
    EmitFn,
    FetchScheduler,
    partition,
    run_cycle,
)

__all__ = [
    "BatchResult",
    "CycleResult",
    "EmitFn",
    "FetchScheduler",
    "FetchedMessage",
    "Flag",
    "IMAPMailboxClient",
    "LoopState",
    "MailboxClient",
    "PollLoop",
    "partition",
    "run_cycle",
]
