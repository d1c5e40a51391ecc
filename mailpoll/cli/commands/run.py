"""Run command implementation."""

import logging
import signal
from pathlib import Path

import typer
from typing_extensions import Annotated

from mailpoll.cli.runtime import load_run_config
from mailpoll.fetch import FetchScheduler, IMAPMailboxClient, PollLoop
from mailpoll.output import JsonLinesSink

logger = logging.getLogger(__name__)

app = typer.Typer(help="Poll the mailbox at a fixed interval until interrupted")


@app.callback(invoke_without_command=True)
def run(
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.toml")
    ] = None,
    interval: Annotated[
        float | None, typer.Option(help="Seconds between polling cycles")
    ] = None,
    now: Annotated[
        bool, typer.Option("--now", help="Poll once before the first wait")
    ] = False,
    max_cycles: Annotated[
        int | None, typer.Option(help="Stop after this many cycles")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Verbose logging")] = False,
):
    """Poll the mailbox every check_interval seconds.

    Records are written to stdout as JSON Lines. SIGINT or SIGTERM stops
    the loop once the current cycle has finished.
    """
    run_config = load_run_config(config_path, check_interval=interval, debug=debug)

    sink = JsonLinesSink()
    scheduler = FetchScheduler(run_config)

    loop = PollLoop(
        lambda: scheduler.run_cycle(IMAPMailboxClient(run_config), sink),
        interval=run_config.check_interval,
        run_immediately=now,
        max_cycles=max_cycles,
    )

    def _handle_signal(signum, frame):
        logger.info("Received signal %s, stopping", signal.Signals(signum).name)
        loop.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    logger.info(
        "Polling %s on %s every %ss",
        run_config.folder,
        run_config.host,
        run_config.check_interval,
    )
    loop.run()
    logger.info("Stopped after %d cycle(s), %d record(s) emitted", loop.cycles_run, sink.count)
