"""Check command implementation."""

from pathlib import Path

import typer
from typing_extensions import Annotated

from mailpoll.cli.runtime import load_run_config
from mailpoll.errors import MailpollError
from mailpoll.fetch import FetchScheduler, IMAPMailboxClient
from mailpoll.output import JsonLinesSink

app = typer.Typer(help="Poll the mailbox once and print records as JSON Lines")


@app.callback(invoke_without_command=True)
def check(
    config_path: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.toml")
    ] = None,
    folder: Annotated[str | None, typer.Option(help="Folder to poll")] = None,
    query: Annotated[str | None, typer.Option(help="IMAP search query")] = None,
    no_flag: Annotated[
        bool, typer.Option("--no-flag", help="Leave messages unflagged")
    ] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Verbose logging")] = False,
):
    """Run a single polling cycle.

    Records go to stdout, the summary to stderr.
    """
    run_config = load_run_config(config_path, folder=folder, query=query, debug=debug)
    if no_flag:
        run_config = run_config.with_overrides(flag_when_read=False)

    sink = JsonLinesSink()
    scheduler = FetchScheduler(run_config)

    try:
        result = scheduler.run_cycle(IMAPMailboxClient(run_config), sink)
    except MailpollError as e:
        typer.echo(f"Polling failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(
        f"Found {result.found} message(s), emitted {result.emitted}, "
        f"skipped {result.skipped}, flagged {result.flagged}.",
        err=True,
    )
    if result.errors:
        typer.echo(f"{result.errors} error(s):", err=True)
        for detail in result.error_details:
            typer.echo(f"  {detail}", err=True)
