"""Main CLI entry point for mailpoll."""

import typer

from mailpoll import __version__
from mailpoll.cli import commands

app = typer.Typer(
    name="mailpoll",
    help="Poll an IMAP mailbox and emit each message as a JSON record",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(commands.run.app, name="run")
app.add_typer(commands.check.app, name="check")
app.add_typer(commands.config.app, name="config")


@app.command()
def version():
    """Show version information."""
    typer.echo(f"mailpoll version {__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
