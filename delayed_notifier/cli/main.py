"""Main CLI entry point for delayed-notifier management commands."""

import click

from delayed_notifier.cli.commands import notifications, server
from delayed_notifier.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="1.0.0", prog_name="delayed-notifier")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Delayed Notifier CLI.

    \b
    Command Groups:
      server     Run the HTTP API or a pipeline-only worker
      notify     Schedule, inspect and remove notifications

    \b
    Quick Start:
      delayed-notifier server run
      delayed-notifier notify schedule "Hello" --delay 60 --email a@example.com
      delayed-notifier notify status <uid>
    """
    ctx.ensure_object(dict)


cli.add_command(server.server)
cli.add_command(notifications.notify)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
