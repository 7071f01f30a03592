"""Conversation command: show archived messages exchanged with a sender."""

import json
import sys

import click
from click import echo, option
from rich.console import Console
from rich.table import Table

from ..address import is_valid_email, normalize_email
from ..conversation import query_conversation

from .utils import err, handle_errors, positive_int


@click.command(no_args_is_help=True)
@option('-j', '--json', 'as_json', is_flag=True, help="Print entries as JSON")
@option('-l', '--limit', type=int, callback=positive_int, help="Maximum number of entries")
@option('-s', '--sender', required=True, help="Sender email address")
@option('-S', '--include-sent', is_flag=True, help="Include sent messages addressed to the sender")
@option('-t', '--table', 'as_table', is_flag=True, help="Render entries as a table")
@handle_errors
def conversation(
    as_json: bool,
    limit: int | None,
    sender: str,
    include_sent: bool,
    as_table: bool,
):
    """Show archived messages from (and optionally to) a sender, oldest first.

    \b
    Examples:
      agentmail conversation -s alice@example.com
      agentmail conversation -s alice@example.com -S -l 20 --json
    """
    if not is_valid_email(sender):
        err(f"Invalid sender address: {sender}")
        sys.exit(1)
    sender = normalize_email(sender)

    entries = query_conversation(sender, include_sent=include_sent, limit=limit)

    if as_json:
        echo(json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False))
        return

    if not entries:
        echo(f"No conversation entries found for {sender}.")
        return

    if as_table:
        table = Table(title=f"Conversation with {sender}")
        table.add_column("Direction", style="cyan")
        table.add_column("Date")
        table.add_column("Subject")
        table.add_column("From")
        table.add_column("To")
        for entry in entries:
            table.add_row(
                entry.direction,
                entry.timestamp,
                entry.subject or "(no subject)",
                ", ".join(entry.from_addrs),
                ", ".join(entry.to_addrs),
            )
        Console().print(table)
        return

    echo(f"Conversation entries for {sender}: {len(entries)}")
    for entry in entries:
        echo(
            f"- [{entry.direction}] {entry.timestamp} | {entry.subject or '(no subject)'} | "
            f"from={', '.join(entry.from_addrs)} | to={', '.join(entry.to_addrs)} | "
            f"dir={entry.message_dir}"
        )
