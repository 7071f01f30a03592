"""Receive commands: setup, once, watch."""

import click
from click import echo, option

from ..config import get_home, write_polling_config
from ..receive import receive_once, resolve_mailbox
from ..watch import watch_loop

from .utils import AliasGroup, handle_errors, positive_int


@click.group(cls=AliasGroup, aliases={
    'o': 'once',
    'w': 'watch',
})
def receive():
    """Receive email via IMAP polling."""
    pass


@receive.command("setup")
@option('-i', '--interval', type=int, callback=positive_int, help="Polling interval in seconds")
@option('-m', '--mailbox', help="IMAP mailbox name")
@handle_errors
def receive_setup(interval: int | None, mailbox: str | None):
    """Save polling settings to $AGENTMAIL_HOME/polling.yaml."""
    get_home().mkdir(parents=True, exist_ok=True)
    config = write_polling_config(mailbox=mailbox, interval_seconds=interval)
    echo(f"Saved polling config. mailbox={config.mailbox}, interval_seconds={config.interval_seconds}")


@receive.command("once")
@option('-m', '--mailbox', help="IMAP mailbox name")
@handle_errors
def receive_once_cmd(mailbox: str | None):
    """Poll the mailbox once and archive unseen messages."""
    result = receive_once(mailbox=resolve_mailbox(mailbox))
    echo(
        f"Receive complete. mailbox={result.mailbox}, found={result.found}, "
        f"saved={result.saved}, seen_marked={result.seen_marked}, failed={result.failed}"
    )


@receive.command("watch")
@handle_errors
def receive_watch():
    """Poll continuously using the saved polling settings.

    Stops cleanly on Ctrl-C / SIGTERM after the current cycle finishes.
    """
    watch_loop()
