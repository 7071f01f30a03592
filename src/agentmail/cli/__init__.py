"""CLI package for agentmail.

This package organizes CLI commands into modules:
- send.py: Send email and archive a copy
- receive.py: Receive once / watch / polling setup
- conversation.py: Query the archive by sender
- config_cmds.py: Validate the account env file
- utils.py: Shared utilities and helpers
"""

import click
from click import option

from ..log import setup_logging

from .utils import AliasGroup

from .config_cmds import config
from .conversation import conversation
from .receive import receive
from .send import send


@click.group(cls=AliasGroup, aliases={
    'c': 'conversation',
    'r': 'receive',
    's': 'send',
})
@option('-v', '--verbose', is_flag=True, help="Debug logging")
def main(verbose: bool):
    """Send and receive email from the terminal."""
    setup_logging(verbose)


main.add_command(config)
main.add_command(conversation)
main.add_command(receive)
main.add_command(send)


__all__ = [
    'main',
    'config',
    'conversation',
    'receive',
    'send',
]
