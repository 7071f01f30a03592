"""Config commands."""

import sys

import click
from click import echo, style

from ..config import validate_env_file

from .utils import AliasGroup, err


@click.group(cls=AliasGroup, aliases={'v': 'validate'})
def config():
    """Inspect or validate local config."""
    pass


@config.command("validate")
def config_validate():
    """Validate $AGENTMAIL_HOME/.env."""
    validation = validate_env_file()

    if validation.is_valid:
        echo(style(f"Configuration is valid: {validation.env_file}", fg="green"))
        return

    if not validation.exists:
        err(f"Environment file is missing: {validation.env_file}")
    if validation.missing_keys:
        err(f"Missing keys: {', '.join(validation.missing_keys)}")
    for issue in validation.issues:
        err(issue)
    sys.exit(1)
