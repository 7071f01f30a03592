"""Shared CLI utilities and helpers."""

import sys
from functools import wraps

import click

from ..address import parse_address_list
from ..errors import AgentmailError


def err(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def handle_errors(f):
    """Decorator that reports AgentmailError as `Error: ...` and exits 1."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AgentmailError as e:
            err(f"Error: {e}")
            sys.exit(1)
    return wrapper


def address_list(ctx, param, value):
    """Click callback: parse a comma-separated address list ('' -> [])."""
    if value is None or not value.strip():
        return []
    try:
        return parse_address_list(value)
    except AgentmailError as e:
        raise click.BadParameter(str(e))


def positive_int(ctx, param, value):
    if value is not None and value < 1:
        raise click.BadParameter("Value must be an integer greater than 0.")
    return value


class AliasGroup(click.Group):
    """Group whose subcommands can also be invoked by short aliases.

    Aliases are shown next to the command name in `--help`, e.g. `send (s)`.
    """

    def __init__(self, *args, aliases: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.aliases = dict(aliases or {})

    def get_command(self, ctx, cmd_name):
        return super().get_command(ctx, self.aliases.get(cmd_name, cmd_name))

    def resolve_command(self, ctx, args):
        # Report the full name, so usage lines read `send` rather than `s`
        _, cmd, rest = super().resolve_command(ctx, args)
        return (cmd.name if cmd else None), cmd, rest

    def help_name(self, cmd_name: str) -> str:
        shortcuts = sorted(a for a, target in self.aliases.items() if target == cmd_name)
        return f"{cmd_name} ({', '.join(shortcuts)})" if shortcuts else cmd_name

    def format_commands(self, ctx, formatter):
        rows = [
            (self.help_name(name), cmd.get_short_help_str(limit=formatter.width))
            for name in self.list_commands(ctx)
            if (cmd := self.get_command(ctx, name)) is not None and not cmd.hidden
        ]
        if rows:
            with formatter.section("Commands"):
                formatter.write_dl(rows)
