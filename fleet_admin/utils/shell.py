"""Shell command safety utilities."""

import shlex
from collections.abc import Iterable
from typing import Any

from fleet_admin.utils.redact import Secret


def quote_arg(arg: Any) -> str:
    """Safely quote a shell argument.

    ``Secret`` values are revealed here and nowhere else, so the plain
    text only ever reaches the remote command line.

    Args:
        arg: Argument to quote

    Returns:
        Shell-safe quoted argument
    """
    if isinstance(arg, Secret):
        arg = arg.reveal()
    return shlex.quote(str(arg))


def build_command(command: str, args: Iterable[Any]) -> str:
    """Append quoted arguments to a command line."""
    quoted = [quote_arg(arg) for arg in args]
    if not quoted:
        return command
    return " ".join([command, *quoted])
