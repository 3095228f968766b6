"""Shell command construction helpers.

Every user-controlled value that ends up on a remote command line goes
through one of these functions.
"""

import shlex
from collections.abc import Iterable

from ..models.config import HostProfile
from ..remote.exceptions import InvalidArgumentError


def quote(value: object) -> str:
    """Quote a single value as one shell word.

    Args:
        value: Value to quote, converted with str()

    Returns:
        Shell-safe word
    """
    return shlex.quote(str(value))


def join(args: Iterable[object]) -> str:
    """Quote and join arguments into one command line."""
    return " ".join(quote(arg) for arg in args)


def quote_path(path: str) -> str:
    """Quote a path while keeping a leading ~/ expandable by the remote shell."""
    if path == "~":
        return path
    if path.startswith("~/"):
        return "~/" + quote(path[2:])
    return quote(path)


def require(value: str | None, what: str) -> str:
    """Validate a non-empty identifier.

    Args:
        value: Identifier supplied by the caller
        what: Name used in the error message

    Returns:
        The identifier with surrounding whitespace removed

    Raises:
        InvalidArgumentError: If the identifier is empty
    """
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{what} must not be empty")
    return str(value).strip()


def escape_cron(command: str) -> str:
    """Escape '%' which cron would otherwise turn into a newline."""
    return command.replace("%", "\\%")


def unescape_cron(command: str) -> str:
    return command.replace("\\%", "%")


def ssh_hop(
    target: HostProfile,
    key_path: str,
    remote_command: str,
    options: Iterable[str] = ("BatchMode=yes",),
) -> str:
    """Build an `ssh` invocation run from one managed host to another.

    Args:
        target: Host the hop connects to
        key_path: Private key on the originating host
        remote_command: Command to run on the target, quoted here as one word
        options: `-o` options to pass

    Returns:
        Command line
    """
    parts = ["ssh", "-i", quote_path(key_path)]
    for option in options:
        parts += ["-o", quote(option)]
    parts += ["-p", str(target.port), quote(target.destination), quote(remote_command)]
    return " ".join(parts)
