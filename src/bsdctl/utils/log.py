"""Logging setup for the command line front end."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route the package's log records to stderr through Rich.

    Args:
        verbose: Emit DEBUG records, including every remote command
        quiet: Only emit errors
    """
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("bsdctl")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    # asyncssh logs every channel at INFO
    logging.getLogger("asyncssh").setLevel(logging.DEBUG if verbose else logging.WARNING)
