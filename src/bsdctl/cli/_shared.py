"""Helpers shared by the command modules.

Every command that touches a host goes through `open_state`, which
connects to the selected host, hands back its HostState and turns any
BsdctlError into an error line and exit status 1.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from ..config import ConfigManager
from ..remote.exceptions import BsdctlError
from ..remote.registry import SessionRegistry
from ..remote.session import Session
from ..state import ActionResult, HostState
from ..utils import confirm, console, print_cancelled, print_error, print_result

T = TypeVar("T")

HOST_HELP = "Host profile to use (defaults to the configured default)"


def host_option() -> Any:
    return typer.Option(None, "--host", "-H", help=HOST_HELP)


def yes_option() -> Any:
    return typer.Option(False, "--yes", "-y", is_flag=True, help="Skip confirmation")


def open_session(config_manager: ConfigManager, host: str | None) -> Session:
    """Build an unconnected session for a configured host."""
    config = config_manager.get()
    profile = config_manager.get_host(host)
    return Session(
        profile,
        connect_timeout=config.settings.connect_timeout,
        expected_system=config.settings.expected_system,
    )


@asynccontextmanager
async def open_state(host: str | None, config_manager: ConfigManager | None = None) -> AsyncIterator[HostState]:
    """Connect to a host for the duration of one command.

    Args:
        host: Profile name, None for the default host
        config_manager: Configuration source

    Yields:
        HostState of the connected host
    """
    config_manager = config_manager or ConfigManager()
    try:
        session = open_session(config_manager, host)
        async with session:
            yield HostState(session, config_manager.get().settings)
    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)


@asynccontextmanager
async def open_pair(
    source: str | None,
    target: str,
    config_manager: ConfigManager | None = None,
) -> AsyncIterator[tuple[HostState, HostState]]:
    """Connect to a source and a target host concurrently.

    Yields:
        (source state, target state); the source is the registry's current entry
    """
    config_manager = config_manager or ConfigManager()
    registry: SessionRegistry | None = None
    try:
        settings = config_manager.get().settings
        source_profile = config_manager.get_host(source)
        target_profile = config_manager.get_host(target)
        if source_profile.name == target_profile.name:
            print_error("Source and target must be different hosts")
            raise typer.Exit(1)

        registry = SessionRegistry(settings)
        source_session, target_session = await asyncio.gather(
            registry.connect(source_profile), registry.connect(target_profile)
        )
        registry.set_current(source_profile.name)
        yield HostState(source_session, settings), HostState(target_session, settings)
    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)
    finally:
        if registry is not None:
            await registry.close_all()


def confirm_action(message: str, yes: bool) -> bool:
    """Ask before a destructive action unless --yes was given.

    Returns:
        True if the action may proceed
    """
    if yes or not ConfigManager().get().output.confirm_destructive:
        return True
    if not confirm(message, default=False):
        print_cancelled()
        return False
    return True


async def run_with_spinner(description: str, operation: Awaitable[T]) -> T:
    """Await an operation while showing a spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description=description, total=None)
        return await operation


def finish(result: ActionResult) -> None:
    """Print an action result; exit 1 if it failed."""
    if not print_result(result):
        raise typer.Exit(1)


def split_list(value: str | None) -> list[str]:
    """Split a comma or space separated option value."""
    if not value:
        return []
    return [part for part in value.replace(",", " ").split() if part]
