"""Host profile management commands."""

import typer
from pydantic import ValidationError
from rich.panel import Panel

from ..config import ConfigManager, HostProfile
from ..remote.exceptions import BsdctlError
from ..utils import (
    confirm,
    console,
    create_table,
    print_cancelled,
    print_error,
    print_info,
    print_success,
    prompt,
)
from ..utils.helpers import async_to_sync, ordered_group
from ._shared import open_session, run_with_spinner

_CMD_ORDER = ["add", "list", "remove", "default", "check"]

app = typer.Typer(help="Manage host profiles", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))


def _render_host_panel(profile: HostProfile, is_default: bool = False) -> Panel:
    """Build a Rich Panel for a host profile."""
    lines = [
        f"[bold]Host:[/bold]     {profile.hostname}:{profile.port}",
        f"[bold]User:[/bold]     {profile.user}",
        f"[bold]Key:[/bold]      {profile.key_path}",
    ]
    if is_default:
        lines.append("")
        lines.append("[green]Default host[/green]")
    return Panel("\n".join(lines), title=f"Host: {profile.name}", border_style="blue")


@app.command("add")
def add_host(
    name: str = typer.Argument(None, help="Profile name"),
    hostname: str = typer.Option(None, "--hostname", "-n", help="Host name or IP address"),
    port: int = typer.Option(22, "--port", "-p", help="SSH port"),
    user: str = typer.Option(None, "--user", "-u", help="SSH user"),
    key_path: str = typer.Option(None, "--key", "-k", help="Private key used to log in"),
    yes: bool = typer.Option(False, "--yes", "-y", is_flag=True, help="Save without asking"),
) -> None:
    """Add or replace a host profile."""
    config_manager = ConfigManager()

    try:
        if name is None:
            name = prompt("Profile name")
        if hostname is None:
            while not (hostname := prompt("Host name or IP address")):
                print_error("Host is required")
        if user is None:
            user = prompt("SSH user", default="root")
        if key_path is None:
            key_path = prompt("Private key", default="~/.ssh/id_ed25519")

        try:
            profile = HostProfile(name=name, hostname=hostname, port=port, user=user, key_path=key_path)
        except ValidationError as e:
            print_error(f"Invalid profile: {e.errors()[0]['msg']}")
            raise typer.Exit(1)

        console.print(_render_host_panel(profile))
        if not yes and not confirm("Save this host?", default=True):
            print_cancelled()
            raise typer.Exit()

        existed = name in config_manager.get().hosts
        config_manager.add_host(profile)
        is_default = config_manager.get().default_host == name
        suffix = " (set as default)" if is_default else ""
        print_success(f"Host '{name}' {'updated' if existed else 'added'}{suffix}")

    except KeyboardInterrupt:
        console.print()
        print_cancelled()
    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("list")
def list_hosts() -> None:
    """List configured hosts."""
    config_manager = ConfigManager()

    try:
        config = config_manager.get()
        if not config.hosts:
            print_info("No hosts configured. Run 'bsdctl host add' to create one.")
            return

        table = create_table(
            title="Hosts",
            columns=[("", "green"), ("Name", "cyan"), ("Host", ""), ("Port", ""), ("User", ""), ("Key", "dim")],
        )
        for profile in config.hosts.values():
            marker = "*" if profile.name == config.default_host else ""
            table.add_row(
                marker, profile.name, profile.hostname, str(profile.port), profile.user, profile.key_path
            )
        console.print(table)

    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("remove")
def remove_host(
    name: str = typer.Argument(..., help="Profile name"),
    yes: bool = typer.Option(False, "--yes", "-y", is_flag=True, help="Skip confirmation"),
) -> None:
    """Remove a host profile."""
    config_manager = ConfigManager()

    try:
        config_manager.get_host(name)
        if not yes and not confirm(f"Remove host '{name}'?", default=False):
            print_cancelled()
            return
        config_manager.remove_host(name)
        print_success(f"Host '{name}' removed")

    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("default")
def set_default(name: str = typer.Argument(..., help="Profile name")) -> None:
    """Set the default host."""
    config_manager = ConfigManager()

    try:
        config_manager.set_default_host(name)
        print_success(f"Default host set to '{name}'")
    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("check")
@async_to_sync
async def check_host(name: str = typer.Argument(None, help="Profile name (default host if omitted)")) -> None:
    """Connect to a host and verify it answers as FreeBSD."""
    config_manager = ConfigManager()

    try:
        session = open_session(config_manager, name)
        profile = session.profile
        await run_with_spinner(f"Connecting to {profile.destination}...", session.connect())
        print_success(f"{profile.name}: connected, system is {session.system_name}")
        await session.disconnect()
    except BsdctlError as e:
        print_error(str(e))
        raise typer.Exit(1)
