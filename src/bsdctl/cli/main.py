"""Main CLI application."""

import typer
from rich.console import Console

from .. import __version__
from ..utils.helpers import async_to_sync
from ..utils.log import setup_logging
from . import host, net, replicate, task, vm, zfs
from ._shared import finish, host_option, open_pair

console = Console()

app = typer.Typer(
    name="bsdctl",
    help="Remote administration for FreeBSD hosts",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(host.app, name="host")
app.add_typer(zfs.app, name="zfs")
app.add_typer(net.app, name="net")
app.add_typer(vm.app, name="vm")
app.add_typer(task.app, name="task")
app.add_typer(replicate.app, name="replicate")


def version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: Whether version flag was set
    """
    if value:
        console.print(f"bsdctl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", is_flag=True, help="Log every remote command"),
    quiet: bool = typer.Option(False, "--quiet", "-q", is_flag=True, help="Only log errors"),
) -> None:
    """bsdctl - Remote administration for FreeBSD hosts.

    Manage ZFS, networking, bhyve VMs, scheduled tasks and replication
    on FreeBSD machines over SSH.

    Get started:
        bsdctl host add       # Set up your first host
        bsdctl zfs pools      # List storage pools
        bsdctl --help         # Show all available commands
    """
    setup_logging(verbose=verbose, quiet=quiet)


@app.command("bootstrap")
@async_to_sync
async def bootstrap(
    target: str = typer.Argument(..., help="Host that must accept the replication key"),
    source: str = host_option(),
) -> None:
    """Let the source host log in to the target with its replication key."""
    async with open_pair(source, target) as (source_state, target_state):
        result = await source_state.bootstrap_trust(
            target_state.session, lambda message: console.print(f"[cyan]→[/cyan] {message}")
        )
        finish(result)


if __name__ == "__main__":
    app()
