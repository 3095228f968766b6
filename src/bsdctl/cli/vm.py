"""bhyve virtual machine commands (through vm-bhyve)."""

import typer
from rich.panel import Panel

from ..models.vm import VMCreateOptions
from ..utils import (
    colored_status,
    console,
    create_table,
    print_error,
    print_info,
    print_warning,
    yes_no,
)
from ..utils.helpers import async_to_sync, ordered_group
from ._shared import confirm_action, finish, host_option, open_state, run_with_spinner, yes_option

_CMD_ORDER = [
    "start", "stop", "restart", "poweroff",
    "create", "destroy",
    "list", "info",
]

app = typer.Typer(help="Manage bhyve virtual machines", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))


@app.command("list")
@async_to_sync
async def list_vms(
    status: str = typer.Option(None, "--status", "-s", help="Filter by state (running, stopped)"),
    host: str = host_option(),
) -> None:
    """List virtual machines."""
    async with open_state(host) as state:
        result = await run_with_spinner("Loading VMs...", state.refresh_vms())
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)

        bhyve = state.snapshot.vm_bhyve
        if bhyve is not None and not bhyve.usable:
            if not bhyve.installed:
                print_warning("vm-bhyve is not installed on this host")
            else:
                print_warning("vm-bhyve is installed but vm_enable or vm_dir is not set in rc.conf")
            return

        vms = list(result.items)
        if status:
            vms = [vm for vm in vms if vm.state.value == status.lower()]
        if not vms:
            print_info("No VMs found")
            return

        table = create_table(
            title="Virtual Machines",
            columns=[("Name", "cyan"), ("State", ""), ("CPU", ""), ("Memory", ""), ("Loader", ""),
                     ("Datastore", ""), ("VNC", "dim"), ("Autostart", "")],
        )
        for vm in sorted(vms, key=lambda v: v.name):
            vm_state = vm.state.value if vm.pid is None else f"{vm.state.value} ({vm.pid})"
            table.add_row(
                vm.name,
                colored_status(vm_state),
                vm.cpu,
                vm.memory,
                vm.loader,
                vm.datastore,
                vm.vnc,
                yes_no(vm.autostart),
            )
        console.print(table)


@app.command("info")
@async_to_sync
async def show_vm(name: str = typer.Argument(..., help="VM name"), host: str = host_option()) -> None:
    """Show VM configuration details."""
    async with open_state(host) as state:
        info = await state.get_vm_info(name)
        if info is None:
            print_error(state.error or f"No information for {name}")
            raise typer.Exit(1)

        lines = [
            f"[bold]State:[/bold]      {info.state or '-'}",
            f"[bold]CPU:[/bold]        {info.cpu or '-'}",
            f"[bold]Memory:[/bold]     {info.memory or '-'}",
            f"[bold]Loader:[/bold]     {info.loader or '-'}",
            f"[bold]Autostart:[/bold]  {'Yes' if info.autostart else 'No'}",
        ]
        if info.disks:
            lines.append("")
            lines.append("[bold]── Disks ──[/bold]")
            for disk in info.disks:
                lines.append("  " + "  ".join(f"{k}={v}" for k, v in disk.items()))
        if info.networks:
            lines.append("")
            lines.append("[bold]── Networks ──[/bold]")
            for nic in info.networks:
                lines.append("  " + "  ".join(f"{k}={v}" for k, v in nic.items()))
        console.print(Panel("\n".join(lines), title=f"VM: {info.name}", border_style="blue"))


@app.command("start")
@async_to_sync
async def start_vm(name: str = typer.Argument(..., help="VM name"), host: str = host_option()) -> None:
    """Start a VM."""
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Starting {name}...", state.start_vm(name)))


@app.command("stop")
@async_to_sync
async def stop_vm(name: str = typer.Argument(..., help="VM name"), host: str = host_option()) -> None:
    """Send an ACPI shutdown to a VM."""
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Stopping {name}...", state.stop_vm(name)))


@app.command("restart")
@async_to_sync
async def restart_vm(name: str = typer.Argument(..., help="VM name"), host: str = host_option()) -> None:
    """Restart a VM."""
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Restarting {name}...", state.restart_vm(name)))


@app.command("poweroff")
@async_to_sync
async def poweroff_vm(
    name: str = typer.Argument(..., help="VM name"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Power a VM off immediately."""
    async with open_state(host) as state:
        if not confirm_action(f"Power off {name} without a clean shutdown?", yes):
            return
        finish(await state.poweroff_vm(name))


@app.command("destroy")
@async_to_sync
async def destroy_vm(
    name: str = typer.Argument(..., help="VM name"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Destroy a VM and its disks."""
    async with open_state(host) as state:
        if not confirm_action(f"Destroy VM {name} and all of its disks?", yes):
            return
        finish(await state.destroy_vm(name))


@app.command("create")
@async_to_sync
async def create_vm(
    name: str = typer.Argument(..., help="VM name"),
    template: str = typer.Option("default", "--template", "-t", help="vm-bhyve template"),
    disk_size: str = typer.Option("20G", "--size", "-s", help="Disk size"),
    cpu: int = typer.Option(1, "--cpu", "-c", help="Virtual CPUs"),
    memory: str = typer.Option("512M", "--memory", "-m", help="Memory"),
    datastore: str = typer.Option(None, "--datastore", "-d", help="Datastore"),
    host: str = host_option(),
) -> None:
    """Create a VM from a template."""
    options = VMCreateOptions(
        name=name, template=template, disk_size=disk_size, cpu=cpu, memory=memory, datastore=datastore
    )
    async with open_state(host) as state:
        finish(await state.create_vm(options))
