"""ZFS pool, dataset, snapshot and disk commands."""

import typer

from ..models.zfs import DatasetKind, PoolLayout, ScrubPhase
from ..utils import (
    colored_status,
    console,
    create_table,
    print_error,
    print_info,
    print_warning,
    usage_bar,
    yes_no,
)
from ..utils.helpers import async_to_sync, ordered_group
from ._shared import confirm_action, finish, host_option, open_state, run_with_spinner, split_list, yes_option

_CMD_ORDER = [
    "pools", "datasets", "snapshots", "disks",
    "snapshot", "scrub",
    "clone", "create", "destroy", "set",
    "pool-create", "pool-export", "pool-destroy", "wipe",
]

app = typer.Typer(help="Manage ZFS pools, datasets and snapshots", no_args_is_help=True, cls=ordered_group(_CMD_ORDER))
snapshot_app = typer.Typer(help="Create, delete and roll back snapshots", no_args_is_help=True)
scrub_app = typer.Typer(help="Start, stop and inspect pool scrubs", no_args_is_help=True)
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(scrub_app, name="scrub")


@app.command("pools")
@async_to_sync
async def list_pools(host: str = host_option()) -> None:
    """List storage pools."""
    async with open_state(host) as state:
        result = await run_with_spinner("Loading pools...", state.refresh_pools())
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        if not result.items:
            print_info("No pools found")
            return

        table = create_table(
            title=f"Pools on {state.session.profile.name}",
            columns=[("Name", "cyan"), ("Health", ""), ("Size", ""), ("Alloc", ""), ("Free", ""),
                     ("Capacity", ""), ("Frag", "")],
        )
        for pool in result.items:
            table.add_row(
                pool.name,
                colored_status(pool.health.value),
                pool.size,
                pool.allocated,
                pool.free,
                usage_bar(pool.capacity_percent),
                pool.fragmentation,
            )
        console.print(table)


@app.command("datasets")
@async_to_sync
async def list_datasets(
    pool: str = typer.Argument(None, help="Only datasets of this pool"),
    snapshots: bool = typer.Option(False, "--snapshots", "-s", is_flag=True, help="Include snapshots"),
    host: str = host_option(),
) -> None:
    """List filesystems and volumes."""
    async with open_state(host) as state:
        result = await run_with_spinner("Loading datasets...", state.refresh_datasets())
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)

        datasets = [d for d in result.items if snapshots or not d.is_snapshot]
        if pool:
            datasets = [d for d in datasets if d.pool == pool]
        if not datasets:
            print_info("No datasets found")
            return

        table = create_table(
            title="Datasets",
            columns=[("Name", "cyan"), ("Type", ""), ("Used", ""), ("Avail", ""), ("Refer", ""),
                     ("Mountpoint", ""), ("Compression", ""), ("Protected", "")],
        )
        for dataset in datasets:
            table.add_row(
                dataset.name,
                dataset.kind.value,
                dataset.used,
                dataset.available,
                dataset.referenced,
                dataset.mountpoint,
                f"{dataset.compression} ({dataset.compress_ratio})",
                yes_no(dataset.is_protected),
            )
        console.print(table)


@app.command("snapshots")
@async_to_sync
async def list_snapshots(
    dataset: str = typer.Argument(None, help="Only snapshots of this dataset"),
    host: str = host_option(),
) -> None:
    """List snapshots, newest listing order as reported by zfs."""
    async with open_state(host) as state:
        await run_with_spinner("Loading snapshots...", state.refresh_datasets())
        snapshots = [s for s in state.snapshot.snapshots if dataset is None or s.parent == dataset]
        if not snapshots:
            print_info("No snapshots found")
            return

        table = create_table(
            title="Snapshots",
            columns=[("Dataset", "cyan"), ("Snapshot", "bold"), ("Used", ""), ("Refer", "")],
        )
        for snap in snapshots:
            table.add_row(snap.parent or "-", snap.snapshot_label or "-", snap.used, snap.referenced)
        console.print(table)


@app.command("disks")
@async_to_sync
async def list_disks(host: str = host_option()) -> None:
    """List disks available for a new pool."""
    async with open_state(host) as state:
        result = await run_with_spinner("Inspecting disks...", state.refresh_disks())
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        if not result.items:
            print_info("No unused disks found")
            return

        table = create_table(
            title="Available disks",
            columns=[("Disk", "cyan"), ("Size", ""), ("Description", ""), ("Partitions", "")],
        )
        for disk in result.items:
            scheme = f"[yellow]{disk.partition_scheme} (wipe needed)[/yellow]" if disk.needs_wipe else "-"
            table.add_row(disk.name, disk.size, disk.description or "-", scheme)
        console.print(table)


@snapshot_app.command("create")
@async_to_sync
async def create_snapshot(
    dataset: str = typer.Argument(..., help="Dataset to snapshot"),
    name: str = typer.Argument(..., help="Snapshot name"),
    recursive: bool = typer.Option(False, "--recursive", "-r", is_flag=True, help="Snapshot descendants too"),
    host: str = host_option(),
) -> None:
    """Create a snapshot."""
    async with open_state(host) as state:
        finish(await state.create_snapshot(dataset, name, recursive))


@snapshot_app.command("delete")
@async_to_sync
async def delete_snapshot(
    snapshot: str = typer.Argument(..., help="Snapshot (dataset@name)"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Delete a snapshot."""
    async with open_state(host) as state:
        if not confirm_action(f"Delete snapshot {snapshot}?", yes):
            return
        finish(await state.delete_snapshot(snapshot))


@snapshot_app.command("rollback")
@async_to_sync
async def rollback_snapshot(
    snapshot: str = typer.Argument(..., help="Snapshot (dataset@name)"),
    destroy_newer: bool = typer.Option(
        False, "--destroy-newer", "-r", is_flag=True, help="Destroy snapshots newer than the target"
    ),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Roll a dataset back to a snapshot."""
    async with open_state(host) as state:
        message = f"Roll back to {snapshot}? Changes made since will be lost."
        if not confirm_action(message, yes):
            return
        finish(await state.rollback_snapshot(snapshot, destroy_newer))


@scrub_app.command("status")
@async_to_sync
async def scrub_status(pool: str = typer.Argument(None, help="Pool name"), host: str = host_option()) -> None:
    """Show scrub progress and results."""
    async with open_state(host) as state:
        result = await state.refresh_scrub()
        if result.last_error:
            print_error(state.error or result.last_error)
            raise typer.Exit(1)
        statuses = [s for s in result.items if pool is None or s.pool == pool]
        if not statuses:
            print_info("No pools found")
            return

        table = create_table(
            title="Scrub status",
            columns=[("Pool", "cyan"), ("Phase", ""), ("Progress", ""), ("Duration", ""), ("Errors", ""),
                     ("Last scan", "dim")],
        )
        for status in statuses:
            progress = usage_bar(status.progress) if status.phase is ScrubPhase.IN_PROGRESS else "-"
            errors = f"[red]{status.error_count}[/red]" if status.needs_attention else "0"
            table.add_row(
                status.pool,
                colored_status(status.phase.value),
                progress,
                status.duration or "-",
                errors,
                status.state,
            )
        console.print(table)


@scrub_app.command("start")
@async_to_sync
async def start_scrub(pool: str = typer.Argument(..., help="Pool name"), host: str = host_option()) -> None:
    """Start a scrub."""
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Starting scrub on {pool}...", state.start_scrub(pool)))


@scrub_app.command("stop")
@async_to_sync
async def stop_scrub(pool: str = typer.Argument(..., help="Pool name"), host: str = host_option()) -> None:
    """Stop a running scrub."""
    async with open_state(host) as state:
        finish(await run_with_spinner(f"Stopping scrub on {pool}...", state.stop_scrub(pool)))


@app.command("clone")
@async_to_sync
async def clone(
    source: str = typer.Argument(..., help="Snapshot or dataset to clone"),
    destination: str = typer.Argument(..., help="New dataset name"),
    host: str = host_option(),
) -> None:
    """Clone a snapshot, or a dataset through a fresh snapshot."""
    async with open_state(host) as state:
        finish(await state.clone_dataset(source, destination))


@app.command("create")
@async_to_sync
async def create_dataset(
    name: str = typer.Argument(..., help="New dataset name"),
    volume: str = typer.Option(None, "--volume", "-V", help="Create a volume of this size instead"),
    compression: str = typer.Option(None, "--compression", "-c", help="Compression algorithm"),
    quota: str = typer.Option(None, "--quota", "-q", help="Quota"),
    mountpoint: str = typer.Option(None, "--mountpoint", "-m", help="Mountpoint"),
    prop: list[str] = typer.Option(None, "--property", "-o", help="Extra property as key=value"),
    host: str = host_option(),
) -> None:
    """Create a filesystem or volume."""
    properties = {"compression": compression or "", "quota": quota or "", "mountpoint": mountpoint or ""}
    for item in prop or []:
        key, sep, value = item.partition("=")
        if not sep:
            print_error(f"Property '{item}' must be key=value")
            raise typer.Exit(1)
        properties[key] = value
    kind = DatasetKind.VOLUME if volume else DatasetKind.FILESYSTEM

    async with open_state(host) as state:
        finish(await state.create_dataset(name, kind, properties, volume))


@app.command("destroy")
@async_to_sync
async def destroy_dataset(
    name: str = typer.Argument(..., help="Dataset to destroy with all descendants"),
    force: bool = typer.Option(False, "--force", "-f", is_flag=True, help="Unmount busy filesystems"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Destroy a dataset recursively."""
    async with open_state(host) as state:
        await state.refresh_datasets()
        match = next((d for d in state.snapshot.datasets.items if d.name == name), None)
        if match is not None and match.is_protected:
            print_error(f"{name} is a protected dataset and cannot be destroyed")
            raise typer.Exit(1)
        if not confirm_action(f"Destroy {name} and everything below it?", yes):
            return
        finish(await state.destroy_dataset(name, force))


@app.command("set")
@async_to_sync
async def set_property(
    dataset: str = typer.Argument(..., help="Dataset"),
    assignment: str = typer.Argument(..., help="property=value"),
    host: str = host_option(),
) -> None:
    """Set a dataset property."""
    prop, sep, value = assignment.partition("=")
    if not sep:
        print_error("Expected property=value")
        raise typer.Exit(1)
    async with open_state(host) as state:
        finish(await state.set_property(dataset, prop, value))


@app.command("pool-create")
@async_to_sync
async def create_pool(
    name: str = typer.Argument(..., help="Pool name"),
    disks: str = typer.Argument(..., help="Disks, comma separated (e.g. ada1,ada2)"),
    layout: PoolLayout = typer.Option(PoolLayout.STRIPE, "--layout", "-l", help="Vdev layout"),
    wipe: bool = typer.Option(False, "--wipe", "-w", is_flag=True, help="Wipe partitioned disks first"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Create a pool from unused disks."""
    disk_list = split_list(disks)
    async with open_state(host) as state:
        available = await state.refresh_disks()
        by_name = {disk.name: disk for disk in available.items}
        unavailable = [d for d in disk_list if d not in by_name]
        if unavailable:
            print_error(f"Not available for a new pool: {', '.join(unavailable)}")
            raise typer.Exit(1)
        partitioned = [d for d in disk_list if by_name[d].needs_wipe]
        if partitioned and not wipe:
            print_warning(f"Partitioned disks need --wipe: {', '.join(partitioned)}")
            raise typer.Exit(1)

        message = f"Create {layout.value} pool {name} on {', '.join(disk_list)}?"
        if partitioned:
            message += f" Partition tables on {', '.join(partitioned)} will be destroyed."
        if not confirm_action(message, yes):
            return
        finish(await run_with_spinner(f"Creating pool {name}...", state.create_pool(name, disk_list, layout, wipe)))


@app.command("pool-export")
@async_to_sync
async def export_pool(
    name: str = typer.Argument(..., help="Pool name"),
    force: bool = typer.Option(False, "--force", "-f", is_flag=True, help="Force unmount"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Export a pool."""
    async with open_state(host) as state:
        if not confirm_action(f"Export pool {name}?", yes):
            return
        finish(await state.export_pool(name, force))


@app.command("pool-destroy")
@async_to_sync
async def destroy_pool(
    name: str = typer.Argument(..., help="Pool name"),
    force: bool = typer.Option(False, "--force", "-f", is_flag=True, help="Force unmount"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Destroy a pool and all data on it."""
    async with open_state(host) as state:
        if not confirm_action(f"Destroy pool {name} and ALL of its data?", yes):
            return
        finish(await state.destroy_pool(name, force))


@app.command("wipe")
@async_to_sync
async def wipe_disk(
    disk: str = typer.Argument(..., help="Disk to wipe (e.g. ada1)"),
    yes: bool = yes_option(),
    host: str = host_option(),
) -> None:
    """Destroy the partition table of an unused disk."""
    async with open_state(host) as state:
        if not confirm_action(f"Destroy the partition table of {disk}?", yes):
            return
        finish(await state.wipe_disk(disk))
