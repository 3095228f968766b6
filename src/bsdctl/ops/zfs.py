"""ZFS pool, dataset and snapshot operations."""

import logging
from datetime import datetime, timezone

from ..models.zfs import Dataset, DatasetKind, PoolLayout, ScrubStatus, StoragePool
from ..parsers.zfs import (
    LIST_DATASETS_COMMAND,
    LIST_POOLS_COMMAND,
    parse_datasets,
    parse_pools,
    parse_scrub_status,
    parse_snapshot_names,
)
from ..remote.exceptions import InvalidArgumentError
from ..remote.session import Session
from ..utils.shell import join, quote, require

logger = logging.getLogger(__name__)


def _require_snapshot(snapshot: str) -> str:
    snapshot = require(snapshot, "Snapshot")
    if "@" not in snapshot:
        raise InvalidArgumentError(f"'{snapshot}' is not a snapshot name (dataset@label)")
    return snapshot


async def list_pools(session: Session) -> list[StoragePool]:
    """List storage pools."""
    return parse_pools(await session.execute(LIST_POOLS_COMMAND))


async def list_datasets(session: Session) -> list[Dataset]:
    """List all filesystems, volumes and snapshots as a flat collection."""
    return parse_datasets(await session.execute(LIST_DATASETS_COMMAND))


async def list_snapshots(session: Session, dataset: str | None = None) -> list[str]:
    """List snapshot names, newest first.

    Args:
        session: Session to the host
        dataset: Only direct snapshots of this dataset when given

    Returns:
        Full snapshot names
    """
    command = "zfs list -H -t snapshot -o name -S creation"
    if dataset is not None:
        command += f" -d 1 {quote(require(dataset, 'Dataset'))}"
    return parse_snapshot_names(await session.execute(command))


async def get_scrub_status(session: Session, pool: str | None = None) -> list[ScrubStatus]:
    """Scrub status of one pool or of all pools."""
    command = "zpool status"
    if pool is not None:
        command += f" {quote(require(pool, 'Pool'))}"
    return parse_scrub_status(await session.execute(command))


async def create_snapshot(session: Session, dataset: str, name: str, recursive: bool = False) -> str:
    """Create a snapshot.

    Args:
        session: Session to the host
        dataset: Dataset to snapshot
        name: Snapshot label (the part after '@')
        recursive: Also snapshot descendants

    Returns:
        Full snapshot name
    """
    dataset = require(dataset, "Dataset")
    name = require(name, "Snapshot name")
    if "@" in dataset or "@" in name:
        raise InvalidArgumentError("Dataset and snapshot label must not contain '@'")
    snapshot = f"{dataset}@{name}"
    flags = "-r " if recursive else ""
    await session.execute(f"zfs snapshot {flags}{quote(snapshot)}")
    logger.info("Created snapshot %s", snapshot)
    return snapshot


async def delete_snapshot(session: Session, snapshot: str) -> None:
    """Destroy a snapshot."""
    snapshot = _require_snapshot(snapshot)
    await session.execute(f"zfs destroy {quote(snapshot)}")
    logger.info("Deleted snapshot %s", snapshot)


async def rollback_snapshot(session: Session, snapshot: str, destroy_newer: bool = False) -> None:
    """Roll the owning dataset back to a snapshot.

    Args:
        session: Session to the host
        snapshot: Snapshot to roll back to
        destroy_newer: Pass -r so later snapshots are destroyed
    """
    snapshot = _require_snapshot(snapshot)
    flags = "-r " if destroy_newer else ""
    await session.execute(f"zfs rollback {flags}{quote(snapshot)}")
    logger.info("Rolled back to %s", snapshot)


def clone_snapshot_label(now: datetime | None = None) -> str:
    """Label for the snapshot taken before cloning a live dataset."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return "clone-" + stamp.replace(":", "-")


async def clone_dataset(
    session: Session,
    source: str,
    destination: str,
    now: datetime | None = None,
) -> str:
    """Clone a snapshot, or a live dataset through a fresh snapshot.

    Args:
        session: Session to the host
        source: Snapshot or dataset to clone
        destination: New dataset name
        now: Clock used for the intermediate snapshot label

    Returns:
        The snapshot that was cloned
    """
    source = require(source, "Source")
    destination = require(destination, "Destination")
    if "@" in source:
        snapshot = source
    else:
        snapshot = await create_snapshot(session, source, clone_snapshot_label(now))
    await session.execute(f"zfs clone {quote(snapshot)} {quote(destination)}")
    logger.info("Cloned %s to %s", snapshot, destination)
    return snapshot


async def create_dataset(
    session: Session,
    name: str,
    kind: DatasetKind = DatasetKind.FILESYSTEM,
    properties: dict[str, str] | None = None,
    volume_size: str | None = None,
) -> None:
    """Create a filesystem or volume.

    Args:
        session: Session to the host
        name: New dataset name
        kind: FILESYSTEM or VOLUME
        properties: Properties passed as -o key=value; empty values are skipped
        volume_size: Size of a volume, required for VOLUME

    Raises:
        InvalidArgumentError: On a missing name, size or unsupported kind
    """
    name = require(name, "Dataset name")
    if kind is DatasetKind.SNAPSHOT:
        raise InvalidArgumentError("Use create_snapshot to create snapshots")

    args = ["zfs", "create"]
    if kind is DatasetKind.VOLUME:
        args += ["-V", require(volume_size, "Volume size")]
    for key, value in (properties or {}).items():
        if value is None or not str(value).strip():
            continue
        args += ["-o", f"{require(key, 'Property')}={value}"]
    args.append(name)
    await session.execute(join(args))
    logger.info("Created %s %s", kind.value, name)


async def destroy_dataset(session: Session, name: str, recursive: bool = True, force: bool = False) -> None:
    """Destroy a dataset, by default with its children and snapshots."""
    name = require(name, "Dataset name")
    flags = ("-r " if recursive else "") + ("-f " if force else "")
    await session.execute(f"zfs destroy {flags}{quote(name)}")
    logger.info("Destroyed %s", name)


async def set_property(session: Session, dataset: str, prop: str, value: str) -> None:
    """Set one dataset property."""
    dataset = require(dataset, "Dataset")
    prop = require(prop, "Property")
    if value is None:
        raise InvalidArgumentError("Property value must not be None")
    await session.execute(f"zfs set {quote(f'{prop}={value}')} {quote(dataset)}")
    logger.info("Set %s=%s on %s", prop, value, dataset)


async def start_scrub(session: Session, pool: str) -> None:
    await session.execute(f"zpool scrub {quote(require(pool, 'Pool'))}")
    logger.info("Started scrub of %s", pool)


async def stop_scrub(session: Session, pool: str) -> None:
    await session.execute(f"zpool scrub -s {quote(require(pool, 'Pool'))}")
    logger.info("Stopped scrub of %s", pool)


async def pool_exists(session: Session, name: str) -> bool:
    output = await session.execute("zpool list -H -o name")
    return name in {line.strip() for line in output.splitlines()}


async def create_pool(
    session: Session,
    name: str,
    disks: list[str],
    layout: PoolLayout = PoolLayout.STRIPE,
) -> None:
    """Create a pool after checking that the name is free.

    Args:
        session: Session to the host
        name: Pool name
        disks: Whole-disk device names, such as ["ada1", "ada2"]
        layout: Vdev layout

    Raises:
        InvalidArgumentError: On a taken name or too few disks
    """
    name = require(name, "Pool name")
    disks = [require(disk, "Disk") for disk in disks]
    if len(disks) < layout.min_disks:
        raise InvalidArgumentError(
            f"A {layout.value} pool needs at least {layout.min_disks} disk(s), got {len(disks)}"
        )
    if len(set(disks)) != len(disks):
        raise InvalidArgumentError("Each disk may only be listed once")
    if await pool_exists(session, name):
        raise InvalidArgumentError(f"Pool '{name}' already exists")

    args = ["zpool", "create", name]
    if layout is not PoolLayout.STRIPE:
        args.append(layout.value)
    args += disks
    await session.execute(join(args))
    logger.info("Created %s pool %s on %s", layout.value, name, ", ".join(disks))


async def export_pool(session: Session, name: str, force: bool = False) -> None:
    flags = "-f " if force else ""
    await session.execute(f"zpool export {flags}{quote(require(name, 'Pool name'))}")
    logger.info("Exported pool %s", name)


async def destroy_pool(session: Session, name: str, force: bool = False) -> None:
    flags = "-f " if force else ""
    await session.execute(f"zpool destroy {flags}{quote(require(name, 'Pool name'))}")
    logger.info("Destroyed pool %s", name)
