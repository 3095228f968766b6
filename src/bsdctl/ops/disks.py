"""Disk inventory and preparation."""

import logging

from ..models.zfs import Disk
from ..parsers.disks import (
    available_disks,
    parse_disk_list,
    parse_labels,
    parse_mounted_devices,
    parse_partition_schemes,
    parse_pool_members,
    resolve_labels,
)
from ..remote.session import Session
from ..utils.shell import quote, require

logger = logging.getLogger(__name__)

# gpart, swapctl and glabel exit non-zero when there is nothing to report
PARTITIONS_COMMAND = "gpart show 2>/dev/null || true"
SWAP_COMMAND = "swapctl -l 2>/dev/null || true"
LABELS_COMMAND = "glabel status -s 2>/dev/null || true"


async def _partition_schemes(session: Session) -> dict[str, str]:
    return parse_partition_schemes(await session.execute(PARTITIONS_COMMAND))


async def list_disks(session: Session) -> list[Disk]:
    """List all disks with their partition scheme, if any."""
    disks = parse_disk_list(await session.execute("geom disk list"))
    schemes = await _partition_schemes(session)
    return [disk.model_copy(update={"partition_scheme": schemes.get(disk.name)}) for disk in disks]


async def list_available_disks(session: Session) -> list[Disk]:
    """Disks not used by a pool, a mount or swap.

    GEOM labels in the pool and mount listings are resolved to their
    partitions first, so labelled members exclude their disk too.

    Returns:
        Candidate disks for a new pool; those with a partition scheme need a wipe first
    """
    disks = parse_disk_list(await session.execute("geom disk list"))
    in_use = parse_pool_members(await session.execute("zpool status -P"))
    in_use |= parse_mounted_devices(await session.execute("mount -p"))
    in_use |= parse_mounted_devices(await session.execute(SWAP_COMMAND))
    in_use = resolve_labels(in_use, parse_labels(await session.execute(LABELS_COMMAND)))
    schemes = await _partition_schemes(session)
    available = available_disks(disks, in_use, schemes)
    logger.debug("%d of %d disk(s) available", len(available), len(disks))
    return available


async def wipe_disk(session: Session, disk: str) -> None:
    """Destroy the partition table of a disk. Irreversible."""
    disk = require(disk, "Disk")
    await session.execute(f"gpart destroy -F {quote(disk)}")
    logger.info("Wiped partition table on %s", disk)
