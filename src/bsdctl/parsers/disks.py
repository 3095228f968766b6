"""Parsers for disk inventory: GEOM, pool membership, mounts and partitions."""

import logging
import re
from collections.abc import Iterable

from ..models.zfs import Disk
from ..remote.exceptions import ParseError

logger = logging.getLogger(__name__)

# ada0p2 -> ada0, da1s1a -> da1
_PARTITION_SUFFIX_RE = re.compile(r"(p\d+|s\d+[a-h]?)$")
_HUMAN_SIZE_RE = re.compile(r"\(([^)]+)\)")

OPTICAL_PREFIX = "cd"

# Non-device tokens that appear in the `zpool status` config section.
_VDEV_WORDS = frozenset({"NAME", "logs", "cache", "spares", "special", "dedup"})
_VDEV_GROUP_RE = re.compile(r"^(mirror|raidz\d?|draid\d?[^\s]*|replacing|spare)(-\d+)?$")


def strip_partition_suffix(name: str) -> str:
    """Return the whole-disk name for a partition or slice name."""
    return _PARTITION_SUFFIX_RE.sub("", name)


def _device_name(token: str) -> str:
    return token[len("/dev/"):] if token.startswith("/dev/") else token


def parse_disk_list(output: str) -> list[Disk]:
    """Parse `geom disk list`.

    Args:
        output: Command output

    Returns:
        One Disk per `Geom name:` block
    """
    disks: list[Disk] = []
    current: dict[str, str] | None = None

    def flush() -> None:
        if current and current.get("name"):
            disks.append(Disk(**current))

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key == "Geom name":
            flush()
            current = {"name": value}
        elif current is None:
            logger.debug("Skipping line outside a geom block: %r", raw)
        elif key == "Mediasize":
            match = _HUMAN_SIZE_RE.search(value)
            current["size"] = match.group(1) if match else value.split()[0] if value else "-"
        elif key == "descr":
            current["description"] = value
    flush()
    return disks


def parse_pool_members(output: str) -> set[str]:
    """Collect device names used by pools from `zpool status -P`.

    Args:
        output: Command output

    Returns:
        Device names without the /dev/ prefix
    """
    members: set[str] = set()
    pools: set[str] = set()
    in_config = False
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("pool:"):
            pools.add(line.split(":", 1)[1].strip())
            in_config = False
            continue
        if line.startswith("config:"):
            in_config = True
            continue
        if line.startswith("errors:"):
            in_config = False
            continue
        if not in_config:
            continue
        token = line.split()[0]
        if token in _VDEV_WORDS or token in pools or _VDEV_GROUP_RE.match(token):
            continue
        members.add(_device_name(token))
    return members


def parse_mounted_devices(output: str) -> set[str]:
    """Collect devices from `mount -p` and `swapctl -l` output.

    Only entries whose first column is a /dev/ path are considered.
    """
    devices: set[str] = set()
    for line in output.splitlines():
        fields = line.split()
        if fields and fields[0].startswith("/dev/"):
            devices.add(_device_name(fields[0]))
    return devices


def parse_partition_scheme_line(line: str) -> tuple[str, str]:
    """Parse one `=>` header line of `gpart show` into (disk, scheme)."""
    fields = line.split()
    if len(fields) < 5 or fields[0] != "=>":
        raise ParseError("Not a gpart header line", line)
    return fields[3], fields[4]


def parse_partition_schemes(output: str) -> dict[str, str]:
    """Parse `gpart show` into a map of disk name to partition scheme."""
    schemes: dict[str, str] = {}
    for line in output.splitlines():
        if not line.strip().startswith("=>"):
            continue
        try:
            disk, scheme = parse_partition_scheme_line(line.strip())
        except ParseError as e:
            logger.debug("Skipping gpart line %r: %s", e.line, e)
            continue
        schemes[disk] = scheme
    return schemes


def parse_labels(output: str) -> dict[str, str]:
    """Parse `glabel status -s` into a map of label to provider.

    Pools built on GEOM labels list members as `/dev/gpt/zfs0` or
    `/dev/gptid/...`; the provider column names the partition behind them.

    Args:
        output: Command output

    Returns:
        Label name (e.g. gpt/zfs0) to provider (e.g. ada1p3)
    """
    labels: dict[str, str] = {}
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        if len(fields) != 3 or fields[0] == "Name":
            logger.debug("Skipping glabel line %r", line)
            continue
        labels[_device_name(fields[0])] = _device_name(fields[2])
    return labels


def resolve_labels(devices: Iterable[str], labels: dict[str, str]) -> set[str]:
    """Replace GEOM label names with the providers they stand for."""
    return {labels.get(device, device) for device in devices}


def available_disks(
    disks: Iterable[Disk],
    in_use: Iterable[str],
    schemes: dict[str, str] | None = None,
) -> list[Disk]:
    """Disks that may be offered for a new pool.

    A disk is excluded if it, or one of its partitions or slices, is a pool
    member or mounted, or if it is an optical device. Remaining disks carry
    their partition scheme so callers can tell which need a wipe.

    Args:
        disks: All disks from `geom disk list`
        in_use: Device names from pool membership and mount listings
        schemes: Partition schemes from `gpart show`

    Returns:
        Available disks in listing order
    """
    used = set(in_use)
    stripped = {strip_partition_suffix(device) for device in used}
    schemes = schemes or {}
    result = []
    for disk in disks:
        if disk.name.startswith(OPTICAL_PREFIX):
            continue
        if disk.name in used or disk.name in stripped:
            continue
        scheme = schemes.get(disk.name)
        if scheme != disk.partition_scheme:
            disk = disk.model_copy(update={"partition_scheme": scheme})
        result.append(disk)
    return result
