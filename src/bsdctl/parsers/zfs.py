"""Parsers for `zpool` and `zfs` command output."""

import logging
import re

from ..models.zfs import Dataset, DatasetKind, PoolHealth, ScrubStatus, StoragePool
from ..remote.exceptions import ParseError

logger = logging.getLogger(__name__)

POOL_COLUMNS = ["name", "size", "alloc", "free", "frag", "cap", "health", "altroot"]
DATASET_COLUMNS = [
    "name",
    "used",
    "avail",
    "refer",
    "mountpoint",
    "compression",
    "compressratio",
    "quota",
    "reservation",
    "type",
    "sharenfs",
]

LIST_POOLS_COMMAND = "zpool list -H -o " + ",".join(POOL_COLUMNS)
LIST_DATASETS_COMMAND = "zfs list -H -t all -o " + ",".join(DATASET_COLUMNS)

_PROGRESS_RE = re.compile(r"([\d.]+)%\s+done")
_SCANNED_RE = re.compile(r"(\S+(?:\s*/\s*\S+)?)\s+scanned")
_ISSUED_RE = re.compile(r"(\S+(?:\s*/\s*\S+)?)\s+issued")
_ELAPSED_RE = re.compile(r"\bin\s+(\S+)\s+with\b")
_REMAINING_RE = re.compile(r"(\S+)\s+to go")
_ERRORS_IN_SCAN_RE = re.compile(r"with\s+(\d+)\s+errors?")
_DATA_ERRORS_RE = re.compile(r"(\d+)\s+data errors?")


def _split_columns(line: str, expected: int) -> list[str]:
    fields = line.rstrip("\n").split("\t")
    if len(fields) != expected:
        fields = line.split()
    if len(fields) != expected:
        raise ParseError(f"Expected {expected} columns, got {len(fields)}", line)
    return [field.strip() for field in fields]


def parse_pool_line(line: str) -> StoragePool:
    """Parse one line of `zpool list -H`."""
    name, size, alloc, free, frag, cap, health, altroot = _split_columns(line, len(POOL_COLUMNS))
    if not name:
        raise ParseError("Empty pool name", line)
    return StoragePool(
        name=name,
        size=size,
        allocated=alloc,
        free=free,
        fragmentation=frag,
        capacity=cap,
        health=PoolHealth.from_text(health),
        altroot=altroot,
    )


def parse_pools(output: str) -> list[StoragePool]:
    """Parse `zpool list -H -o name,size,alloc,free,frag,cap,health,altroot`.

    Args:
        output: Command output

    Returns:
        One StoragePool per well-formed line
    """
    pools = []
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            pools.append(parse_pool_line(line))
        except ParseError as e:
            logger.debug("Skipping pool line %r: %s", e.line, e)
    return pools


def _dataset_kind(type_text: str, name: str) -> DatasetKind:
    if "@" in name or type_text == "snapshot":
        return DatasetKind.SNAPSHOT
    if type_text == "volume":
        return DatasetKind.VOLUME
    if type_text == "filesystem":
        return DatasetKind.FILESYSTEM
    raise ParseError(f"Unknown dataset type '{type_text}'", name)


def parse_dataset_line(line: str) -> Dataset:
    """Parse one line of `zfs list -H -t all`."""
    (
        name,
        used,
        avail,
        refer,
        mountpoint,
        compression,
        ratio,
        quota,
        reservation,
        type_text,
        share,
    ) = _split_columns(line, len(DATASET_COLUMNS))
    if not name:
        raise ParseError("Empty dataset name", line)
    return Dataset(
        name=name,
        used=used,
        available=avail,
        referenced=refer,
        mountpoint=mountpoint,
        compression=compression,
        compress_ratio=ratio,
        quota=quota,
        reservation=reservation,
        kind=_dataset_kind(type_text, name),
        share_state=share,
    )


def parse_datasets(output: str) -> list[Dataset]:
    """Parse the flat dataset listing, snapshots included.

    Args:
        output: Output of LIST_DATASETS_COMMAND

    Returns:
        One Dataset per well-formed line, in listing order
    """
    datasets = []
    for line in output.splitlines():
        if not line.strip():
            continue
        try:
            datasets.append(parse_dataset_line(line))
        except ParseError as e:
            logger.debug("Skipping dataset line %r: %s", e.line, e)
    return datasets


def parse_snapshot_names(output: str) -> list[str]:
    """Parse `zfs list -H -t snapshot -o name`, keeping listing order."""
    names = []
    for line in output.splitlines():
        name = line.strip()
        if not name:
            continue
        if "@" not in name:
            logger.debug("Skipping non-snapshot line %r", line)
            continue
        names.append(name)
    return names


def _scrub_from_block(pool: str, scan_lines: list[str], errors_text: str | None) -> ScrubStatus:
    state = scan_lines[0] if scan_lines else "none requested"
    detail = " ".join(scan_lines)

    progress = None
    if match := _PROGRESS_RE.search(detail):
        progress = float(match.group(1))
    scanned = match.group(1) if (match := _SCANNED_RE.search(detail)) else None
    issued = match.group(1) if (match := _ISSUED_RE.search(detail)) else None
    if match := _ELAPSED_RE.search(detail):
        duration = match.group(1)
    elif match := _REMAINING_RE.search(detail):
        duration = f"{match.group(1)} to go"
    else:
        duration = None

    error_count = 0
    if errors_text is not None:
        if match := _DATA_ERRORS_RE.search(errors_text):
            error_count = int(match.group(1))
    elif match := _ERRORS_IN_SCAN_RE.search(detail):
        error_count = int(match.group(1))

    return ScrubStatus(
        pool=pool,
        state=state,
        progress=progress,
        scanned=scanned,
        issued=issued,
        duration=duration,
        error_count=error_count,
    )


def parse_scrub_status(output: str) -> list[ScrubStatus]:
    """Parse `zpool status` into one ScrubStatus per pool.

    The `scan:` field may continue on indented lines until the next
    `key:` field; those continuation lines carry progress details.

    Args:
        output: Output of `zpool status [pool]`

    Returns:
        One ScrubStatus per `pool:` block
    """
    statuses: list[ScrubStatus] = []
    pool: str | None = None
    scan_lines: list[str] = []
    errors_text: str | None = None
    field: str | None = None

    def flush() -> None:
        if pool is not None:
            statuses.append(_scrub_from_block(pool, scan_lines, errors_text))

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        is_field = bool(sep) and key in ("pool", "state", "status", "action", "scan", "config", "errors", "see", "remove")
        if is_field and key == "pool":
            flush()
            pool, scan_lines, errors_text, field = value.strip(), [], None, "pool"
            continue
        if pool is None:
            continue
        if is_field:
            field = key
            if key == "scan":
                scan_lines = [value.strip()]
            elif key == "errors":
                errors_text = value.strip()
            continue
        if field == "scan":
            scan_lines.append(line)
    flush()
    return statuses
