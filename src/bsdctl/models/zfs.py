"""ZFS storage models."""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, computed_field, model_validator

PROTECTED_MOUNTPOINTS = frozenset({"/", "/var", "/tmp", "/usr", "/home"})

_FINISHED_SCRUB = re.compile(r"repaired\b.*\bwith\s+\d+\s+errors?\s+on\b", re.IGNORECASE)


class PoolHealth(str, Enum):
    """Pool health as reported by zpool."""

    ONLINE = "ONLINE"
    DEGRADED = "DEGRADED"
    FAULTED = "FAULTED"
    UNAVAIL = "UNAVAIL"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_text(cls, value: str) -> "PoolHealth":
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class DatasetKind(str, Enum):
    """Kind of dataset node."""

    FILESYSTEM = "filesystem"
    VOLUME = "volume"
    SNAPSHOT = "snapshot"


class PoolLayout(str, Enum):
    """Vdev layout for a new pool; the value is the zpool keyword."""

    STRIPE = "stripe"
    MIRROR = "mirror"
    RAIDZ1 = "raidz"
    RAIDZ2 = "raidz2"
    RAIDZ3 = "raidz3"

    @property
    def min_disks(self) -> int:
        return _MIN_DISKS[self]


class ScrubPhase(str, Enum):
    """Phase of the most recent scrub."""

    NONE = "none"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def is_protected_dataset(name: str, mountpoint: str | None) -> bool:
    """Whether a dataset must never be offered for deletion.

    Pool roots (no '/' in the name), boot environment containers ending
    in '/ROOT' and datasets mounted on critical system paths are protected.

    Args:
        name: Dataset name
        mountpoint: Mountpoint as listed, may be '-' or None

    Returns:
        True if the dataset is delete-protected
    """
    if "/" not in name:
        return True
    if name.endswith("/ROOT"):
        return True
    return mountpoint in PROTECTED_MOUNTPOINTS


def scrub_phase(state_text: str | None) -> ScrubPhase:
    """Derive the scrub phase from a zpool scan description.

    Args:
        state_text: The text after 'scan:' (or a normalised state word)

    Returns:
        IN_PROGRESS, COMPLETED or NONE
    """
    text = (state_text or "").lower()
    if "progress" in text or "scanning" in text:
        return ScrubPhase.IN_PROGRESS
    if "completed" in text or _FINISHED_SCRUB.search(text):
        return ScrubPhase.COMPLETED
    return ScrubPhase.NONE


def _percent(value: str) -> int | None:
    cleaned = value.strip().rstrip("%")
    try:
        return int(float(cleaned))
    except ValueError:
        return None


class StoragePool(BaseModel):
    """A storage pool from `zpool list`."""

    model_config = {"frozen": True}

    name: str
    size: str
    allocated: str
    free: str
    fragmentation: str = "-"
    capacity: str = "-"
    health: PoolHealth = PoolHealth.UNKNOWN
    altroot: str = "-"

    @property
    def fragmentation_percent(self) -> int | None:
        return _percent(self.fragmentation)

    @property
    def capacity_percent(self) -> int | None:
        return _percent(self.capacity)


class Dataset(BaseModel):
    """A filesystem, volume or snapshot from `zfs list`."""

    model_config = {"frozen": True}

    name: str
    used: str = "-"
    available: str = "-"
    referenced: str = "-"
    mountpoint: str = "-"
    compression: str = "-"
    compress_ratio: str = "-"
    quota: str = "-"
    reservation: str = "-"
    kind: DatasetKind = DatasetKind.FILESYSTEM
    share_state: str = "-"

    @model_validator(mode="before")
    @classmethod
    def snapshot_kind_from_name(cls, data: Any) -> Any:
        """Names containing '@' are always snapshots."""
        if isinstance(data, dict) and "@" in str(data.get("name", "")):
            data = {**data, "kind": DatasetKind.SNAPSHOT}
        return data

    @computed_field  # type: ignore[misc]
    @property
    def is_snapshot(self) -> bool:
        return "@" in self.name or self.kind is DatasetKind.SNAPSHOT

    @property
    def parent(self) -> str | None:
        """Snapshot owner, or the containing dataset (None for a pool root)."""
        if "@" in self.name:
            return self.name.split("@", 1)[0]
        if "/" in self.name:
            return self.name.rsplit("/", 1)[0]
        return None

    @property
    def snapshot_label(self) -> str | None:
        if "@" not in self.name:
            return None
        return self.name.split("@", 1)[1]

    @property
    def pool(self) -> str:
        return self.name.split("@", 1)[0].split("/", 1)[0]

    @computed_field  # type: ignore[misc]
    @property
    def is_protected(self) -> bool:
        return is_protected_dataset(self.name, self.mountpoint)


class ScrubStatus(BaseModel):
    """Point-in-time scrub state of one pool."""

    model_config = {"frozen": True}

    pool: str
    state: str = "none"
    progress: float | None = None
    scanned: str | None = None
    issued: str | None = None
    duration: str | None = None
    error_count: int = 0

    @property
    def phase(self) -> ScrubPhase:
        return scrub_phase(self.state)

    @property
    def needs_attention(self) -> bool:
        return self.error_count > 0


class Disk(BaseModel):
    """A physical disk from `geom disk list`."""

    model_config = {"frozen": True}

    name: str
    size: str = "-"
    description: str = ""
    partition_scheme: str | None = None

    @property
    def needs_wipe(self) -> bool:
        """Partitioned but unused disks must be wiped before pool creation."""
        return self.partition_scheme is not None


_MIN_DISKS = {
    PoolLayout.STRIPE: 1,
    PoolLayout.MIRROR: 2,
    PoolLayout.RAIDZ1: 3,
    PoolLayout.RAIDZ2: 4,
    PoolLayout.RAIDZ3: 5,
}
