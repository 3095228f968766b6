"""Data models."""

from .config import HostProfile, OutputConfig, Settings
from .network import (
    BridgeInterface,
    InterfaceStats,
    InterfaceStatus,
    InterfaceType,
    NetworkInterface,
    RouteEntry,
    VMSwitch,
    WirelessNetwork,
    WirelessSecurity,
    WirelessStatus,
)
from .tasks import (
    RETENTION_PRESETS,
    Cadence,
    CadenceKind,
    CronTask,
    ReplicationDetails,
    describe_retention,
    parse_replication_details,
)
from .vm import (
    VMBhyveStatus,
    VMCreateOptions,
    VMInfo,
    VMState,
    VirtualMachine,
)
from .zfs import (
    Dataset,
    DatasetKind,
    Disk,
    PoolHealth,
    PoolLayout,
    ScrubPhase,
    ScrubStatus,
    StoragePool,
    is_protected_dataset,
    scrub_phase,
)

__all__ = [
    "RETENTION_PRESETS",
    "BridgeInterface",
    "Cadence",
    "CadenceKind",
    "CronTask",
    "Dataset",
    "DatasetKind",
    "Disk",
    "HostProfile",
    "InterfaceStats",
    "InterfaceStatus",
    "InterfaceType",
    "NetworkInterface",
    "OutputConfig",
    "PoolHealth",
    "PoolLayout",
    "ReplicationDetails",
    "RouteEntry",
    "ScrubPhase",
    "ScrubStatus",
    "Settings",
    "StoragePool",
    "VMBhyveStatus",
    "VMCreateOptions",
    "VMInfo",
    "VMState",
    "VMSwitch",
    "VirtualMachine",
    "WirelessNetwork",
    "WirelessSecurity",
    "WirelessStatus",
    "describe_retention",
    "is_protected_dataset",
    "parse_replication_details",
    "scrub_phase",
]
