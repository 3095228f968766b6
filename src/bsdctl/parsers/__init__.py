"""Parsers turning command output into typed records.

Parsers never perform I/O. Malformed lines are skipped and logged at DEBUG.
"""

from ..models.tasks import parse_replication_details
from .cron import parse_cron_line, parse_crontab
from .disks import (
    available_disks,
    parse_disk_list,
    parse_labels,
    parse_mounted_devices,
    parse_partition_schemes,
    parse_pool_members,
    resolve_labels,
    strip_partition_suffix,
)
from .network import (
    hex_netmask_to_dotted,
    parse_bridges,
    parse_interface_stats,
    parse_interfaces,
    parse_rc_conf,
    parse_routes,
    parse_vm_switches,
    parse_wireless_scan,
    parse_wireless_status,
)
from .vm import parse_vm_info, parse_vms
from .zfs import (
    parse_datasets,
    parse_pools,
    parse_scrub_status,
    parse_snapshot_names,
)

__all__ = [
    "available_disks",
    "hex_netmask_to_dotted",
    "parse_bridges",
    "parse_cron_line",
    "parse_crontab",
    "parse_datasets",
    "parse_disk_list",
    "parse_interface_stats",
    "parse_interfaces",
    "parse_labels",
    "parse_mounted_devices",
    "parse_partition_schemes",
    "parse_pool_members",
    "parse_pools",
    "parse_rc_conf",
    "parse_replication_details",
    "parse_routes",
    "parse_scrub_status",
    "parse_snapshot_names",
    "parse_vm_info",
    "parse_vm_switches",
    "parse_vms",
    "resolve_labels",
    "parse_wireless_scan",
    "parse_wireless_status",
    "strip_partition_suffix",
]
