"""Domain operations, one coroutine per administrative action.

Each operation takes the Session first, validates identifiers, runs one
quoted command and raises classified errors. None of them touch cached
state.
"""

from . import cron, disks, network, vm, zfs

__all__ = ["cron", "disks", "network", "vm", "zfs"]
