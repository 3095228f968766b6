"""CLI commands."""

from . import host, main, net, replicate, task, vm, zfs

__all__ = ["host", "main", "net", "replicate", "task", "vm", "zfs"]
