"""Multi-step workflows built on domain operations."""

from .bootstrap import TrustBootstrap, bootstrap_trust
from .replication import (
    ReplicationResult,
    ReplicationState,
    ReplicationTask,
    Replicator,
    build_schedule_line,
    replicate,
    schedule_replication,
    select_incremental_base,
)

__all__ = [
    "ReplicationResult",
    "ReplicationState",
    "ReplicationTask",
    "Replicator",
    "TrustBootstrap",
    "bootstrap_trust",
    "build_schedule_line",
    "replicate",
    "schedule_replication",
    "select_incremental_base",
]
