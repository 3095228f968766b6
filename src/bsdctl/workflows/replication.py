"""Snapshot replication between two managed hosts.

The source host pipes `zfs send` through its own ssh client, authenticated
with a dedicated replication key, straight into `zfs receive` on the
target. Stream data never passes through this client.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from ..models.config import HostProfile
from ..models.tasks import Cadence
from ..ops import cron as cron_ops
from ..ops import zfs as zfs_ops
from ..remote.exceptions import BsdctlError, InvalidArgumentError, ReplicationError
from ..remote.session import Session
from ..utils.shell import escape_cron, quote, require, ssh_hop

logger = logging.getLogger(__name__)

AUTO_PREFIX = "auto-"
DEFAULT_KEY_PATH = "~/.ssh/id_replication"

# ZFS dataset names: alphanumerics plus _ - . : and / as separator
_DATASET_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:/-]*$")


class ReplicationState(str, Enum):
    """Steps of one replication run."""

    NOT_STARTED = "not_started"
    SNAPSHOT_TAKEN = "snapshot_taken"
    INCREMENTAL_SEND = "incremental_send"
    FULL_SEND = "full_send"
    SENT = "sent"
    RECEIVED = "received"
    DONE = "done"
    FAILED = "failed"


StatusCallback = Callable[[ReplicationState, str], None]


class DatasetRefresher(Protocol):
    """Anything that can refresh a host's dataset listing."""

    async def refresh_datasets(self) -> object: ...


class ReplicationTask(BaseModel):
    """What to replicate and where."""

    model_config = {"frozen": True}

    source_dataset: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    target: HostProfile
    key_path: str = DEFAULT_KEY_PATH


class ReplicationResult(BaseModel):
    """Outcome of a completed run."""

    model_config = {"frozen": True}

    snapshot: str
    base: str | None = None
    command: str

    @property
    def incremental(self) -> bool:
        return self.base is not None


def validate_dataset_name(name: str, what: str = "Dataset") -> str:
    """Check a dataset name against the ZFS character set.

    Raises:
        InvalidArgumentError: On empty names, snapshots or disallowed characters
    """
    name = require(name, what)
    if not _DATASET_RE.match(name) or "//" in name or name.endswith("/"):
        raise InvalidArgumentError(f"{what} '{name}' is not a valid dataset name")
    return name


def auto_snapshot_label(now: datetime | None = None) -> str:
    """Label following the replication naming convention: auto-YYYYMMDD-HHMMSS."""
    now = now or datetime.now()
    return f"{AUTO_PREFIX}{now:%Y%m%d-%H%M%S}"


def is_auto_snapshot(snapshot: str) -> bool:
    _, sep, label = snapshot.partition("@")
    return bool(sep) and label.startswith(AUTO_PREFIX)


def select_incremental_base(snapshots: list[str], new_snapshot: str) -> str | None:
    """Pick the incremental base for a send.

    Args:
        snapshots: Snapshots of the dataset, newest first
        new_snapshot: The snapshot just taken

    Returns:
        The snapshot immediately older than new_snapshot if it follows the
        naming convention, else None for a full send
    """
    dataset = new_snapshot.split("@", 1)[0]
    older = [name for name in snapshots if name != new_snapshot and name.split("@", 1)[0] == dataset]
    if older and is_auto_snapshot(older[0]):
        return older[0]
    return None


def receive_command(destination: str) -> str:
    return f"zfs receive -F {quote(destination)}"


def build_send_pipeline(
    snapshot: str,
    base: str | None,
    target: HostProfile,
    destination: str,
    key_path: str = DEFAULT_KEY_PATH,
) -> str:
    """Compose the send | ssh receive pipeline run on the source host."""
    if base is not None:
        send = f"zfs send -i {quote(base)} {quote(snapshot)}"
    else:
        send = f"zfs send {quote(snapshot)}"
    return f"{send} | {ssh_hop(target, key_path, receive_command(destination))}"


def build_replication_script(task: ReplicationTask, retention_seconds: int = 0) -> str:
    """Shell script for scheduled replication.

    Each run snapshots the dataset, resolves the incremental base on the
    host, sends, then prunes `auto-` snapshots older than the retention
    period, never the one just sent. A retention of 0 keeps everything.

    Args:
        task: What to replicate
        retention_seconds: Age after which auto- snapshots are destroyed

    Returns:
        One line of sh, not yet escaped for cron
    """
    dataset = validate_dataset_name(task.source_dataset, "Source dataset")
    destination = validate_dataset_name(task.destination, "Destination")
    if retention_seconds < 0:
        raise InvalidArgumentError("Retention must not be negative")

    hop = ssh_hop(task.target, task.key_path, receive_command(destination))
    listing = f"zfs list -H -t snapshot -o name -S creation -d 1 {quote(dataset)}"
    script = (
        f'SNAP="{dataset}@{AUTO_PREFIX}$(date +%Y%m%d-%H%M%S)"; '
        f'zfs snapshot "$SNAP" && '
        f"BASE=$({listing} | sed -n 2p); "
        f'case "$BASE" in *@{AUTO_PREFIX}*) zfs send -i "$BASE" "$SNAP" ;; *) zfs send "$SNAP" ;; esac'
        f" | {hop}"
    )
    if retention_seconds:
        script += (
            f" && CUTOFF=$(($(date +%s) - {int(retention_seconds)})); "
            f"zfs list -H -p -t snapshot -o name,creation -d 1 {quote(dataset)} | grep '@{AUTO_PREFIX}' | "
            'while read NAME CREATED; do '
            'if [ "$NAME" != "$SNAP" ] && [ "$CREATED" -lt "$CUTOFF" ]; then zfs destroy "$NAME"; fi; '
            "done"
        )
    return script


def build_schedule_line(task: ReplicationTask, cadence: Cadence, retention_seconds: int = 0) -> str:
    """Crontab line running the replication script on the given cadence."""
    return f"{cadence.expression} {escape_cron(build_replication_script(task, retention_seconds))}"


class Replicator:
    """Runs one replication and reports every state transition."""

    def __init__(
        self,
        source: Session,
        task: ReplicationTask,
        on_status: StatusCallback | None = None,
        target_state: DatasetRefresher | None = None,
    ) -> None:
        """Initialize replicator.

        Args:
            source: Session to the source host, which runs the pipeline
            task: What to replicate
            on_status: Called with (state, message) on each transition
            target_state: Display state of the target, refreshed afterwards
        """
        self.source = source
        self.task = task
        self.on_status = on_status
        self.target_state = target_state
        self.state = ReplicationState.NOT_STARTED

    def _transition(self, state: ReplicationState, message: str) -> None:
        self.state = state
        logger.info("Replication %s: %s", state.value, message)
        if self.on_status is not None:
            self.on_status(state, message)

    async def run(self, now: datetime | None = None) -> ReplicationResult:
        """Snapshot, send and receive.

        Args:
            now: Clock for the snapshot label

        Returns:
            ReplicationResult

        Raises:
            ReplicationError: Carrying the state reached before the failure
        """
        task = self.task
        self._transition(
            ReplicationState.NOT_STARTED,
            f"Replicating {task.source_dataset} to {task.target.name}:{task.destination}",
        )
        try:
            dataset = validate_dataset_name(task.source_dataset, "Source dataset")
            destination = validate_dataset_name(task.destination, "Destination")
            snapshot = await zfs_ops.create_snapshot(self.source, dataset, auto_snapshot_label(now))
            self._transition(ReplicationState.SNAPSHOT_TAKEN, f"Created {snapshot}")

            snapshots = await zfs_ops.list_snapshots(self.source, dataset)
            base = select_incremental_base(snapshots, snapshot)
            if base is not None:
                self._transition(ReplicationState.INCREMENTAL_SEND, f"Sending changes since {base}")
            else:
                self._transition(ReplicationState.FULL_SEND, f"Sending full stream of {snapshot}")

            command = build_send_pipeline(snapshot, base, task.target, destination, task.key_path)
            await self.source.execute(command)
            self._transition(ReplicationState.SENT, f"Stream sent to {task.target.hostname}")
            self._transition(ReplicationState.RECEIVED, f"{destination} received {snapshot.split('@', 1)[1]}")
        except BsdctlError as e:
            failed_at = self.state
            self._transition(ReplicationState.FAILED, str(e))
            raise ReplicationError(f"Replication failed after {failed_at.value}: {e}", state=failed_at) from e

        if self.target_state is not None:
            await self.target_state.refresh_datasets()
        self._transition(ReplicationState.DONE, "Replication complete")
        return ReplicationResult(snapshot=snapshot, base=base, command=command)


async def replicate(
    source: Session,
    task: ReplicationTask,
    on_status: StatusCallback | None = None,
    target_state: DatasetRefresher | None = None,
) -> ReplicationResult:
    """Run a one-shot replication. See Replicator.run."""
    return await Replicator(source, task, on_status, target_state).run()


async def schedule_replication(
    source: Session,
    task: ReplicationTask,
    cadence: Cadence,
    retention_seconds: int = 0,
) -> str:
    """Install a recurring replication as a cron entry on the source host.

    Returns:
        The installed crontab line
    """
    line = build_schedule_line(task, cadence, retention_seconds)
    await cron_ops.install_cron_line(source, line)
    logger.info("Scheduled replication of %s to %s (%s)", task.source_dataset, task.target.name, cadence.expression)
    return line
