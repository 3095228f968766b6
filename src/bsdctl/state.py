"""Aggregate per-host state for presentation layers.

HostState keeps the last fetched collections of one host as immutable
snapshots. Actions run a domain operation and, on success, refetch the
collections it affects. On failure the previous collections stay as
they were and an action-specific message lands in the single error slot.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .models.config import HostProfile, Settings
from .models.network import RouteEntry, WirelessStatus
from .models.tasks import Cadence, CronTask
from .models.vm import VirtualMachine, VMBhyveStatus, VMCreateOptions, VMInfo
from .models.zfs import Dataset, DatasetKind, PoolLayout
from .ops import cron as cron_ops
from .ops import disks as disk_ops
from .ops import network as net_ops
from .ops import vm as vm_ops
from .ops import zfs as zfs_ops
from .remote.exceptions import BsdctlError
from .remote.session import Session
from .workflows import bootstrap as bootstrap_flow
from .workflows import replication as replication_flow

logger = logging.getLogger(__name__)


class CollectionState(BaseModel):
    """One fetched collection and its load status."""

    model_config = {"frozen": True}

    items: tuple[Any, ...] = ()
    is_loading: bool = False
    last_error: str | None = None
    updated_at: datetime | None = None


class HostSnapshot(BaseModel):
    """Everything known about a host at one point in time."""

    model_config = {"frozen": True}

    host: str
    pools: CollectionState = Field(default_factory=CollectionState)
    datasets: CollectionState = Field(default_factory=CollectionState)
    scrub: CollectionState = Field(default_factory=CollectionState)
    disks: CollectionState = Field(default_factory=CollectionState)
    interfaces: CollectionState = Field(default_factory=CollectionState)
    bridges: CollectionState = Field(default_factory=CollectionState)
    routes: CollectionState = Field(default_factory=CollectionState)
    switches: CollectionState = Field(default_factory=CollectionState)
    vms: CollectionState = Field(default_factory=CollectionState)
    tasks: CollectionState = Field(default_factory=CollectionState)
    wireless_networks: CollectionState = Field(default_factory=CollectionState)
    wireless: WirelessStatus | None = None
    vm_bhyve: VMBhyveStatus | None = None
    error: str | None = None

    @property
    def snapshots(self) -> list[Dataset]:
        return [d for d in self.datasets.items if d.is_snapshot]


class ActionResult(BaseModel):
    """Outcome of one administrative action."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    ok: bool
    message: str
    error: BsdctlError | None = None
    value: Any = None


SnapshotCallback = Callable[[HostSnapshot], None]


class HostState:
    """Cached, observable state of one managed host."""

    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        """Initialize host state.

        Args:
            session: Connected session to the host
            settings: Settle delays and bootstrap timeouts
        """
        self.session = session
        self.settings = settings or Settings()
        self._snapshot = HostSnapshot(host=session.profile.name)
        self._subscribers: list[SnapshotCallback] = []

    @property
    def snapshot(self) -> HostSnapshot:
        return self._snapshot

    @property
    def error(self) -> str | None:
        return self._snapshot.error

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Call `callback` with every new snapshot.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, **changes: Any) -> None:
        self._snapshot = self._snapshot.model_copy(update=changes)
        for callback in list(self._subscribers):
            callback(self._snapshot)

    def _set_error(self, message: str) -> None:
        logger.warning("%s: %s", self.session.profile.name, message)
        self._publish(error=message)

    def clear_error(self) -> None:
        self._publish(error=None)

    # Refresh

    async def _refresh(self, kind: str, label: str, fetch: Awaitable[Iterable[Any]]) -> CollectionState:
        previous: CollectionState = getattr(self._snapshot, kind)
        self._publish(**{kind: previous.model_copy(update={"is_loading": True})})
        try:
            items = tuple(await fetch)
        except BsdctlError as e:
            message = f"Failed to load {label}: {e}"
            state = previous.model_copy(update={"is_loading": False, "last_error": str(e)})
            self._publish(**{kind: state})
            self._set_error(message)
            return state
        state = CollectionState(items=items, updated_at=datetime.now())
        self._publish(**{kind: state})
        return state

    async def refresh_pools(self) -> CollectionState:
        return await self._refresh("pools", "pools", zfs_ops.list_pools(self.session))

    async def refresh_datasets(self) -> CollectionState:
        return await self._refresh("datasets", "datasets", zfs_ops.list_datasets(self.session))

    async def refresh_scrub(self) -> CollectionState:
        return await self._refresh("scrub", "scrub status", zfs_ops.get_scrub_status(self.session))

    async def refresh_disks(self) -> CollectionState:
        return await self._refresh("disks", "available disks", disk_ops.list_available_disks(self.session))

    async def refresh_interfaces(self) -> CollectionState:
        return await self._refresh("interfaces", "interfaces", net_ops.list_interfaces(self.session))

    async def refresh_bridges(self) -> CollectionState:
        return await self._refresh("bridges", "bridges", net_ops.list_bridges(self.session))

    async def _all_routes(self) -> list[RouteEntry]:
        return await net_ops.list_routes(self.session) + await net_ops.list_routes(self.session, ipv6=True)

    async def refresh_routes(self) -> CollectionState:
        return await self._refresh("routes", "routes", self._all_routes())

    async def refresh_switches(self) -> CollectionState:
        return await self._refresh("switches", "virtual switches", net_ops.list_vm_switches(self.session))

    async def _vms(self) -> list[VirtualMachine]:
        status = await vm_ops.check_vm_bhyve(self.session)
        self._publish(vm_bhyve=status)
        if not status.usable:
            return []
        return await vm_ops.list_vms(self.session)

    async def refresh_vms(self) -> CollectionState:
        return await self._refresh("vms", "virtual machines", self._vms())

    async def refresh_tasks(self) -> CollectionState:
        return await self._refresh("tasks", "scheduled tasks", cron_ops.list_cron_tasks(self.session))

    async def refresh_wireless(self) -> WirelessStatus | None:
        """Fetch the association state of the wireless interface, if any."""
        try:
            status = await net_ops.get_wireless_status(self.session)
        except BsdctlError as e:
            self._set_error(f"Failed to load wireless status: {e}")
            return self._snapshot.wireless
        self._publish(wireless=status)
        return status

    async def load_all(self) -> HostSnapshot:
        """Refresh every collection; commands queue on the session in order."""
        await asyncio.gather(
            self.refresh_pools(),
            self.refresh_datasets(),
            self.refresh_scrub(),
            self.refresh_disks(),
            self.refresh_interfaces(),
            self.refresh_bridges(),
            self.refresh_routes(),
            self.refresh_switches(),
            self.refresh_vms(),
            self.refresh_tasks(),
        )
        return self._snapshot

    async def _refresh_kinds(self, kinds: Iterable[str]) -> None:
        refreshers = {
            "pools": self.refresh_pools,
            "datasets": self.refresh_datasets,
            "scrub": self.refresh_scrub,
            "disks": self.refresh_disks,
            "interfaces": self.refresh_interfaces,
            "bridges": self.refresh_bridges,
            "routes": self.refresh_routes,
            "switches": self.refresh_switches,
            "vms": self.refresh_vms,
            "tasks": self.refresh_tasks,
            "wireless": self.refresh_wireless,
        }
        await asyncio.gather(*(refreshers[kind]() for kind in kinds))

    # Actions

    async def _act(
        self,
        action: str,
        operation: Awaitable[Any],
        refresh: Iterable[str] = (),
        success: str | None = None,
        settle: float = 0.0,
    ) -> ActionResult:
        """Run one operation and refresh what it changed.

        Args:
            action: Phrase completing "Failed to ..." for the error slot
            operation: Domain operation coroutine
            refresh: Collection kinds to refetch on success
            success: Message reported on success
            settle: Seconds to wait before refreshing
        """
        try:
            value = await operation
        except BsdctlError as e:
            message = f"Failed to {action}: {e}"
            self._set_error(message)
            return ActionResult(ok=False, message=message, error=e)
        logger.info("%s: %s", self.session.profile.name, success or action)
        if settle:
            await asyncio.sleep(settle)
        await self._refresh_kinds(refresh)
        return ActionResult(ok=True, message=success or f"Done: {action}", value=value)

    # ZFS

    async def create_snapshot(self, dataset: str, name: str, recursive: bool = False) -> ActionResult:
        return await self._act(
            "create snapshot",
            zfs_ops.create_snapshot(self.session, dataset, name, recursive),
            ("datasets",),
            f"Created snapshot {dataset}@{name}",
        )

    async def delete_snapshot(self, snapshot: str) -> ActionResult:
        return await self._act(
            "delete snapshot",
            zfs_ops.delete_snapshot(self.session, snapshot),
            ("datasets",),
            f"Deleted snapshot {snapshot}",
        )

    async def rollback_snapshot(self, snapshot: str, destroy_newer: bool = False) -> ActionResult:
        return await self._act(
            "rollback snapshot",
            zfs_ops.rollback_snapshot(self.session, snapshot, destroy_newer),
            ("datasets",),
            f"Rolled back to {snapshot}",
        )

    async def clone_dataset(self, source: str, destination: str) -> ActionResult:
        return await self._act(
            "clone",
            zfs_ops.clone_dataset(self.session, source, destination),
            ("datasets",),
            f"Cloned {source} to {destination}",
        )

    async def create_dataset(
        self,
        name: str,
        kind: DatasetKind = DatasetKind.FILESYSTEM,
        properties: dict[str, str] | None = None,
        volume_size: str | None = None,
    ) -> ActionResult:
        return await self._act(
            "create dataset",
            zfs_ops.create_dataset(self.session, name, kind, properties, volume_size),
            ("datasets",),
            f"Created {kind.value} {name}",
        )

    async def destroy_dataset(self, name: str, force: bool = False) -> ActionResult:
        return await self._act(
            "destroy dataset",
            zfs_ops.destroy_dataset(self.session, name, force=force),
            ("datasets",),
            f"Destroyed {name}",
        )

    async def set_property(self, dataset: str, prop: str, value: str) -> ActionResult:
        return await self._act(
            "set property",
            zfs_ops.set_property(self.session, dataset, prop, value),
            ("datasets",),
            f"Set {prop}={value} on {dataset}",
        )

    async def start_scrub(self, pool: str) -> ActionResult:
        return await self._act(
            "start scrub",
            zfs_ops.start_scrub(self.session, pool),
            ("scrub",),
            f"Scrub started on {pool}",
            self.settings.scrub_settle_delay,
        )

    async def stop_scrub(self, pool: str) -> ActionResult:
        return await self._act(
            "stop scrub",
            zfs_ops.stop_scrub(self.session, pool),
            ("scrub",),
            f"Scrub stopped on {pool}",
            self.settings.scrub_settle_delay,
        )

    async def _wipe_then_create(self, name: str, disks: list[str], layout: PoolLayout, wipe: bool) -> None:
        if wipe:
            available = {disk.name: disk for disk in await disk_ops.list_available_disks(self.session)}
            for disk in disks:
                if disk in available and available[disk].needs_wipe:
                    await disk_ops.wipe_disk(self.session, disk)
        await zfs_ops.create_pool(self.session, name, disks, layout)

    async def create_pool(
        self,
        name: str,
        disks: list[str],
        layout: PoolLayout = PoolLayout.STRIPE,
        wipe: bool = False,
    ) -> ActionResult:
        """Create a pool, wiping the partition tables of its disks first when asked."""
        return await self._act(
            "create pool",
            self._wipe_then_create(name, disks, layout, wipe),
            ("pools", "datasets", "disks"),
            f"Created pool {name}",
        )

    async def export_pool(self, name: str, force: bool = False) -> ActionResult:
        return await self._act(
            "export pool",
            zfs_ops.export_pool(self.session, name, force),
            ("pools", "datasets", "disks"),
            f"Exported pool {name}",
        )

    async def destroy_pool(self, name: str, force: bool = False) -> ActionResult:
        return await self._act(
            "destroy pool",
            zfs_ops.destroy_pool(self.session, name, force),
            ("pools", "datasets", "disks"),
            f"Destroyed pool {name}",
        )

    async def wipe_disk(self, disk: str) -> ActionResult:
        return await self._act(
            "wipe disk",
            disk_ops.wipe_disk(self.session, disk),
            ("disks",),
            f"Wiped partition table of {disk}",
        )

    # Network

    async def set_interface_up(self, name: str) -> ActionResult:
        return await self._act(
            f"bring up {name}", net_ops.set_interface_up(self.session, name), ("interfaces",), f"{name} is up"
        )

    async def set_interface_down(self, name: str) -> ActionResult:
        return await self._act(
            f"bring down {name}", net_ops.set_interface_down(self.session, name), ("interfaces",), f"{name} is down"
        )

    async def renew_dhcp(self, name: str) -> ActionResult:
        return await self._act(
            "renew DHCP lease", net_ops.renew_dhcp(self.session, name), ("interfaces",), f"Renewed lease on {name}"
        )

    async def configure_dhcp(self, name: str) -> ActionResult:
        return await self._act(
            "configure DHCP", net_ops.configure_dhcp(self.session, name), ("interfaces",), f"{name} uses DHCP"
        )

    async def configure_static(
        self, name: str, address: str, netmask: str, gateway: str | None = None
    ) -> ActionResult:
        refresh = ("interfaces", "routes") if gateway else ("interfaces",)
        return await self._act(
            "configure static address",
            net_ops.configure_static(self.session, name, address, netmask, gateway),
            refresh,
            f"{name} set to {address}/{netmask}",
        )

    async def set_mtu(self, name: str, mtu: int) -> ActionResult:
        return await self._act(
            "set MTU", net_ops.set_mtu(self.session, name, mtu), ("interfaces",), f"MTU of {name} set to {mtu}"
        )

    async def set_description(self, name: str, description: str) -> ActionResult:
        return await self._act(
            "set description",
            net_ops.set_description(self.session, name, description),
            ("interfaces",),
            f"Updated description of {name}",
        )

    async def destroy_interface(self, name: str) -> ActionResult:
        return await self._act(
            f"destroy {name}",
            net_ops.destroy_interface(self.session, name),
            ("interfaces", "bridges"),
            f"Destroyed {name}",
        )

    async def scan_wireless(self, interface: str | None = None) -> CollectionState:
        return await self._refresh(
            "wireless_networks", "wireless networks", net_ops.scan_wireless(self.session, interface)
        )

    async def connect_wireless(
        self, ssid: str, password: str | None = None, interface: str | None = None
    ) -> ActionResult:
        return await self._act(
            f"connect to {ssid}",
            net_ops.connect_wireless(self.session, ssid, password, interface),
            ("wireless", "interfaces"),
            f"Connected to {ssid}",
        )

    async def disconnect_wireless(self, interface: str | None = None) -> ActionResult:
        return await self._act(
            "disconnect",
            net_ops.disconnect_wireless(self.session, interface),
            ("wireless", "interfaces"),
            "Disconnected from wireless network",
        )

    async def create_bridge(
        self,
        name: str,
        members: list[str],
        address: str | None = None,
        netmask: str | None = None,
        stp: bool = False,
    ) -> ActionResult:
        return await self._act(
            "create bridge",
            net_ops.create_bridge(self.session, name, members, address, netmask, stp),
            ("bridges", "interfaces"),
            f"Created bridge {name}",
        )

    async def delete_bridge(self, name: str) -> ActionResult:
        return await self._act(
            "delete bridge",
            net_ops.delete_bridge(self.session, name),
            ("bridges", "interfaces"),
            f"Deleted bridge {name}",
        )

    async def add_bridge_member(self, bridge: str, member: str) -> ActionResult:
        return await self._act(
            "add bridge member",
            net_ops.add_bridge_member(self.session, bridge, member),
            ("bridges",),
            f"Added {member} to {bridge}",
        )

    async def remove_bridge_member(self, bridge: str, member: str) -> ActionResult:
        return await self._act(
            "remove bridge member",
            net_ops.remove_bridge_member(self.session, bridge, member),
            ("bridges",),
            f"Removed {member} from {bridge}",
        )

    async def create_vm_switch(
        self, name: str, interface: str | None = None, address: str | None = None
    ) -> ActionResult:
        return await self._act(
            "create switch",
            net_ops.create_vm_switch(self.session, name, interface, address),
            ("switches", "interfaces"),
            f"Created switch {name}",
        )

    async def delete_vm_switch(self, name: str) -> ActionResult:
        return await self._act(
            "delete switch",
            net_ops.delete_vm_switch(self.session, name),
            ("switches", "interfaces"),
            f"Deleted switch {name}",
        )

    async def add_route(self, destination: str, gateway: str, netif: str | None = None) -> ActionResult:
        return await self._act(
            "add route",
            net_ops.add_route(self.session, destination, gateway, netif),
            ("routes",),
            f"Added route to {destination} via {gateway}",
        )

    async def delete_route(self, destination: str, gateway: str | None = None) -> ActionResult:
        return await self._act(
            "delete route",
            net_ops.delete_route(self.session, destination, gateway),
            ("routes",),
            f"Deleted route to {destination}",
        )

    # Virtual machines

    async def start_vm(self, name: str) -> ActionResult:
        return await self._act(
            "start VM", vm_ops.start_vm(self.session, name), ("vms",), f"Started {name}", self.settings.vm_settle_delay
        )

    async def stop_vm(self, name: str) -> ActionResult:
        return await self._act(
            "stop VM", vm_ops.stop_vm(self.session, name), ("vms",), f"Stopped {name}", self.settings.vm_settle_delay
        )

    async def restart_vm(self, name: str) -> ActionResult:
        return await self._act(
            "restart VM",
            vm_ops.restart_vm(self.session, name),
            ("vms",),
            f"Restarted {name}",
            self.settings.vm_restart_settle_delay,
        )

    async def poweroff_vm(self, name: str) -> ActionResult:
        return await self._act(
            "power off VM",
            vm_ops.poweroff_vm(self.session, name),
            ("vms",),
            f"Powered off {name}",
            self.settings.vm_settle_delay,
        )

    async def destroy_vm(self, name: str) -> ActionResult:
        return await self._act("destroy VM", vm_ops.destroy_vm(self.session, name), ("vms",), f"Destroyed {name}")

    async def create_vm(self, options: VMCreateOptions) -> ActionResult:
        return await self._act(
            "create VM", vm_ops.create_vm(self.session, options), ("vms",), f"Created {options.name}"
        )

    async def get_vm_info(self, name: str) -> VMInfo | None:
        """Fetch details of one VM; None with the error slot set on failure."""
        try:
            return await vm_ops.get_vm_info(self.session, name)
        except BsdctlError as e:
            self._set_error(f"Failed to load VM info: {e}")
            return None

    # Scheduled tasks

    async def add_task(
        self, minute: str, hour: str, day_of_month: str, month: str, day_of_week: str, command: str
    ) -> ActionResult:
        return await self._act(
            "add task",
            cron_ops.add_cron_task(self.session, minute, hour, day_of_month, month, day_of_week, command),
            ("tasks",),
            "Scheduled task added",
        )

    async def update_task(
        self,
        task: CronTask,
        minute: str,
        hour: str,
        day_of_month: str,
        month: str,
        day_of_week: str,
        command: str,
    ) -> ActionResult:
        return await self._act(
            "update task",
            cron_ops.update_cron_task(self.session, task, minute, hour, day_of_month, month, day_of_week, command),
            ("tasks",),
            "Scheduled task updated",
        )

    async def delete_task(self, task: CronTask) -> ActionResult:
        return await self._act(
            "delete task", cron_ops.delete_cron_task(self.session, task), ("tasks",), "Scheduled task deleted"
        )

    async def toggle_task(self, task: CronTask) -> ActionResult:
        action = "disable task" if task.enabled else "enable task"
        return await self._act(
            action,
            cron_ops.toggle_cron_task(self.session, task),
            ("tasks",),
            "Task disabled" if task.enabled else "Task enabled",
        )

    # Workflows

    def _replication_task(
        self, dataset: str, target: HostProfile, destination: str
    ) -> replication_flow.ReplicationTask:
        """Validated replication task; bad names raise InvalidArgumentError."""
        return replication_flow.ReplicationTask(
            source_dataset=replication_flow.validate_dataset_name(dataset, "Source dataset"),
            destination=replication_flow.validate_dataset_name(destination, "Destination"),
            target=target,
            key_path=self.settings.replication_key_path,
        )

    async def replicate(
        self,
        dataset: str,
        target: HostProfile,
        destination: str,
        target_state: "HostState | None" = None,
        on_status: replication_flow.StatusCallback | None = None,
    ) -> ActionResult:
        """Send a fresh snapshot of `dataset` from this host to `target`.

        Args:
            dataset: Source dataset on this host
            target: Receiving host
            destination: Dataset path on the target
            target_state: Display state of the target, refreshed on success
            on_status: Replication state callback
        """

        async def run() -> replication_flow.ReplicationResult:
            task = self._replication_task(dataset, target, destination)
            return await replication_flow.replicate(self.session, task, on_status, target_state)

        return await self._act(
            "replicate",
            run(),
            ("datasets",),
            f"Replicated {dataset} to {target.name}:{destination}",
        )

    async def schedule_replication(
        self,
        dataset: str,
        target: HostProfile,
        destination: str,
        cadence: Cadence,
        retention_seconds: int = 0,
    ) -> ActionResult:
        async def install() -> str:
            task = self._replication_task(dataset, target, destination)
            return await replication_flow.schedule_replication(self.session, task, cadence, retention_seconds)

        return await self._act(
            "schedule replication",
            install(),
            ("tasks",),
            f"Scheduled replication of {dataset} ({cadence.expression})",
        )

    async def bootstrap_trust(
        self,
        target: Session,
        on_status: bootstrap_flow.StatusCallback | None = None,
    ) -> ActionResult:
        """Let this host log in to `target` with its replication key."""
        return await self._act(
            "set up SSH trust",
            bootstrap_flow.bootstrap_trust(
                self.session,
                target,
                self.settings.replication_key_path,
                self.settings.bootstrap_timeout,
                on_status,
            ),
            success=f"{self.session.profile.name} trusts {target.profile.name}",
        )
