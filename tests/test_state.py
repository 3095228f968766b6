"""Tests for the per-host state facade."""

import pytest
import pytest_asyncio

from bsdctl.models.tasks import Cadence
from bsdctl.models.zfs import DatasetKind
from bsdctl.remote.exceptions import BootstrapError, InvalidArgumentError, RemoteCommandError, ReplicationError
from bsdctl.remote.session import Session
from bsdctl.state import HostState
from bsdctl.workflows.bootstrap import PROBE_MARKER
from bsdctl.workflows.replication import ReplicationState, ReplicationTask, build_schedule_line

from .conftest import FakeTransport, make_profile

LIST_DATASETS = r"^zfs list -H -t all"

DATASETS_BEFORE = "tank/data\t1G\t9G\t1G\t/data\tlz4\t1.00x\tnone\tnone\tfilesystem\toff\n"
DATASETS_AFTER = DATASETS_BEFORE + "tank/data@s1\t0\t-\t1G\t-\t-\t1.00x\t-\t-\tsnapshot\t-\n"
TARGET_DATASETS = "backup/data\t1G\t9G\t1G\t/backup/data\tlz4\t1.00x\tnone\tnone\tfilesystem\toff\n"
READ_CRONTAB = r"^crontab -l 2>/dev/null \|\| true$"
PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIG9f root@alpha"


@pytest.fixture
def target_transport():
    return FakeTransport()


@pytest_asyncio.fixture
async def target_state(target_transport, settings):
    session = Session(make_profile("beta", "beta.example.org"), transport=target_transport)
    await session.connect()
    yield HostState(session, settings)
    await session.disconnect()


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_publishes_snapshot(self, state, transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        seen = []
        state.subscribe(seen.append)

        result = await state.refresh_datasets()

        assert [d.name for d in result.items] == ["tank/data"]
        assert result.updated_at is not None
        assert state.snapshot.datasets is result
        assert seen[0].datasets.is_loading
        assert not seen[-1].datasets.is_loading

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_items(self, state, transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        await state.refresh_datasets()
        transport.on(LIST_DATASETS, stderr="internal error: out of memory", exit_status=1)

        result = await state.refresh_datasets()

        assert [d.name for d in result.items] == ["tank/data"]
        assert "out of memory" in result.last_error
        assert state.error.startswith("Failed to load datasets: ")

    @pytest.mark.asyncio
    async def test_unsubscribe(self, state, transport):
        seen = []
        unsubscribe = state.subscribe(seen.append)
        unsubscribe()
        await state.refresh_pools()
        assert seen == []

    @pytest.mark.asyncio
    async def test_routes_combine_families(self, state, transport):
        transport.on(r"-f inet$", "Destination Gateway Flags Netif\ndefault 192.168.1.1 UGS em0\n")
        transport.on(r"-f inet6$", "Destination Gateway Flags Netif\ndefault fe80::1%em0 UG em0\n")
        result = await state.refresh_routes()
        assert [r.is_ipv6 for r in result.items] == [False, True]

    @pytest.mark.asyncio
    async def test_vms_without_vm_bhyve(self, state, transport):
        transport.on(r"^which vm$", exit_status=1)
        result = await state.refresh_vms()
        assert result.items == ()
        assert state.snapshot.vm_bhyve is not None
        assert not state.snapshot.vm_bhyve.installed
        assert transport.ran(r"^vm list") == []

    @pytest.mark.asyncio
    async def test_vms_listed_when_usable(self, state, transport):
        transport.on(r"^which vm$", "/usr/local/sbin/vm\n")
        transport.on(r"^sysrc -n vm_enable vm_dir$", "YES\n/vm\n")
        transport.on(
            r"^vm list$",
            "NAME DATASTORE LOADER CPU MEMORY VNC AUTO STATE\n"
            "debian default grub 2 2G - No Stopped\n",
        )
        result = await state.refresh_vms()
        assert [vm.name for vm in result.items] == ["debian"]

    @pytest.mark.asyncio
    async def test_load_all_reports_each_failure_separately(self, state, transport):
        transport.on(r"^zpool list", "tank\t1T\t0\t1T\t0%\t0%\tONLINE\t-\n")
        transport.on(r"^netstat -ibn$", stderr="netstat: kvm not available", exit_status=1)
        snapshot = await state.load_all()
        assert [p.name for p in snapshot.pools.items] == ["tank"]
        assert snapshot.pools.last_error is None
        assert snapshot.interfaces.last_error is not None
        assert snapshot.error.startswith("Failed to load interfaces")


class TestActions:
    @pytest.mark.asyncio
    async def test_snapshot_end_to_end(self, state, transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        await state.refresh_datasets()
        transport.on(LIST_DATASETS, DATASETS_AFTER)

        result = await state.create_snapshot("tank/data", "s1")

        assert result.ok
        assert result.value == "tank/data@s1"
        assert transport.ran(r"^zfs snapshot tank/data@s1$")
        items = state.snapshot.datasets.items
        assert [d.kind for d in items] == [DatasetKind.FILESYSTEM, DatasetKind.SNAPSHOT]
        assert [d.name for d in state.snapshot.snapshots] == ["tank/data@s1"]
        assert state.error is None

    @pytest.mark.asyncio
    async def test_failed_action_sets_error_and_keeps_state(self, state, transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        await state.refresh_datasets()
        before = state.snapshot.datasets
        transport.on(r"^zfs destroy", stderr="cannot destroy 'tank/data': dataset is busy", exit_status=1)

        result = await state.destroy_dataset("tank/data")

        assert not result.ok
        assert isinstance(result.error, RemoteCommandError)
        assert result.message == "Failed to destroy dataset: cannot destroy 'tank/data': dataset is busy"
        assert state.error == result.message
        assert state.snapshot.datasets is before

    @pytest.mark.asyncio
    async def test_invalid_argument_runs_nothing(self, state, transport):
        result = await state.create_snapshot("tank/data", "  ")
        assert not result.ok
        assert state.error == "Failed to create snapshot: Snapshot name must not be empty"
        assert transport.commands == ["uname -s"]

    @pytest.mark.asyncio
    async def test_clear_error(self, state):
        await state.delete_snapshot("not-a-snapshot")
        assert state.error is not None
        state.clear_error()
        assert state.error is None

    @pytest.mark.asyncio
    async def test_interface_error_message_names_interface(self, state, transport):
        transport.on(r"^ifconfig em9 up$", stderr="ifconfig: interface em9 does not exist", exit_status=1)
        result = await state.set_interface_up("em9")
        assert result.message.startswith("Failed to bring up em9: ")

    @pytest.mark.asyncio
    async def test_scrub_refreshes_scrub_status(self, state, transport):
        transport.on(r"^zpool status$", "  pool: tank\n  scan: scrub in progress since today\n\t10.0% done\n")
        result = await state.start_scrub("tank")
        assert result.ok
        (status,) = state.snapshot.scrub.items
        assert status.progress == 10.0

    @pytest.mark.asyncio
    async def test_create_pool_wipes_only_partitioned_disks(self, state, transport):
        transport.on(r"^geom disk list$", "Geom name: ada1\nGeom name: ada2\n")
        transport.on(r"^gpart show", "=>  40  100  ada2  GPT  (1T)\n")
        result = await state.create_pool("tank", ["ada1", "ada2"], wipe=True)
        assert result.ok
        assert transport.ran(r"^gpart destroy") == ["gpart destroy -F ada2"]
        assert transport.ran(r"^zpool create") == ["zpool create tank ada1 ada2"]

    @pytest.mark.asyncio
    async def test_vm_info_failure(self, state, transport):
        transport.on(r"^vm info", stderr="ghost: unable to locate virtual machine", exit_status=1)
        assert await state.get_vm_info("ghost") is None
        assert state.error.startswith("Failed to load VM info")

    @pytest.mark.asyncio
    async def test_settle_delay_applied(self, session, transport, monkeypatch, settings):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("bsdctl.state.asyncio.sleep", fake_sleep)
        state = HostState(session, settings.model_copy(update={"vm_restart_settle_delay": 3.0}))
        await state.restart_vm("debian")
        assert delays == [3.0]


class TestWorkflows:
    @pytest.mark.asyncio
    async def test_replicate_refreshes_both_hosts(self, state, transport, target_state, target_transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        target_transport.on(LIST_DATASETS, TARGET_DATASETS)
        states = []

        result = await state.replicate(
            "tank/data", target_state.session.profile, "backup/data", target_state, lambda s, m: states.append(s)
        )

        assert result.ok
        assert result.message == "Replicated tank/data to beta:backup/data"
        assert result.value.snapshot.startswith("tank/data@auto-")
        assert not result.value.incremental
        assert transport.ran(r"^zfs send tank/data@auto-")
        assert states[-1] is ReplicationState.DONE
        assert [d.name for d in state.snapshot.datasets.items] == ["tank/data"]
        assert [d.name for d in target_state.snapshot.datasets.items] == ["backup/data"]
        assert state.error is None

    @pytest.mark.asyncio
    async def test_failed_replication_keeps_state(self, state, transport, target_state, target_transport):
        transport.on(LIST_DATASETS, DATASETS_BEFORE)
        await state.refresh_datasets()
        before = state.snapshot.datasets
        transport.on(r"^zfs send", stderr="root@beta.example.org: Permission denied (publickey).", exit_status=255)

        result = await state.replicate("tank/data", target_state.session.profile, "backup/data", target_state)

        assert not result.ok
        assert isinstance(result.error, ReplicationError)
        assert result.error.state is ReplicationState.FULL_SEND
        assert result.message.startswith("Failed to replicate: Replication failed after full_send: ")
        assert state.error == result.message
        assert state.snapshot.datasets is before
        assert len(transport.ran(LIST_DATASETS)) == 1
        assert target_transport.ran(LIST_DATASETS) == []

    @pytest.mark.parametrize(
        "dataset, destination, reason",
        [
            ("", "backup/data", "Source dataset must not be empty"),
            ("tank/data", "  ", "Destination must not be empty"),
            ("tank/data", "backup/$(reboot)", "is not a valid dataset name"),
        ],
    )
    @pytest.mark.asyncio
    async def test_replicate_rejects_bad_names(self, state, transport, dataset, destination, reason):
        result = await state.replicate(dataset, make_profile("beta", "beta.example.org"), destination)

        assert not result.ok
        assert isinstance(result.error, InvalidArgumentError)
        assert state.error.startswith("Failed to replicate: ")
        assert reason in state.error
        assert transport.commands == ["uname -s"]

    @pytest.mark.asyncio
    async def test_schedule_replication_refreshes_tasks(self, state, transport, settings):
        target = make_profile("beta", "beta.example.org")
        task = ReplicationTask(
            source_dataset="tank/data",
            destination="backup/data",
            target=target,
            key_path=settings.replication_key_path,
        )
        line = build_schedule_line(task, Cadence.daily(2, 30))
        transport.on(READ_CRONTAB, line + "\n")

        result = await state.schedule_replication("tank/data", target, "backup/data", Cadence.daily(2, 30))

        assert result.ok
        assert result.value == line
        assert result.message == "Scheduled replication of tank/data (30 2 * * *)"
        assert len(transport.ran(r"\| crontab -$")) == 1
        (scheduled,) = state.snapshot.tasks.items
        assert scheduled.replication_details.target_dataset == "backup/data"

    @pytest.mark.asyncio
    async def test_schedule_replication_rejects_empty_destination(self, state, transport):
        result = await state.schedule_replication(
            "tank/data", make_profile("beta", "beta.example.org"), "", Cadence.daily(2, 30)
        )

        assert not result.ok
        assert isinstance(result.error, InvalidArgumentError)
        assert state.error == "Failed to schedule replication: Destination must not be empty"
        assert transport.ran(r"crontab") == []

    @pytest.mark.asyncio
    async def test_bootstrap_trust(self, state, transport, target_state):
        transport.on(r"\.pub$", PUBLIC_KEY + "\n")
        transport.on(r"^ssh -i", f"{PROBE_MARKER}\n")
        messages = []

        result = await state.bootstrap_trust(target_state.session, messages.append)

        assert result.ok
        assert result.message == "alpha trusts beta"
        assert messages[-1] == "alpha can log in to beta"
        assert state.error is None

    @pytest.mark.asyncio
    async def test_bootstrap_trust_unreachable(self, state, transport, target_state, target_transport):
        transport.on(r"\.pub$", PUBLIC_KEY + "\n")
        transport.on(r"^ssh -i", "ssh: connect to host beta.example.org port 22: Connection refused\n")

        result = await state.bootstrap_trust(target_state.session)

        assert not result.ok
        assert isinstance(result.error, BootstrapError)
        assert state.error.startswith("Failed to set up SSH trust: ")
        assert "not reachable" in state.error
        assert target_transport.ran(r"authorized_keys") == []
