"""Tests for Session lifecycle and command handling."""

import asyncio

import pytest

from bsdctl.remote.exceptions import (
    NotConnectedError,
    ProtocolError,
    RemoteCommandError,
    UnreachableError,
    UnsupportedHostError,
)
from bsdctl.remote.session import Session, SessionState

from .conftest import FakeTransport


class GatedTransport(FakeTransport):
    """Holds every command until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.gate.set()

    async def run(self, command):
        await self.gate.wait()
        return await super().run(command)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_verifies_host(self, profile, transport):
        session = Session(profile, transport=transport)
        await session.connect()
        assert session.state is SessionState.READY
        assert session.system_name == "FreeBSD"
        assert transport.commands == ["uname -s"]

    @pytest.mark.asyncio
    async def test_connect_is_noop_when_ready(self, session, transport):
        await session.connect()
        assert transport.commands == ["uname -s"]

    @pytest.mark.asyncio
    async def test_unsupported_host(self, profile):
        transport = FakeTransport(system="Linux")
        session = Session(profile, transport=transport)
        with pytest.raises(UnsupportedHostError) as exc_info:
            await session.connect()
        assert exc_info.value.actual == "Linux"
        assert session.state is SessionState.FAILED
        assert "Linux" in session.failure_reason
        assert transport.close_count == 1

    @pytest.mark.asyncio
    async def test_any_system_when_not_required(self, profile):
        session = Session(profile, transport=FakeTransport(system="Linux"), expected_system=None)
        await session.connect()
        assert session.system_name == "Linux"

    @pytest.mark.asyncio
    async def test_transport_failure(self, profile, transport):
        transport.connect_error = UnreachableError("Cannot reach alpha")
        session = Session(profile, transport=transport)
        with pytest.raises(UnreachableError):
            await session.connect()
        assert session.state is SessionState.FAILED

    @pytest.mark.asyncio
    async def test_empty_verification_output(self, profile):
        transport = FakeTransport(system="")
        session = Session(profile, transport=transport)
        with pytest.raises(ProtocolError, match="Verification"):
            await session.connect()

    @pytest.mark.asyncio
    async def test_context_manager(self, profile, transport):
        async with Session(profile, transport=transport) as session:
            assert session.is_ready
        assert session.state is SessionState.IDLE
        assert transport.close_count == 1


class TestCommands:
    @pytest.mark.asyncio
    async def test_run_requires_ready(self, profile, transport):
        session = Session(profile, transport=transport)
        with pytest.raises(NotConnectedError):
            await session.run("zpool list")
        assert transport.commands == []

    @pytest.mark.asyncio
    async def test_execute_returns_stdout(self, session, transport):
        transport.on(r"^hostname$", "alpha\n")
        assert await session.execute("hostname") == "alpha\n"

    @pytest.mark.asyncio
    async def test_execute_raises_with_raw_output(self, session, transport):
        transport.on(r"^zfs destroy", stderr="cannot open 'tank/x': dataset does not exist\n", exit_status=1)
        with pytest.raises(RemoteCommandError) as exc_info:
            await session.execute("zfs destroy tank/x")
        assert exc_info.value.exit_status == 1
        assert "does not exist" in exc_info.value.raw_output

    @pytest.mark.asyncio
    async def test_run_does_not_raise_on_failure(self, session, transport):
        transport.on(r"^false$", exit_status=1)
        result = await session.run("false")
        assert not result.ok

    @pytest.mark.asyncio
    async def test_log_as_used_in_error(self, session, transport):
        transport.on(r"wpa_passphrase", exit_status=1, stderr="boom")
        with pytest.raises(RemoteCommandError) as exc_info:
            await session.execute("wpa_passphrase secret", log_as="wpa_passphrase <redacted>")
        assert exc_info.value.command == "wpa_passphrase <redacted>"

    @pytest.mark.asyncio
    async def test_concurrent_commands_run_in_submission_order(self, session, transport):
        await asyncio.gather(*(session.execute(f"echo {n}") for n in range(5)))
        assert transport.commands[1:] == [f"echo {n}" for n in range(5)]


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, profile, transport):
        session = Session(profile, transport=transport)
        await session.disconnect()
        assert transport.close_count == 0
        await session.connect()
        await session.disconnect()
        await session.disconnect()
        assert transport.close_count == 1
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_commands_fail_after_disconnect(self, session):
        await session.disconnect()
        with pytest.raises(NotConnectedError):
            await session.execute("uptime")

    @pytest.mark.asyncio
    async def test_command_queued_behind_disconnect_is_refused(self, profile):
        transport = GatedTransport()
        session = Session(profile, transport=transport)
        await session.connect()
        transport.gate.clear()

        running = asyncio.create_task(session.run("zpool scrub tank"))
        await asyncio.sleep(0)
        closing = asyncio.create_task(session.disconnect())
        queued = asyncio.create_task(session.run("zpool list"))
        await asyncio.sleep(0)
        transport.gate.set()

        await running
        await closing
        with pytest.raises(NotConnectedError, match="Session to alpha is .* not ready"):
            await queued
        assert "zpool list" not in transport.commands
