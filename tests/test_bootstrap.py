"""Tests for SSH trust bootstrap between two hosts."""

import shlex

import pytest
import pytest_asyncio

from bsdctl.remote.exceptions import BootstrapError
from bsdctl.remote.session import Session
from bsdctl.workflows.bootstrap import (
    PROBE_MARKER,
    TrustBootstrap,
    authorize_key_command,
    ensure_key_command,
    probe_command,
    refresh_host_key_command,
)

from .conftest import FakeTransport, make_profile

PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIG9f root@alpha"
DENIED = "root@beta.example.org: Permission denied (publickey).\n"
UNKNOWN_HOST_KEY = "No ED25519 host key is known for beta.example.org.\nHost key verification failed.\n"


class Network:
    """Shared state of the two fake hosts."""

    def __init__(self):
        self.authorized_keys: list[str] = []
        self.known_host = True

    def probe(self, command):
        if not self.known_host:
            return UNKNOWN_HOST_KEY, "", 0
        if PUBLIC_KEY in self.authorized_keys:
            return f"{PROBE_MARKER}\n", "", 0
        return DENIED, "", 0

    def authorize(self, command):
        key = shlex.split(command.split("grep -qxF -- ", 1)[1])[0]
        if key not in self.authorized_keys:
            self.authorized_keys.append(key)
        return "", "", 0

    def rescan(self, command):
        self.known_host = True
        return "", "", 0


@pytest.fixture
def network():
    return Network()


@pytest.fixture
def target_transport(network):
    return FakeTransport().on_call(r"authorized_keys", network.authorize)


@pytest_asyncio.fixture
async def target_session(target_transport):
    session = Session(make_profile("beta", "beta.example.org"), transport=target_transport)
    await session.connect()
    yield session
    await session.disconnect()


@pytest.fixture
def source(transport, network):
    transport.on(r"cat ~/\.ssh/id_replication\.pub$", PUBLIC_KEY + "\n")
    transport.on_call(r"^ssh -i", network.probe)
    transport.on_call(r"ssh-keyscan", network.rescan)
    return transport


class TestCommands:
    def test_ensure_key(self):
        command = ensure_key_command("~/.ssh/id_replication")
        assert "(test -f ~/.ssh/id_replication || ssh-keygen -t ed25519 -N '' -f ~/.ssh/id_replication -q)" in command
        assert command.endswith("cat ~/.ssh/id_replication.pub")

    def test_probe_is_non_interactive(self):
        command = probe_command(make_profile("beta", "beta.example.org", port=2222))
        assert "BatchMode=yes" in command
        assert "StrictHostKeyChecking=yes" in command
        assert "-p 2222" in command
        assert command.endswith("2>&1 || true")

    def test_authorize_is_idempotent_shell(self):
        command = authorize_key_command(PUBLIC_KEY)
        assert f"grep -qxF -- '{PUBLIC_KEY}' ~/.ssh/authorized_keys ||" in command

    def test_refresh_host_key_uses_bracketed_name_for_port(self):
        command = refresh_host_key_command(make_profile("beta", "beta.example.org", port=2222))
        assert "ssh-keygen -R '[beta.example.org]:2222'" in command
        assert "ssh-keyscan -p 2222 -T 5 beta.example.org" in command


class TestTrustBootstrap:
    @pytest.mark.asyncio
    async def test_authorizes_key_when_denied(self, session, source, target_session, target_transport, network):
        messages = []
        await TrustBootstrap(session, target_session, on_status=messages.append).run()

        assert network.authorized_keys == [PUBLIC_KEY]
        assert len(target_transport.ran(r"authorized_keys")) == 1
        assert len(source.ran(r"^ssh -i")) == 2
        assert messages[-1] == "alpha can log in to beta"

    @pytest.mark.asyncio
    async def test_already_trusted_changes_nothing(self, session, source, target_session, target_transport, network):
        network.authorized_keys.append(PUBLIC_KEY)
        await TrustBootstrap(session, target_session).run()
        assert target_transport.ran(r"authorized_keys") == []
        assert source.ran(r"ssh-keyscan") == []

    @pytest.mark.asyncio
    async def test_rerun_does_not_duplicate_key(self, session, source, target_session, network):
        await TrustBootstrap(session, target_session).run()
        await TrustBootstrap(session, target_session).run()
        assert network.authorized_keys == [PUBLIC_KEY]

    @pytest.mark.asyncio
    async def test_rescans_unknown_host_key(self, session, source, target_session, network):
        network.known_host = False
        network.authorized_keys.append(PUBLIC_KEY)
        await TrustBootstrap(session, target_session).run()
        assert len(source.ran(r"ssh-keyscan")) == 1

    @pytest.mark.asyncio
    async def test_rescan_then_authorize(self, session, source, target_session, network):
        network.known_host = False
        await TrustBootstrap(session, target_session).run()
        assert len(source.ran(r"ssh-keyscan")) == 1
        assert network.authorized_keys == [PUBLIC_KEY]

    @pytest.mark.asyncio
    async def test_unreachable_target(self, session, source, target_session, target_transport):
        source.on(r"^ssh -i", "ssh: connect to host beta.example.org port 22: Connection refused\n")
        with pytest.raises(BootstrapError, match="not reachable") as exc_info:
            await TrustBootstrap(session, target_session).run()
        assert exc_info.value.step == "login test"
        assert target_transport.ran(r"authorized_keys") == []

    @pytest.mark.asyncio
    async def test_recovery_attempted_once(self, session, source, target_session, target_transport):
        source.on(r"^ssh -i", DENIED)
        with pytest.raises(BootstrapError, match="still failing"):
            await TrustBootstrap(session, target_session).run()
        assert len(target_transport.ran(r"authorized_keys")) == 1

    @pytest.mark.asyncio
    async def test_unclassified_failure(self, session, source, target_session):
        source.on(r"^ssh -i", "something odd happened\n")
        with pytest.raises(BootstrapError, match="Login test failed: something odd happened"):
            await TrustBootstrap(session, target_session).run()

    @pytest.mark.asyncio
    async def test_missing_public_key(self, session, transport, target_session):
        transport.on(r"\.pub$", "cat: /root/.ssh/id_replication.pub: No such file or directory\n")
        with pytest.raises(BootstrapError) as exc_info:
            await TrustBootstrap(session, target_session).run()
        assert exc_info.value.step == "key setup"

    @pytest.mark.asyncio
    async def test_target_step_failure(self, session, source, target_session, target_transport):
        target_transport.on(r"authorized_keys", stderr="touch: Read-only file system", exit_status=1)
        with pytest.raises(BootstrapError, match="authorize key failed") as exc_info:
            await TrustBootstrap(session, target_session).run()
        assert exc_info.value.step == "authorize key"
