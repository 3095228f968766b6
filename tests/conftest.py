"""Shared fixtures: a scripted transport and connected sessions."""

import re
from collections.abc import Callable

import pytest
import pytest_asyncio

from bsdctl.models.config import HostProfile, Settings
from bsdctl.remote.session import Session
from bsdctl.remote.transport import CommandResult
from bsdctl.state import HostState

Reply = tuple[str, str, int] | Callable[[str], tuple[str, str, int]]


class FakeTransport:
    """Transport answering commands from regex rules.

    The most recently added matching rule wins; unmatched commands
    succeed with empty output. Every command is recorded.
    """

    def __init__(self, system: str = "FreeBSD") -> None:
        self.system = system
        self.rules: list[tuple[re.Pattern[str], Reply]] = []
        self.commands: list[str] = []
        self.connected = False
        self.connect_error: Exception | None = None
        self.close_count = 0

    def on(self, pattern: str, stdout: str = "", stderr: str = "", exit_status: int = 0) -> "FakeTransport":
        self.rules.append((re.compile(pattern), (stdout, stderr, exit_status)))
        return self

    def on_call(self, pattern: str, reply: Callable[[str], tuple[str, str, int]]) -> "FakeTransport":
        self.rules.append((re.compile(pattern), reply))
        return self

    def ran(self, pattern: str) -> list[str]:
        """Commands matching a regex, in order."""
        regex = re.compile(pattern)
        return [command for command in self.commands if regex.search(command)]

    async def connect(self, profile: HostProfile, timeout: float) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def run(self, command: str) -> CommandResult:
        self.commands.append(command)
        if command == "uname -s":
            return CommandResult(command=command, stdout=f"{self.system}\n")
        for pattern, reply in reversed(self.rules):
            if pattern.search(command):
                stdout, stderr, status = reply(command) if callable(reply) else reply
                return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_status=status)
        return CommandResult(command=command)

    async def close(self) -> None:
        self.connected = False
        self.close_count += 1


def make_profile(name: str = "alpha", hostname: str = "alpha.example.org", port: int = 22) -> HostProfile:
    return HostProfile(name=name, hostname=hostname, port=port, user="root", key_path="/keys/id_ed25519")


@pytest.fixture
def profile() -> HostProfile:
    return make_profile()


@pytest.fixture
def settings() -> Settings:
    return Settings(scrub_settle_delay=0, vm_settle_delay=0, vm_restart_settle_delay=0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest_asyncio.fixture
async def session(profile: HostProfile, transport: FakeTransport) -> Session:
    session = Session(profile, transport=transport)
    await session.connect()
    yield session
    await session.disconnect()


@pytest_asyncio.fixture
async def state(session: Session, settings: Settings) -> HostState:
    return HostState(session, settings)
