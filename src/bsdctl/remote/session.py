"""One authenticated command channel per managed host."""

import asyncio
import logging
from enum import Enum
from typing import Any

from ..models.config import HostProfile
from .exceptions import (
    BsdctlError,
    NotConnectedError,
    ProtocolError,
    RemoteCommandError,
    UnsupportedHostError,
)
from .transport import AsyncSSHTransport, CommandResult, Transport

logger = logging.getLogger(__name__)

VERIFY_COMMAND = "uname -s"


class SessionState(str, Enum):
    """Lifecycle of a Session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class Session:
    """Serialized command channel to one host.

    Commands submitted concurrently run one at a time in submission order.
    A Session never retries; failures are raised to the caller.
    """

    def __init__(
        self,
        profile: HostProfile,
        transport: Transport | None = None,
        connect_timeout: float = 10.0,
        expected_system: str | None = "FreeBSD",
    ) -> None:
        """Initialize session.

        Args:
            profile: Host to manage
            transport: Command channel, an AsyncSSHTransport by default
            connect_timeout: Seconds allowed for connection establishment
            expected_system: Required `uname -s` output, None to accept any
        """
        self.profile = profile
        self.transport: Transport = transport if transport is not None else AsyncSSHTransport()
        self.connect_timeout = connect_timeout
        self.expected_system = expected_system
        self.state = SessionState.IDLE
        self.failure_reason: str | None = None
        self.system_name: str | None = None
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Session {self.profile.name} {self.profile.destination}:{self.profile.port} {self.state.value}>"

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    async def __aenter__(self) -> "Session":
        """Async context manager entry.

        Returns:
            Self
        """
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()

    async def connect(self) -> None:
        """Connect and verify the host.

        Raises:
            AuthenticationError: Login or key rejected
            UnreachableError: Host unreachable or connect timeout
            ProtocolError: Verification failed or host is not the expected system
        """
        if self.state is SessionState.READY:
            return

        self.state = SessionState.CONNECTING
        self.failure_reason = None
        logger.info("Connecting to %s (%s:%d)", self.profile.name, self.profile.hostname, self.profile.port)
        try:
            await self.transport.connect(self.profile, self.connect_timeout)
            self.system_name = await self._verify()
        except BsdctlError as e:
            self.state = SessionState.FAILED
            self.failure_reason = str(e)
            logger.warning("Connection to %s failed: %s", self.profile.name, e)
            await self._close_transport()
            raise

        self.state = SessionState.READY
        logger.info("Connected to %s (%s)", self.profile.name, self.system_name)

    async def _verify(self) -> str:
        result = await self.transport.run(VERIFY_COMMAND)
        system = result.stdout.strip()
        if result.exit_status != 0 or not system:
            raise ProtocolError(
                f"Verification command failed on {self.profile.hostname}: {result.output.strip() or 'no output'}"
            )
        if self.expected_system is not None and system != self.expected_system:
            raise UnsupportedHostError(self.expected_system, system)
        return system

    def _require_ready(self) -> None:
        if self.state is not SessionState.READY:
            raise NotConnectedError(f"Session to {self.profile.name} is {self.state.value}, not ready")

    async def run(self, command: str, log_as: str | None = None) -> CommandResult:
        """Run a command and return its result regardless of exit status.

        Args:
            command: Shell command line
            log_as: Redacted form to log instead of the command

        Returns:
            Captured CommandResult

        Raises:
            NotConnectedError: If the session is not ready
        """
        self._require_ready()
        async with self._lock:
            # a disconnect may have run while this command waited
            self._require_ready()
            logger.debug("[%s] $ %s", self.profile.name, log_as or command)
            result = await self.transport.run(command)
        logger.debug("[%s] exit %s", self.profile.name, result.exit_status)
        return result

    async def execute(self, command: str, log_as: str | None = None) -> str:
        """Run a command and return stdout, raising on failure.

        Args:
            command: Shell command line
            log_as: Redacted form to log instead of the command

        Returns:
            Standard output text

        Raises:
            NotConnectedError: If the session is not ready
            RemoteCommandError: If the command exits non-zero
        """
        result = await self.run(command, log_as=log_as)
        if result.exit_status != 0:
            error = RemoteCommandError(log_as or command, result.output, result.exit_status)
            logger.warning("[%s] command failed: %s", self.profile.name, error)
            raise error
        return result.stdout

    async def disconnect(self) -> None:
        """Close the channel. Safe to call more than once."""
        if self.state is SessionState.IDLE:
            return
        async with self._lock:
            await self._close_transport()
            self.state = SessionState.IDLE
        logger.info("Disconnected from %s", self.profile.name)

    async def _close_transport(self) -> None:
        try:
            await self.transport.close()
        except (OSError, BsdctlError) as e:
            logger.debug("Ignoring error while closing %s: %s", self.profile.name, e)
