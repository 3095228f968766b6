"""Command transport: the SSH channel a Session runs commands over."""

import asyncio
import logging
from typing import Protocol

import asyncssh
from pydantic import BaseModel

from ..models.config import HostProfile
from .exceptions import (
    AuthenticationError,
    NotConnectedError,
    ProtocolError,
    UnreachableError,
)

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    """Captured result of one remote command."""

    model_config = {"frozen": True}

    command: str
    stdout: str = ""
    stderr: str = ""
    exit_status: int | None = 0

    @property
    def output(self) -> str:
        """Stdout and stderr combined."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class Transport(Protocol):
    """Capability a Session needs from its command channel."""

    async def connect(self, profile: HostProfile, timeout: float) -> None: ...

    async def run(self, command: str) -> CommandResult: ...

    async def close(self) -> None: ...


class AsyncSSHTransport:
    """Transport backed by an asyncssh client connection."""

    def __init__(self) -> None:
        self._conn: asyncssh.SSHClientConnection | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _load_key(self, profile: HostProfile) -> asyncssh.SSHKey:
        """Load the private key named by the profile.

        Raises:
            AuthenticationError: If the key file is missing or unreadable
        """
        try:
            return asyncssh.read_private_key(profile.key_path)
        except (OSError, asyncssh.KeyImportError) as e:
            raise AuthenticationError(f"Cannot load key {profile.key_path}: {e}") from e

    async def connect(self, profile: HostProfile, timeout: float) -> None:
        """Open the SSH connection.

        Args:
            profile: Host to connect to
            timeout: Seconds allowed for connection establishment

        Raises:
            AuthenticationError: On rejected credentials
            UnreachableError: On network failures or timeout
            ProtocolError: On any other SSH failure
        """
        key = self._load_key(profile)
        try:
            self._conn = await asyncio.wait_for(
                asyncssh.connect(
                    profile.hostname,
                    port=profile.port,
                    username=profile.user,
                    client_keys=[key],
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise UnreachableError(
                f"Connection to {profile.hostname}:{profile.port} timed out after {timeout:g}s"
            ) from e
        except asyncssh.PermissionDenied as e:
            raise AuthenticationError(f"Authentication failed for {profile.destination}") from e
        except asyncssh.HostKeyNotVerifiable as e:
            raise ProtocolError(f"Host key for {profile.hostname} could not be verified: {e}") from e
        except asyncssh.Error as e:
            raise ProtocolError(f"SSH error: {e}") from e
        except OSError as e:
            raise UnreachableError(f"Cannot reach {profile.hostname}:{profile.port}: {e}") from e

    async def run(self, command: str) -> CommandResult:
        """Run one command and capture its output.

        Raises:
            NotConnectedError: If connect() has not succeeded
            ProtocolError: If the channel fails mid-command
        """
        if self._conn is None:
            raise NotConnectedError("Transport is not connected")
        try:
            completed = await self._conn.run(command, check=False)
        except (asyncssh.Error, OSError) as e:
            raise ProtocolError(f"Channel failed while running command: {e}") from e
        return CommandResult(
            command=command,
            stdout=_as_text(completed.stdout),
            stderr=_as_text(completed.stderr),
            exit_status=completed.exit_status,
        )

    async def close(self) -> None:
        """Close the connection."""
        if self._conn is not None:
            self._conn.close()
            await self._conn.wait_closed()
            self._conn = None


def _as_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
