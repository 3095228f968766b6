"""Remote command channel layer."""

from .exceptions import (
    AuthenticationError,
    BootstrapError,
    BsdctlError,
    ConfigError,
    ErrorKind,
    InvalidArgumentError,
    NotConnectedError,
    ParseError,
    ProtocolError,
    RemoteCommandError,
    ReplicationError,
    TransportError,
    UnreachableError,
    UnsupportedHostError,
    classify_output,
    describe_kind,
)
from .registry import SessionRegistry
from .session import Session, SessionState
from .transport import AsyncSSHTransport, CommandResult, Transport

__all__ = [
    "AsyncSSHTransport",
    "AuthenticationError",
    "BootstrapError",
    "BsdctlError",
    "CommandResult",
    "ConfigError",
    "ErrorKind",
    "InvalidArgumentError",
    "NotConnectedError",
    "ParseError",
    "ProtocolError",
    "RemoteCommandError",
    "ReplicationError",
    "Session",
    "SessionRegistry",
    "SessionState",
    "Transport",
    "TransportError",
    "UnreachableError",
    "UnsupportedHostError",
    "classify_output",
    "describe_kind",
]
