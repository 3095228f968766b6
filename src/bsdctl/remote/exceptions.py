"""Custom exceptions and failure classification for bsdctl."""

from enum import Enum


class ErrorKind(str, Enum):
    """Known failure classes recognised in captured command output."""

    HOST_KEY_CHANGED = "host_key_changed"
    HOST_KEY_VERIFICATION_FAILED = "host_key_verification_failed"
    PERMISSION_DENIED = "permission_denied"
    UNRESOLVABLE_HOST = "unresolvable_host"
    NO_ROUTE = "no_route"
    CONNECTION_REFUSED = "connection_refused"
    TIMED_OUT = "timed_out"
    NOT_FOUND = "not_found"

    @property
    def is_reachability(self) -> bool:
        return self in _REACHABILITY

    @property
    def is_authentication(self) -> bool:
        return self is ErrorKind.PERMISSION_DENIED

    @property
    def is_host_identity(self) -> bool:
        return self in (ErrorKind.HOST_KEY_CHANGED, ErrorKind.HOST_KEY_VERIFICATION_FAILED)


_REACHABILITY = frozenset(
    {
        ErrorKind.UNRESOLVABLE_HOST,
        ErrorKind.NO_ROUTE,
        ErrorKind.CONNECTION_REFUSED,
        ErrorKind.TIMED_OUT,
    }
)

# Order matters: ssh prints "Permission denied" after a host key warning,
# so identity markers are checked first.
_MARKERS: tuple[tuple[str, ErrorKind], ...] = (
    ("REMOTE HOST IDENTIFICATION HAS CHANGED", ErrorKind.HOST_KEY_CHANGED),
    ("Host key verification failed", ErrorKind.HOST_KEY_VERIFICATION_FAILED),
    ("Permission denied", ErrorKind.PERMISSION_DENIED),
    ("Could not resolve", ErrorKind.UNRESOLVABLE_HOST),
    ("No route to host", ErrorKind.NO_ROUTE),
    ("Connection refused", ErrorKind.CONNECTION_REFUSED),
    ("Connection timed out", ErrorKind.TIMED_OUT),
    ("Operation timed out", ErrorKind.TIMED_OUT),
    ("does not exist", ErrorKind.NOT_FOUND),
    ("No such file or directory", ErrorKind.NOT_FOUND),
    ("not found", ErrorKind.NOT_FOUND),
)

_HINTS = {
    ErrorKind.HOST_KEY_CHANGED: "the remote host key changed since it was last recorded",
    ErrorKind.HOST_KEY_VERIFICATION_FAILED: "the remote host key is unknown or could not be verified",
    ErrorKind.PERMISSION_DENIED: "permission denied (connect as root or check the key)",
    ErrorKind.UNRESOLVABLE_HOST: "the host name could not be resolved",
    ErrorKind.NO_ROUTE: "no route to host",
    ErrorKind.CONNECTION_REFUSED: "connection refused (is sshd running?)",
    ErrorKind.TIMED_OUT: "the connection timed out",
    ErrorKind.NOT_FOUND: "the requested object was not found",
}


def classify_output(text: str | None) -> ErrorKind | None:
    """Classify captured command output by known failure substrings.

    Args:
        text: Combined stdout/stderr of a command

    Returns:
        The first matching ErrorKind, or None if nothing is recognised
    """
    if not text:
        return None
    for marker, kind in _MARKERS:
        if marker in text:
            return kind
    return None


def describe_kind(kind: ErrorKind) -> str:
    """Human readable hint for an ErrorKind."""
    return _HINTS[kind]


class BsdctlError(Exception):
    """Base exception for bsdctl."""

    pass


class ConfigError(BsdctlError):
    """Configuration related errors."""

    pass


class InvalidArgumentError(BsdctlError):
    """An identifier or option failed validation before any command ran."""

    pass


class TransportError(BsdctlError):
    """The command channel could not be established or was lost."""

    pass


class UnreachableError(TransportError):
    """Host unreachable, connection refused or connect timeout."""

    pass


class ProtocolError(TransportError):
    """The transport connected but the session is not usable."""

    pass


class UnsupportedHostError(ProtocolError):
    """The host answered the verification command with an unexpected system."""

    def __init__(self, expected: str, actual: str) -> None:
        """Initialize unsupported host error.

        Args:
            expected: System name that was required
            actual: System name reported by the host
        """
        super().__init__(f"Host reports '{actual}', expected '{expected}'")
        self.expected = expected
        self.actual = actual


class AuthenticationError(BsdctlError):
    """Authentication failures."""

    pass


class NotConnectedError(BsdctlError):
    """A command was submitted to a session that is not ready."""

    pass


class RemoteCommandError(BsdctlError):
    """A remote tool ran and reported failure."""

    def __init__(
        self,
        command: str,
        raw_output: str,
        exit_status: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        """Initialize remote command error.

        Args:
            command: Command line that failed
            raw_output: Captured stdout and stderr, verbatim
            exit_status: Remote exit status if known
            kind: Classification, computed from raw_output when omitted
        """
        self.command = command
        self.raw_output = raw_output
        self.exit_status = exit_status
        self.kind = kind if kind is not None else classify_output(raw_output)
        super().__init__(self._format())

    def _format(self) -> str:
        detail = self.raw_output.strip().splitlines()
        summary = detail[-1] if detail else f"exit status {self.exit_status}"
        if self.kind is not None:
            return f"{summary} ({describe_kind(self.kind)})"
        return summary


class ParseError(BsdctlError):
    """A single line of tool output could not be parsed."""

    def __init__(self, message: str, line: str | None = None) -> None:
        super().__init__(message)
        self.line = line


class ReplicationError(BsdctlError):
    """Replication failed at a specific step."""

    def __init__(self, message: str, state: object | None = None) -> None:
        """Initialize replication error.

        Args:
            message: Error message
            state: ReplicationState reached when the failure happened
        """
        super().__init__(message)
        self.state = state


class BootstrapError(BsdctlError):
    """Trust bootstrap failed at a specific step."""

    def __init__(self, message: str, step: str | None = None) -> None:
        """Initialize bootstrap error.

        Args:
            message: Error message
            step: Name of the step that failed
        """
        super().__init__(message)
        self.step = step
