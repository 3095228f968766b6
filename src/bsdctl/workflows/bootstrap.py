"""SSH trust bootstrap from a source host to a target host.

After a successful run the source host can log in to the target
non-interactively with its dedicated replication key, which is what
replication needs. Re-running against an already trusted target changes
nothing.
"""

import asyncio
import logging
from collections.abc import Callable

from ..models.config import HostProfile
from ..remote.exceptions import BootstrapError, BsdctlError, ErrorKind, classify_output, describe_kind
from ..remote.session import Session
from ..utils.shell import quote, quote_path, ssh_hop
from .replication import DEFAULT_KEY_PATH

logger = logging.getLogger(__name__)

PROBE_MARKER = "bootstrap-ok"
PROBE_OPTIONS = ("BatchMode=yes", "StrictHostKeyChecking=yes", "ConnectTimeout=5")

StatusCallback = Callable[[str], None]


def ensure_key_command(key_path: str = DEFAULT_KEY_PATH) -> str:
    """Create the ed25519 keypair unless present, then print its public half."""
    key = quote_path(key_path)
    return (
        "mkdir -p ~/.ssh && chmod 700 ~/.ssh && "
        f"(test -f {key} || ssh-keygen -t ed25519 -N '' -f {key} -q) && "
        f"cat {key}.pub"
    )


def probe_command(target: HostProfile, key_path: str = DEFAULT_KEY_PATH) -> str:
    """Non-interactive login attempt whose outcome is read from its output."""
    return f"{ssh_hop(target, key_path, f'echo {PROBE_MARKER}', PROBE_OPTIONS)} 2>&1 || true"


def authorize_key_command(public_key: str) -> str:
    """Append a public key to authorized_keys unless already present."""
    key = quote(public_key)
    return (
        "mkdir -p ~/.ssh && chmod 700 ~/.ssh && touch ~/.ssh/authorized_keys && "
        "chmod 600 ~/.ssh/authorized_keys && "
        f"(grep -qxF -- {key} ~/.ssh/authorized_keys || printf '%s\\n' {key} >> ~/.ssh/authorized_keys)"
    )


def refresh_host_key_command(target: HostProfile) -> str:
    """Replace the known_hosts record for the target with a freshly scanned one."""
    return (
        "mkdir -p ~/.ssh && touch ~/.ssh/known_hosts && "
        f"(ssh-keygen -R {quote(target.known_hosts_name)} >/dev/null 2>&1 || true) && "
        f"ssh-keyscan -p {target.port} -T 5 {quote(target.hostname)} 2>/dev/null >> ~/.ssh/known_hosts"
    )


class TrustBootstrap:
    """Establishes key trust from a source host to a target host.

    Recovery from an authentication failure and from an unknown or
    changed host key is attempted at most once each per run.
    """

    def __init__(
        self,
        source: Session,
        target: Session,
        key_path: str = DEFAULT_KEY_PATH,
        timeout: float = 15.0,
        on_status: StatusCallback | None = None,
    ) -> None:
        """Initialize bootstrap.

        Args:
            source: Session to the host that will initiate replication
            target: Operator session to the host that must trust the key
            key_path: Dedicated keypair on the source host
            timeout: Seconds allowed for each remote step
            on_status: Called with a human readable message per step
        """
        self.source = source
        self.target = target
        self.key_path = key_path
        self.timeout = timeout
        self.on_status = on_status

    def _status(self, message: str) -> None:
        logger.info("Bootstrap: %s", message)
        if self.on_status is not None:
            self.on_status(message)

    async def _step(self, step: str, session: Session, command: str) -> str:
        try:
            return await asyncio.wait_for(session.execute(command), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise BootstrapError(f"{step} timed out after {self.timeout:g}s", step=step) from e
        except BsdctlError as e:
            raise BootstrapError(f"{step} failed: {e}", step=step) from e

    async def _probe(self) -> ErrorKind | None:
        """Try the login; None means it succeeded."""
        output = await self._step("login test", self.source, probe_command(self.target.profile, self.key_path))
        if PROBE_MARKER in output.splitlines() or output.strip().endswith(PROBE_MARKER):
            return None
        kind = classify_output(output)
        if kind is None:
            last = output.strip().splitlines()[-1] if output.strip() else "no output"
            raise BootstrapError(f"Login test failed: {last}", step="login test")
        return kind

    async def run(self) -> None:
        """Run the procedure.

        Raises:
            BootstrapError: On unreachable targets, failed steps or exhausted recovery
        """
        target = self.target.profile
        self._status(f"Checking replication key on {self.source.profile.name}")
        public_key = (await self._step("key setup", self.source, ensure_key_command(self.key_path))).strip()
        if not public_key.startswith("ssh-"):
            raise BootstrapError("Could not read the replication public key", step="key setup")
        self._status(f"Public key ready ({public_key.split()[0]})")

        authorized = False
        rescanned = False
        while True:
            self._status(f"Testing login from {self.source.profile.name} to {target.destination}")
            kind = await self._probe()
            if kind is None:
                self._status(f"{self.source.profile.name} can log in to {target.name}")
                return

            if kind.is_reachability:
                raise BootstrapError(
                    f"{target.hostname} is not reachable from {self.source.profile.name}: {describe_kind(kind)}",
                    step="login test",
                )
            if kind.is_authentication and not authorized:
                self._status(f"Key not accepted, adding it to {target.name}'s authorized_keys")
                await self._step("authorize key", self.target, authorize_key_command(public_key))
                authorized = True
                continue
            if kind.is_host_identity and not rescanned:
                self._status(f"Host key for {target.hostname} unknown or changed, refreshing known_hosts")
                await self._step("refresh host key", self.source, refresh_host_key_command(target))
                rescanned = True
                continue
            raise BootstrapError(
                f"Login still failing after recovery: {describe_kind(kind)}",
                step="login test",
            )


async def bootstrap_trust(
    source: Session,
    target: Session,
    key_path: str = DEFAULT_KEY_PATH,
    timeout: float = 15.0,
    on_status: StatusCallback | None = None,
) -> None:
    """Establish key trust from source to target. See TrustBootstrap."""
    await TrustBootstrap(source, target, key_path, timeout, on_status).run()
