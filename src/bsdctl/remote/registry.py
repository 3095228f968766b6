"""Explicit map of host profiles to their sessions."""

import asyncio
import logging
from collections.abc import Callable

from ..models.config import HostProfile, Settings
from .exceptions import ConfigError
from .session import Session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[HostProfile], Session]


class SessionRegistry:
    """Lazily created sessions keyed by profile name, with one current entry."""

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        """Initialize registry.

        Args:
            settings: Timeouts and expected system for new sessions
            session_factory: Builds a Session for a profile, overrides settings
        """
        self.settings = settings or Settings()
        self._factory = session_factory or self._default_factory
        self._sessions: dict[str, Session] = {}
        self._current: str | None = None

    def _default_factory(self, profile: HostProfile) -> Session:
        return Session(
            profile,
            connect_timeout=self.settings.connect_timeout,
            expected_system=self.settings.expected_system,
        )

    def __contains__(self, name: str) -> bool:
        return name in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, profile: HostProfile) -> Session:
        """Return the session for a profile, creating it on first use.

        The session is not connected by this call.
        """
        session = self._sessions.get(profile.name)
        if session is None:
            session = self._factory(profile)
            self._sessions[profile.name] = session
            logger.debug("Registered session for %s", profile.name)
        return session

    async def connect(self, profile: HostProfile) -> Session:
        """Return a connected session for a profile."""
        session = self.get(profile)
        await session.connect()
        return session

    def set_current(self, name: str) -> None:
        """Designate the current session.

        Raises:
            ConfigError: If no session exists under that name
        """
        if name not in self._sessions:
            raise ConfigError(f"No session registered for '{name}'")
        self._current = name

    @property
    def current(self) -> Session | None:
        if self._current is None:
            return None
        return self._sessions.get(self._current)

    async def remove(self, name: str) -> None:
        """Disconnect and forget one session."""
        session = self._sessions.pop(name, None)
        if session is not None:
            await session.disconnect()
        if self._current == name:
            self._current = None

    async def close_all(self) -> None:
        """Disconnect every session."""
        sessions = list(self._sessions.values())
        await asyncio.gather(*(session.disconnect() for session in sessions))
        logger.debug("Closed %d session(s)", len(sessions))
