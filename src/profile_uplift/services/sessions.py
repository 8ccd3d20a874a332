"""Wizard session storage."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from profile_uplift.domain.profile import ProfileSession


class SessionStore(Protocol):
    """Key-value storage for immutable session snapshots."""

    def get(self, session_id: str) -> ProfileSession | None:
        """Return the session if present and not expired."""

    def save(self, session: ProfileSession) -> None:
        """Store a snapshot, replacing any previous one and refreshing its TTL."""

    def delete(self, session_id: str) -> None:
        """Forget a session."""


@dataclass
class _SessionEntry:
    session: ProfileSession
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemorySessionStore(SessionStore):
    """Process-local session store with sliding expiry."""

    ttl_seconds: int
    clock: Callable[[], datetime] = _utcnow
    _entries: dict[str, _SessionEntry] = field(default_factory=dict, init=False)

    def get(self, session_id: str) -> ProfileSession | None:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if self.clock() >= entry.expires_at:
            self._entries.pop(session_id, None)
            return None
        return entry.session

    def save(self, session: ProfileSession) -> None:
        expires_at = self.clock() + timedelta(seconds=self.ttl_seconds)
        self._entries[session.id] = _SessionEntry(session=session, expires_at=expires_at)

    def delete(self, session_id: str) -> None:
        self._entries.pop(session_id, None)
