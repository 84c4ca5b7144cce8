"""Lock-guarded state containers owned by the orchestrator.

Each container has its own :class:`threading.Lock` and no method takes
more than one of them, so there is no lock ordering to get wrong. All
stored values are frozen Pydantic models: a reader gets the instance
itself and can keep it as a snapshot.
"""

from __future__ import annotations

import threading
from typing import Optional

from deskauth.models import AuthSession, PkceSession, ProviderConfig, TokenResult


class ConfigStore:
    """Holds the current :class:`ProviderConfig`; replaced wholesale on re-initialization."""

    def __init__(self, config: Optional[ProviderConfig] = None) -> None:
        self._lock = threading.Lock()
        self._config = config or ProviderConfig()

    def get(self) -> ProviderConfig:
        with self._lock:
            return self._config

    def set(self, config: ProviderConfig) -> None:
        with self._lock:
            self._config = config


class PkceSlot:
    """A single-slot container for the one outstanding :class:`PkceSession`.

    A new login overwrites whatever is stored (last writer wins), and a
    redirect consumes the slot with :meth:`pop` whether or not its state
    matches, so no state is ever accepted twice.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: Optional[PkceSession] = None

    def put(self, session: PkceSession) -> Optional[PkceSession]:
        """Store *session* and return the unconsumed one it replaced, if any."""
        with self._lock:
            previous, self._session = self._session, session
            return previous

    def pop(self) -> Optional[PkceSession]:
        """Remove and return the stored session."""
        with self._lock:
            session, self._session = self._session, None
            return session

    def peek(self) -> Optional[PkceSession]:
        with self._lock:
            return self._session


class SessionStore:
    """Holds the current :class:`AuthSession`.

    Only a successful token exchange (:meth:`commit`) or a reset writes to
    it; UI state queries read it concurrently through :meth:`snapshot`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session = AuthSession()

    def snapshot(self) -> AuthSession:
        with self._lock:
            return self._session

    def commit(self, result: TokenResult) -> AuthSession:
        """Replace the session with the authenticated one for *result*."""
        session = result.to_session()
        with self._lock:
            self._session = session
        return session

    def reset(self) -> AuthSession:
        """Return to the unauthenticated state; returns the session that was dropped."""
        with self._lock:
            previous, self._session = self._session, AuthSession()
            return previous
