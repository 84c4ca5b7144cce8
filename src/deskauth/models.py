"""Canonical Pydantic models shared across all deskauth modules.

The models fall into two groups:

**Flow models** -- the in-memory state of a login:
    :class:`ProviderConfig`, :class:`PkceSession`, :class:`UserProfile`,
    :class:`AuthSession`, :class:`TokenResult`, and :class:`AuthStatus`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CallbackServerConfig`, and
    :class:`AppConfig`.

Flow models are frozen. The stores in :mod:`deskauth.auth.store` hand the
same instance to every reader, so a snapshot can never be mutated behind
another thread's back.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_REDIRECT_URI = "deskauth://callback"
DEFAULT_WEB_REDIRECT_URI = "http://localhost:3000/auth/callback"
DEFAULT_SCOPE = "openid profile email"


# --- Flow models ---


class ProviderConfig(BaseModel):
    """Identity provider settings for the Authorization Code + PKCE flow.

    ``domain`` may be a bare host (``tenant.example.com``) or a full origin
    (``https://tenant.example.com``); see
    :func:`deskauth.auth.urls.normalize_domain`.

    ``redirect_uri`` is the application's custom-scheme URI and is used as
    the ``returnTo`` target on logout. ``web_redirect_uri`` is the local web
    intermediary the provider actually redirects to after login; both the
    authorize request and the token exchange send this one.

    Example::

        ProviderConfig(domain="tenant.example.com", client_id="abc123")
    """

    model_config = ConfigDict(frozen=True)

    domain: str = Field(default="", description="Provider host or origin")
    client_id: str = Field(default="", description="Public client id")
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI, description="Custom-scheme redirect URI"
    )
    web_redirect_uri: str = Field(
        default=DEFAULT_WEB_REDIRECT_URI,
        description="Local web intermediary that receives the authorization response",
    )
    audience: Optional[str] = Field(
        default=None, description="API audience requested for the access token"
    )
    scope: str = Field(default=DEFAULT_SCOPE, description="Space-separated scopes")

    def is_complete(self) -> bool:
        """Return ``True`` when both ``domain`` and ``client_id`` are set."""
        return bool(self.domain.strip() and self.client_id.strip())


class PkceSession(BaseModel):
    """The secret half of an outstanding login, kept until its redirect arrives."""

    model_config = ConfigDict(frozen=True)

    state: str
    code_verifier: str
    created_at: float = Field(default_factory=time.time)

    def is_expired(self, ttl: float, now: Optional[float] = None) -> bool:
        """Return ``True`` if the session is older than *ttl* seconds."""
        now = time.time() if now is None else now
        return now - self.created_at > ttl


class UserProfile(BaseModel):
    """Identity claims decoded from the ID token."""

    model_config = ConfigDict(frozen=True)

    subject: str
    name: Optional[str] = None
    email: Optional[str] = None
    picture_url: Optional[str] = None


class AuthSession(BaseModel):
    """The current authentication state.

    The default instance is the unauthenticated state. An authenticated
    session always carries both tokens, an expiry and a user profile; the
    validator rejects any other combination.
    """

    model_config = ConfigDict(frozen=True)

    authenticated: bool = False
    access_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[int] = Field(
        default=None, description="Unix timestamp (seconds) of access token expiry"
    )
    user: Optional[UserProfile] = None

    @model_validator(mode="after")
    def _check_complete(self) -> AuthSession:
        populated = (
            self.access_token is not None
            and self.id_token is not None
            and self.expires_at is not None
            and self.user is not None
        )
        if self.authenticated and not populated:
            raise ValueError(
                "an authenticated session needs access_token, id_token, expires_at and user"
            )
        if not self.authenticated and populated:
            raise ValueError("a populated session must be marked authenticated")
        return self

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Return ``True`` if the access token's expiry has passed."""
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return now >= self.expires_at


class TokenResult(BaseModel):
    """Successful outcome of a code-for-token exchange."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    id_token: str
    expires_at: int
    user: UserProfile

    def to_session(self) -> AuthSession:
        """Build the authenticated :class:`AuthSession` for this result."""
        return AuthSession(
            authenticated=True,
            access_token=self.access_token,
            id_token=self.id_token,
            expires_at=self.expires_at,
            user=self.user,
        )


class AuthStatus(str, enum.Enum):
    """States of the login state machine owned by the orchestrator."""

    UNAUTHENTICATED = "unauthenticated"
    LOGIN_PENDING = "login_pending"
    AUTHENTICATED = "authenticated"


# --- Configuration models ---


class RequestConfig(BaseModel):
    """HTTP settings for requests to the identity provider."""

    timeout: float = Field(default=30.0, description="Token request timeout in seconds")


class CallbackServerConfig(BaseModel):
    """Settings for the local listener that captures the login redirect."""

    wait_timeout: float = Field(
        default=120.0, description="Seconds to wait for the browser redirect"
    )


class AppConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/deskauth/config.json``.

    Loaded and saved by :func:`~deskauth.config.load_app_config` and
    :func:`~deskauth.config.save_app_config`. Environment variables and CLI
    flags take precedence over the provider fields stored here; see
    :func:`~deskauth.config.resolve_provider_config`.
    """

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    callback: CallbackServerConfig = Field(default_factory=CallbackServerConfig)
    login_ttl: float = Field(
        default=600.0, description="Seconds a pending login stays valid"
    )
