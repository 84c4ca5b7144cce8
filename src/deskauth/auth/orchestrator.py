"""The login facade and its state machine.

:class:`AuthOrchestrator` ties the PKCE generator, URL builder, callback
parser and token exchange client together into the operations a desktop
host calls: :meth:`~AuthOrchestrator.login`,
:meth:`~AuthOrchestrator.handle_callback`, :meth:`~AuthOrchestrator.logout`
and :meth:`~AuthOrchestrator.get_auth_state`.

State machine::

    UNAUTHENTICATED --login()--> LOGIN_PENDING --callback ok--> AUTHENTICATED
          ^                          |                              |
          +-------callback error-----+                              |
          +--------------------------logout()-----------------------+

The host supplies two capabilities: an ``opener`` that shows a URL in the
system browser and a ``notify(event, payload)`` callable that forwards the
events of :mod:`deskauth.auth.events` to the UI. Failures are reported
both ways: raised to the caller and sent as ``auth:login-error``, because
the redirect leg usually arrives on a different path than the ``login()``
call that started it.

Config, pending login and session each sit behind their own lock (see
:mod:`deskauth.auth.store`). The token request runs with no lock held.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
import time
from typing import Any, Callable, Optional
from urllib.parse import urlencode, urlsplit

from deskauth.auth import events, pkce
from deskauth.auth.browser import UrlOpener, open_in_browser
from deskauth.auth.callback import CallbackParams, parse_callback
from deskauth.auth.events import EventBus, Notifier
from deskauth.auth.store import ConfigStore, PkceSlot, SessionStore
from deskauth.auth.token import TokenExchangeClient, resolve_token_endpoint
from deskauth.auth.urls import build_authorize_url, build_logout_url
from deskauth.exceptions import (
    AuthError,
    BrowserOpenError,
    ConfigMissingError,
    CsrfMismatchError,
    LoginExpiredError,
    NoPendingLoginError,
)
from deskauth.models import (
    AuthSession,
    AuthStatus,
    PkceSession,
    ProviderConfig,
    TokenResult,
)

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_TTL = 600.0


class AuthOrchestrator:
    """Coordinates one user's browser-based login for a desktop application.

    Safe to call from several threads (e.g. a UI click racing a deep-link
    delivery). Two concurrent ``login()`` calls are not serialized: the
    last one wins and the other attempt's redirect fails with
    :class:`~deskauth.exceptions.CsrfMismatchError`.

    Args:
        opener: Opens a URL in the system browser. Defaults to
            :func:`~deskauth.auth.browser.open_in_browser`.
        notify: Receives UI events. Defaults to :attr:`events` (an
            :class:`~deskauth.auth.events.EventBus`).
        exchange_client: Performs the token request.
        clock: Returns the current unix time.
        login_ttl: Seconds a pending login stays valid.
        config: Initial provider configuration.
    """

    def __init__(
        self,
        opener: UrlOpener = open_in_browser,
        notify: Optional[Notifier] = None,
        exchange_client: Optional[TokenExchangeClient] = None,
        clock: Callable[[], float] = time.time,
        login_ttl: float = DEFAULT_LOGIN_TTL,
        config: Optional[ProviderConfig] = None,
    ) -> None:
        self.events = EventBus()
        self._opener = opener
        self._notify = notify or self.events.emit
        self._clock = clock
        self._exchange_client = exchange_client or TokenExchangeClient(clock=clock)
        self._login_ttl = login_ttl

        self._config_store = ConfigStore(config)
        self._pkce_slot = PkceSlot()
        self._session_store = SessionStore()
        self._status_lock = threading.Lock()
        self._status = AuthStatus.UNAUTHENTICATED

    # ------------------------------------------------------------------
    # Configuration and state queries
    # ------------------------------------------------------------------

    def initialize_config(self, config: ProviderConfig) -> None:
        """Replace the provider configuration. Allowed in any state."""
        self._config_store.set(config)
        logger.info(
            "Provider configured: domain=%s, client_id=%s", config.domain, config.client_id
        )

    @property
    def config(self) -> ProviderConfig:
        return self._config_store.get()

    @property
    def status(self) -> AuthStatus:
        with self._status_lock:
            return self._status

    def get_auth_state(self) -> AuthSession:
        """Return the current session. Never blocks on the network."""
        return self._session_store.snapshot()

    def is_authenticated(self) -> bool:
        """Return ``True`` if a session exists and its access token has not expired."""
        session = self._session_store.snapshot()
        return session.authenticated and not session.is_expired(self._clock())

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self) -> str:
        """Start a login: store a fresh PKCE session and open the authorize URL.

        Any earlier login still waiting for its redirect is superseded.

        Returns:
            The authorize URL that was opened.

        Raises:
            ConfigMissingError: If ``domain`` or ``client_id`` is empty or the
                domain does not make a valid URL.
            BrowserOpenError: If the browser could not be opened; the
                attempt is abandoned.
        """
        config = self._config_store.get()
        if not config.is_complete():
            raise ConfigMissingError(
                "Provider domain and client_id must be configured before login"
            )
        resolve_token_endpoint(config)

        params = pkce.generate()
        previous = self._pkce_slot.put(
            PkceSession(
                state=params.state,
                code_verifier=params.code_verifier,
                created_at=self._clock(),
            )
        )
        if previous is not None:
            logger.info("Superseding an earlier login that never completed")
        logger.info("Stored PKCE session (state %s...)", params.state[:6])

        url = build_authorize_url(config, params.state, params.code_challenge)
        self._set_status(AuthStatus.LOGIN_PENDING)
        try:
            self._open(url)
        except BrowserOpenError:
            self._pkce_slot.pop()
            authenticated = self._session_store.snapshot().authenticated
            self._set_status(
                AuthStatus.AUTHENTICATED if authenticated else AuthStatus.UNAUTHENTICATED
            )
            raise
        return url

    def handle_callback(self, raw_url: str) -> AuthSession:
        """Complete a login from the redirect URL delivered by the host.

        The pending PKCE session is consumed whatever the outcome. On success
        the session is replaced, the state becomes ``AUTHENTICATED`` and
        ``auth:login-complete`` is emitted. On failure ``auth:login-error``
        is emitted with the message and the error is re-raised; if a login
        was pending, the session is cleared and the state returns to
        ``UNAUTHENTICATED``.

        Raises:
            MalformedUrlError, MissingCodeError, MissingStateError: Bad URL.
            NoPendingLoginError: No login is waiting for a redirect.
            LoginExpiredError: The pending login is older than ``login_ttl``.
            CsrfMismatchError: The state was not issued by this process.
            NetworkError, TokenExchangeFailedError, MissingTokenError,
            InvalidIdTokenError, MissingSubjectClaimError: Exchange failed.
        """
        logger.info("Handling login redirect")
        pending = self._pkce_slot.pop()
        try:
            params = parse_callback(raw_url)
            verified = self._verify_state(params, pending)
            config = self._config_store.get()
            result = self._exchange_client.exchange(
                config, params.code, verified.code_verifier
            )
        except Exception as exc:
            self._fail(exc, attempt_active=pending is not None)
            raise
        return self._complete(result)

    async def handle_callback_async(self, raw_url: str) -> AuthSession:
        """``asyncio`` variant of :meth:`handle_callback`.

        The token request does not block the event loop. Cancelling the
        awaiting task abandons the attempt (state back to
        ``UNAUTHENTICATED``) and re-raises :class:`asyncio.CancelledError`.
        """
        logger.info("Handling login redirect")
        pending = self._pkce_slot.pop()
        try:
            params = parse_callback(raw_url)
            verified = self._verify_state(params, pending)
            config = self._config_store.get()
            result = await self._exchange_client.aexchange(
                config, params.code, verified.code_verifier
            )
        except Exception as exc:
            self._fail(exc, attempt_active=pending is not None)
            raise
        except asyncio.CancelledError:
            logger.info("Login cancelled during token exchange")
            self._session_store.reset()
            self._set_status(AuthStatus.UNAUTHENTICATED)
            raise
        return self._complete(result)

    def on_redirect(self, raw_url: str) -> bool:
        """Entry point for redirects captured by the host (deep links).

        URLs that are neither the custom-scheme redirect nor the web
        intermediary are ignored. Errors have already been reported through
        ``auth:login-error`` and are not re-raised.

        Returns:
            ``True`` if the login completed.
        """
        if not self._is_redirect_target(raw_url):
            logger.warning("Ignoring URL that is not a login redirect")
            return False
        try:
            self.handle_callback(raw_url)
        except AuthError as exc:
            logger.error("Login redirect failed: %s", exc)
            return False
        return True

    def manual_authenticate(self, code: str, state: str, code_verifier: str) -> AuthSession:
        """Complete a login from values copied out of the browser by the user.

        Fallback for when the redirect never reaches the application: the
        given ``state``/``code_verifier`` pair becomes the pending login and a
        redirect URL is synthesised from ``code`` and ``state``.

        Raises:
            ConfigMissingError: If ``domain`` or ``client_id`` is empty.
        """
        config = self._config_store.get()
        if not config.is_complete():
            raise ConfigMissingError(
                "Provider domain and client_id must be configured before login"
            )
        self._pkce_slot.put(
            PkceSession(state=state, code_verifier=code_verifier, created_at=self._clock())
        )
        self._set_status(AuthStatus.LOGIN_PENDING)
        query = urlencode({"code": code, "state": state})
        return self.handle_callback(f"{config.web_redirect_uri}?{query}")

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self) -> Optional[str]:
        """Clear the local session and end the provider session in the browser.

        The local state is reset and ``auth:logout-complete`` is emitted
        before the browser is opened, so a browser failure cannot leave the
        user logged in locally. Without a configured provider only the local
        reset happens.

        Returns:
            The logout URL that was opened, or ``None``.

        Raises:
            BrowserOpenError: If the logout page could not be opened.
        """
        self._pkce_slot.pop()
        self._session_store.reset()
        self._set_status(AuthStatus.UNAUTHENTICATED)
        self._emit(events.LOGOUT_COMPLETE)
        logger.info("Logged out locally")

        config = self._config_store.get()
        if not config.is_complete():
            logger.info("No provider configured; skipping provider logout")
            return None

        url = build_logout_url(config)
        self._open(url)
        return url

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _verify_state(
        self, params: CallbackParams, pending: Optional[PkceSession]
    ) -> PkceSession:
        if pending is None:
            raise NoPendingLoginError("No login is waiting for a redirect")
        if pending.is_expired(self._login_ttl, now=self._clock()):
            raise LoginExpiredError("The pending login has expired; please log in again")
        if not secrets.compare_digest(params.state, pending.state):
            raise CsrfMismatchError("State parameter mismatch. Possible CSRF attack.")
        logger.info("State parameter verified")
        return pending

    def _complete(self, result: TokenResult) -> AuthSession:
        session = self._session_store.commit(result)
        self._set_status(AuthStatus.AUTHENTICATED)
        self._emit(events.LOGIN_COMPLETE)
        return session

    def _fail(self, exc: Exception, attempt_active: bool) -> None:
        kind = getattr(exc, "kind", type(exc).__name__)
        logger.error("Login failed (%s): %s", kind, exc)
        # A stray redirect with no login in progress must not end an
        # existing session.
        if attempt_active:
            self._session_store.reset()
            self._set_status(AuthStatus.UNAUTHENTICATED)
        self._emit(events.LOGIN_ERROR, str(exc))

    def _open(self, url: str) -> None:
        try:
            self._opener(url)
        except BrowserOpenError:
            raise
        except Exception as exc:
            raise BrowserOpenError(f"Failed to open browser: {exc}", detail=str(exc)) from exc

    def _set_status(self, status: AuthStatus) -> None:
        with self._status_lock:
            self._status = status

    def _emit(self, event_name: str, payload: Any = None) -> None:
        try:
            self._notify(event_name, payload)
        except Exception:
            logger.warning("Failed to emit %s event", event_name, exc_info=True)

    def _is_redirect_target(self, raw_url: str) -> bool:
        config = self._config_store.get()
        try:
            url = urlsplit(raw_url.strip())
        except ValueError:
            return False
        for target in (config.redirect_uri, config.web_redirect_uri):
            expected = urlsplit(target)
            if (url.scheme, url.netloc, url.path) == (
                expected.scheme,
                expected.netloc,
                expected.path,
            ):
                return True
        return False
