"""The browser-based OAuth2 Authorization Code + PKCE login core.

The main entry point is :class:`AuthOrchestrator`; the modules below it
can also be used on their own:

- :mod:`~deskauth.auth.pkce` -- state / code verifier / code challenge.
- :mod:`~deskauth.auth.urls` -- authorize, token and logout URLs.
- :mod:`~deskauth.auth.callback` -- redirect URL parsing.
- :mod:`~deskauth.auth.token` -- code-for-token exchange and ID token decoding.
- :mod:`~deskauth.auth.store` -- lock-guarded config, PKCE and session stores.
- :mod:`~deskauth.auth.events` -- UI event names and :class:`EventBus`.
- :mod:`~deskauth.auth.browser` -- default system-browser opener.
- :mod:`~deskauth.auth.redirect` -- local listener for the login redirect.

Typical usage::

    from deskauth.auth import AuthOrchestrator, RedirectListener

    orchestrator = AuthOrchestrator()
    orchestrator.initialize_config(config)
    with RedirectListener(config.web_redirect_uri) as listener:
        orchestrator.login()
        session = orchestrator.handle_callback(listener.wait())
"""

from deskauth.auth.callback import CallbackParams, parse_callback
from deskauth.auth.events import (
    LOGIN_COMPLETE,
    LOGIN_ERROR,
    LOGOUT_COMPLETE,
    EventBus,
)
from deskauth.auth.orchestrator import AuthOrchestrator
from deskauth.auth.pkce import PkceParams, generate_code_challenge
from deskauth.auth.redirect import RedirectListener
from deskauth.auth.token import TokenExchangeClient
from deskauth.auth.urls import build_authorize_url, build_logout_url

__all__ = [
    "AuthOrchestrator",
    "CallbackParams",
    "EventBus",
    "LOGIN_COMPLETE",
    "LOGIN_ERROR",
    "LOGOUT_COMPLETE",
    "PkceParams",
    "RedirectListener",
    "TokenExchangeClient",
    "build_authorize_url",
    "build_logout_url",
    "generate_code_challenge",
    "parse_callback",
]
