"""Auth commands -- run the browser login from a terminal.

Provides the top-level ``login``, ``manual`` and ``logout`` commands. The
whole flow runs inside one process because the PKCE session only lives in
memory::

    deskauth login            # open browser, capture redirect on localhost
    deskauth login --paste    # paste the redirect URL instead
    deskauth manual '{"code": "...", "state": "...", "codeVerifier": "..."}'
    deskauth logout
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

import typer

from deskauth.auth import AuthOrchestrator, RedirectListener, TokenExchangeClient
from deskauth.auth.browser import UrlOpener, open_in_browser
from deskauth.exceptions import DeskauthError
from deskauth.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from deskauth.models import AppConfig, AuthSession
from deskauth.output import (
    debug,
    error,
    info,
    print_data,
    print_record,
    success,
    suggest,
    warning,
)


def _mask(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    return f"{token[:6]}... ({len(token)} chars)"


def session_record(session: AuthSession, show_tokens: bool = False) -> dict[str, Any]:
    """Flatten *session* for display; tokens are masked unless *show_tokens*."""
    user = session.user
    expires = (
        datetime.fromtimestamp(session.expires_at, tz=timezone.utc).isoformat()
        if session.expires_at is not None
        else None
    )
    return {
        "authenticated": session.authenticated,
        "subject": user.subject if user else None,
        "name": user.name if user else None,
        "email": user.email if user else None,
        "picture": user.picture_url if user else None,
        "expires_at": expires,
        "access_token": session.access_token if show_tokens else _mask(session.access_token),
        "id_token": session.id_token if show_tokens else _mask(session.id_token),
    }


def _print_url(url: str) -> None:
    info("Open this URL in your browser to continue:")
    print_data(url)


def build_orchestrator(
    opener: UrlOpener = open_in_browser,
) -> tuple[AuthOrchestrator, AppConfig]:
    """Create an orchestrator configured from the config file and environment.

    Returns:
        ``(orchestrator, app_config)``.
    """
    from deskauth.config import load_app_config, resolve_provider_config

    app_config = load_app_config()
    orchestrator = AuthOrchestrator(
        opener=opener,
        exchange_client=TokenExchangeClient(timeout=app_config.request.timeout),
        login_ttl=app_config.login_ttl,
    )
    orchestrator.initialize_config(resolve_provider_config(app_config))
    return orchestrator, app_config


def login_command(
    paste: bool = typer.Option(
        False, "--paste", help="Paste the redirect URL instead of listening on localhost."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the login URL instead of opening a browser."
    ),
    show_tokens: bool = typer.Option(
        False, "--show-tokens", help="Print tokens unmasked."
    ),
) -> None:
    """Log in through the system browser (Authorization Code + PKCE).

    By default a listener is bound to the web redirect URI
    (``http://localhost:3000/auth/callback``) and captures the redirect
    automatically. With ``--paste`` you copy the URL the browser ends up on
    and paste it at the prompt.
    """
    try:
        orchestrator, app_config = build_orchestrator(
            _print_url if no_browser else open_in_browser
        )
        if paste:
            orchestrator.login()
            raw_url = typer.prompt("Paste the URL your browser was redirected to")
        else:
            with RedirectListener(
                orchestrator.config.web_redirect_uri,
                timeout=app_config.callback.wait_timeout,
            ) as listener:
                debug(f"Listening for the login redirect on port {listener.port}")
                orchestrator.login()
                info("Waiting for the browser to complete the login...")
                raw_url = listener.wait()
        session = orchestrator.handle_callback(raw_url)
    except DeskauthError as exc:
        error(str(exc))
        if exc.kind == "config_missing":
            suggest("Configure the provider: deskauth config set --domain ... --client-id ...")
        raise typer.Exit(code=exc.exit_code) from None
    except ValueError as exc:
        error(str(exc))
        suggest("Use --paste when the web redirect URI is not an http:// address.")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    except OSError as exc:
        error(f"Cannot listen for the login redirect: {exc}")
        suggest("Use --paste to complete the login manually.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE) from None

    success("Login complete.")
    if show_tokens:
        warning("Tokens are printed in full; do not share this output.")
    print_record(session_record(session, show_tokens), title="Session")


def manual_command(
    data: str = typer.Argument(
        help='JSON with "code", "state" and "codeVerifier" copied from the callback page.'
    ),
    show_tokens: bool = typer.Option(False, "--show-tokens", help="Print tokens unmasked."),
) -> None:
    """Complete a login from authentication data copied by hand."""
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        error("Invalid JSON format. Please check your input.")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    if not isinstance(parsed, dict) or not all(
        isinstance(parsed.get(key), str) and parsed.get(key)
        for key in ("code", "state", "codeVerifier")
    ):
        error("Missing required fields: code, state, and codeVerifier")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        orchestrator, _ = build_orchestrator()
        session = orchestrator.manual_authenticate(
            parsed["code"], parsed["state"], parsed["codeVerifier"]
        )
    except DeskauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success("Login complete.")
    if show_tokens:
        warning("Tokens are printed in full; do not share this output.")
    print_record(session_record(session, show_tokens), title="Session")


def logout_command(
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the logout URL instead of opening a browser."
    ),
) -> None:
    """End the provider session in the browser."""
    try:
        orchestrator, _ = build_orchestrator(_print_url if no_browser else open_in_browser)
        url = orchestrator.logout()
    except DeskauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if url is None:
        info("No provider configured; nothing to log out of.")
        return
    success("Logged out.")
