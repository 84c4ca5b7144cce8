"""deskauth -- OAuth2 Authorization Code + PKCE login for desktop applications.

This package implements the authentication core of a native application
that logs users in through the system browser: it generates PKCE
parameters, builds the provider's authorize URL, validates the redirect
that comes back, exchanges the authorization code for tokens, and keeps
the resulting session in memory behind a small state machine.

Typical usage::

    from deskauth.auth import AuthOrchestrator
    from deskauth.models import ProviderConfig

    orchestrator = AuthOrchestrator()
    orchestrator.initialize_config(
        ProviderConfig(domain="tenant.example.com", client_id="abc")
    )
    orchestrator.login()                    # opens the browser
    orchestrator.handle_callback(raw_url)   # from the redirect capture
    orchestrator.get_auth_state()

Modules:
    auth: The login core (PKCE, URLs, callback, token exchange, orchestrator).
    models: Pydantic models shared across the package.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Tagged exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting and logging setup for the CLI host.
    app: Typer application and console-script entry point.
"""

__version__ = "0.1.0"
