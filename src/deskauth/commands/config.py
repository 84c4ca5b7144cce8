"""Config commands -- view and edit the identity provider settings.

Provides the ``deskauth config`` sub-command group::

    deskauth config set --domain tenant.example.com --client-id abc123
    deskauth config show
"""

from __future__ import annotations

from typing import Optional

import typer

from deskauth.output import error, info, print_record, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("set")
def config_set(
    domain: Optional[str] = typer.Option(None, "--domain", help="Provider host or origin."),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="Public client id."),
    audience: Optional[str] = typer.Option(None, "--audience", help="API audience."),
    scope: Optional[str] = typer.Option(None, "--scope", help="Space-separated scopes."),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Custom-scheme redirect URI."
    ),
    web_redirect_uri: Optional[str] = typer.Option(
        None, "--web-redirect-uri", help="Local web intermediary redirect URI."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Token request timeout in seconds."
    ),
) -> None:
    """Store provider settings in the config file.

    Only the options given are changed; everything else keeps its stored
    value.
    """
    from deskauth.config import load_app_config, save_app_config
    from deskauth.exceptions import ConfigError

    try:
        app_config = load_app_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    changes = {
        "domain": domain,
        "client_id": client_id,
        "audience": audience,
        "scope": scope,
        "redirect_uri": redirect_uri,
        "web_redirect_uri": web_redirect_uri,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes and timeout is None:
        info("Nothing to change.")
        suggest("See: deskauth config set --help")
        return

    app_config = app_config.model_copy(
        update={
            "provider": app_config.provider.model_copy(update=changes),
            "request": app_config.request.model_copy(
                update={} if timeout is None else {"timeout": timeout}
            ),
        }
    )
    path = save_app_config(app_config)
    success(f"Saved config to {path}")
    if not app_config.provider.is_complete():
        suggest("Set both --domain and --client-id before logging in.")


@config_app.command("show")
def config_show() -> None:
    """Show the effective provider settings (file + environment)."""
    from deskauth.config import config_path, load_app_config, resolve_provider_config
    from deskauth.exceptions import ConfigError

    try:
        app_config = load_app_config()
        provider = resolve_provider_config(app_config)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    record = provider.model_dump()
    record["timeout"] = app_config.request.timeout
    record["login_ttl"] = app_config.login_ttl
    print_record(record, title="Provider")
    info(f"Config file: {config_path()}")
