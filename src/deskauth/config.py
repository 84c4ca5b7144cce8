"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for deskauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.deskauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **App config** -- a single :class:`~deskauth.models.AppConfig` JSON file
  holding the provider settings, request timeout and callback listener
  settings.
* **Precedence resolution** -- :func:`resolve_provider_config` merges CLI
  flags, ``DESKAUTH_*`` environment variables and the config file into the
  effective :class:`~deskauth.models.ProviderConfig`.

Tokens are never written here; a session lives only as long as the
process that obtained it.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from deskauth.exceptions import ConfigError
from deskauth.models import AppConfig, ProviderConfig

_APP_NAME = "deskauth"
_CONFIG_FILENAME = "config.json"

ENV_VARS: dict[str, str] = {
    "domain": "DESKAUTH_DOMAIN",
    "client_id": "DESKAUTH_CLIENT_ID",
    "redirect_uri": "DESKAUTH_REDIRECT_URI",
    "web_redirect_uri": "DESKAUTH_WEB_REDIRECT_URI",
    "audience": "DESKAUTH_AUDIENCE",
    "scope": "DESKAUTH_SCOPE",
}
"""Environment variable consulted for each :class:`ProviderConfig` field."""


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/deskauth/`` (default ``~/.config/deskauth/``).
    On macOS/Windows: ``~/.deskauth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/deskauth/`` (default ``~/.local/share/deskauth/``).
    On macOS/Windows: ``~/.deskauth/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives next to *path* so that ``os.replace`` is an
    atomic rename on POSIX systems.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- App config ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_app_config() -> AppConfig:
    """Load the app configuration from the config directory.

    Returns:
        The deserialised :class:`~deskauth.models.AppConfig`, or a default
        instance if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return AppConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AppConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}", detail=str(exc)) from exc


def save_app_config(config: AppConfig) -> Path:
    """Persist the app configuration atomically and return the file path."""
    path = config_path()
    data = config.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


# --- Precedence resolution ---


def resolve_provider_config(
    app_config: Optional[AppConfig] = None, **overrides: Optional[str]
) -> ProviderConfig:
    """Resolve the effective provider configuration.

    Precedence (high to low):
        1. *overrides* (CLI flags); ``None`` values are skipped
        2. Environment variables (see :data:`ENV_VARS`)
        3. The config file (or *app_config* when given)
        4. Defaults

    Raises:
        ConfigError: If an override names an unknown field, or the config
            file is invalid.
    """
    unknown = set(overrides) - set(ENV_VARS)
    if unknown:
        raise ConfigError(f"Unknown provider setting(s): {', '.join(sorted(unknown))}")

    base = app_config if app_config is not None else load_app_config()
    values: dict[str, Any] = base.provider.model_dump()

    for field_name, env_var in ENV_VARS.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[field_name] = env_value

    for field_name, value in overrides.items():
        if value is not None:
            values[field_name] = value

    try:
        return ProviderConfig.model_validate(values)
    except ValueError as exc:
        raise ConfigError(f"Invalid provider settings: {exc}", detail=str(exc)) from exc
