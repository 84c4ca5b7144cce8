"""Shared test fixtures for deskauth.

Provides a provider config, isolated config directories and output
state management. No test touches the network or a real browser.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from deskauth.models import ProviderConfig
from deskauth.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the ``deskauth`` logger after every test.

    The OutputManager caches sys.stdout/sys.stderr at creation time; once
    CliRunner restores the real streams those references are stale.
    ``configure_logging`` also turns off propagation, which would hide
    records from ``caplog`` in later tests.
    """
    yield
    reset_output()
    logger = logging.getLogger("deskauth")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Provider fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def provider_config() -> ProviderConfig:
    """A complete provider config for tenant ``t.example.com``."""
    return ProviderConfig(domain="t.example.com", client_id="cid")


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME and XDG_DATA_HOME into tmp_path, clears all
    DESKAUTH_* variables and changes the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("deskauth.config._is_xdg_platform", lambda: True)

    for var in [
        "DESKAUTH_DOMAIN",
        "DESKAUTH_CLIENT_ID",
        "DESKAUTH_REDIRECT_URI",
        "DESKAUTH_WEB_REDIRECT_URI",
        "DESKAUTH_AUDIENCE",
        "DESKAUTH_SCOPE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path

