"""Default browser opener: hand a URL to the OS-default browser."""

from __future__ import annotations

import logging
import webbrowser
from typing import Callable

from deskauth.exceptions import BrowserOpenError

logger = logging.getLogger(__name__)

UrlOpener = Callable[[str], None]


def open_in_browser(url: str) -> None:
    """Open *url* with :mod:`webbrowser`.

    Raises:
        BrowserOpenError: If no browser could be launched.
    """
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as exc:
        raise BrowserOpenError(f"Failed to open browser: {exc}", detail=str(exc)) from exc
    if not opened:
        raise BrowserOpenError("No web browser available to open the login page")
    logger.debug("Opened browser")
