"""Parsing of the redirect URL that completes a browser login.

:func:`parse_callback` only extracts ``code`` and ``state``. Matching the
state against the pending login is done by the orchestrator.
"""

from __future__ import annotations

import logging
from typing import NamedTuple
from urllib.parse import parse_qs, urlsplit

from deskauth.exceptions import (
    AuthorizationDeniedError,
    MalformedUrlError,
    MissingCodeError,
    MissingStateError,
)

logger = logging.getLogger(__name__)


class CallbackParams(NamedTuple):
    """The authorization response carried by a redirect URL."""

    code: str
    state: str


def parse_callback(raw_url: str) -> CallbackParams:
    """Extract the authorization code and state from a redirect URL.

    Works for both the web intermediary
    (``http://localhost:3000/auth/callback?code=...``) and the custom scheme
    (``deskauth://callback?code=...``). Blank values count as missing.

    Raises:
        MalformedUrlError: If *raw_url* is not an absolute URL.
        AuthorizationDeniedError: If the provider sent ``error`` instead of
            a code.
        MissingCodeError: If there is no ``code`` parameter.
        MissingStateError: If there is no ``state`` parameter.
    """
    raw_url = raw_url.strip()
    try:
        parts = urlsplit(raw_url)
    except ValueError as exc:
        raise MalformedUrlError(
            f"Failed to parse callback URL: {exc}", detail=str(exc)
        ) from exc
    if not parts.scheme or not (parts.netloc or parts.path):
        raise MalformedUrlError(f"Failed to parse callback URL: {raw_url!r}")

    params = parse_qs(parts.query)
    logger.debug("Callback parameters: %s", sorted(params))

    code = params.get("code", [""])[0]
    if not code:
        if "error" in params:
            raise AuthorizationDeniedError(
                params["error"][0], params.get("error_description", [""])[0] or None
            )
        raise MissingCodeError("No authorization code found in callback URL")

    state = params.get("state", [""])[0]
    if not state:
        raise MissingStateError("No state parameter found in callback URL")

    return CallbackParams(code=code, state=state)
