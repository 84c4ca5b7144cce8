"""Exception hierarchy for deskauth.

All exceptions inherit from :class:`DeskauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`deskauth.exit_codes`
and a ``kind`` tag that callers can branch on instead of parsing the
message text. ``str(exc)`` stays human readable; it is the payload of the
``auth:login-error`` UI event.

Subclass hierarchy::

    DeskauthError (exit 1)
    +-- ConfigError                      (exit 1)
    +-- AuthError                        (exit 3)
        +-- ConfigMissingError
        +-- BrowserOpenError
        +-- MalformedUrlError
        +-- MissingCodeError
        |   +-- AuthorizationDeniedError
        +-- MissingStateError
        +-- CsrfMismatchError
        |   +-- NoPendingLoginError
        |       +-- LoginExpiredError
        +-- CallbackTimeoutError
        +-- NetworkError                 (exit 6)
        |   +-- TokenExchangeTimeoutError
        +-- TokenExchangeFailedError
        +-- MissingTokenError
        +-- InvalidIdTokenError
        +-- MissingSubjectClaimError
"""

from __future__ import annotations

from typing import Optional

from deskauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
)


class DeskauthError(Exception):
    """Base exception for all deskauth errors.

    Args:
        message: Human-readable error description.
        detail: Optional extra context (e.g. the underlying parser error).
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: str = "error"

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.detail = detail
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(DeskauthError):
    """Raised for configuration file problems (invalid JSON, failed validation)."""

    kind = "config_error"


class AuthError(DeskauthError):
    """Base class for every error that terminates a login attempt."""

    exit_code = EXIT_AUTH_FAILURE
    kind = "auth_error"


class ConfigMissingError(AuthError):
    """Raised when ``login()`` is called without a domain or client id."""

    kind = "config_missing"


class BrowserOpenError(AuthError):
    """Raised when the system browser could not be asked to open a URL."""

    kind = "browser_open_failed"


class MalformedUrlError(AuthError):
    """Raised when a redirect URL cannot be parsed."""

    kind = "malformed_url"


class MissingCodeError(AuthError):
    """Raised when the redirect carries no ``code`` query parameter."""

    kind = "missing_code"


class AuthorizationDeniedError(MissingCodeError):
    """Raised when the provider redirected back with ``?error=...`` instead of a code."""

    kind = "authorization_denied"

    def __init__(self, error: str, description: Optional[str] = None):
        message = f"Authorization failed: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message, detail=description)
        self.error = error


class MissingStateError(AuthError):
    """Raised when the redirect carries no ``state`` query parameter."""

    kind = "missing_state"


class CsrfMismatchError(AuthError):
    """Raised when the redirect's ``state`` is not the one this process issued."""

    kind = "csrf_mismatch"


class NoPendingLoginError(CsrfMismatchError):
    """Raised when a redirect arrives but no login is waiting for one."""

    kind = "no_pending_login"


class LoginExpiredError(NoPendingLoginError):
    """Raised when the pending login is older than the configured TTL."""

    kind = "login_expired"


class CallbackTimeoutError(AuthError):
    """Raised when no redirect reached the local listener in time."""

    kind = "callback_timeout"


class NetworkError(AuthError):
    """Raised on transport failures reaching the token endpoint (DNS, refused, TLS)."""

    exit_code = EXIT_CONNECTION_ERROR
    kind = "network_error"


class TokenExchangeTimeoutError(NetworkError):
    """Raised when the token endpoint did not answer within the request timeout."""

    kind = "token_exchange_timeout"


class TokenExchangeFailedError(AuthError):
    """Raised when the provider rejected the code exchange (non-2xx response)."""

    kind = "token_exchange_failed"

    def __init__(self, status: int, body: str, message: Optional[str] = None):
        super().__init__(
            message or f"Token request failed with status {status}: {body}",
            detail=body,
        )
        self.status = status
        self.body = body


class MissingTokenError(AuthError):
    """Raised when the token response lacks ``access_token`` or ``id_token``."""

    kind = "missing_token"

    def __init__(self, token_name: str):
        super().__init__(f"Token response missing '{token_name}' field")
        self.token_name = token_name


class InvalidIdTokenError(AuthError):
    """Raised when the ID token is not a decodable JWT."""

    kind = "invalid_id_token"


class MissingSubjectClaimError(AuthError):
    """Raised when the ID token payload has no ``sub`` claim."""

    kind = "missing_subject_claim"
