"""Authorization-code-for-token exchange and ID token decoding.

This module provides :class:`TokenExchangeClient`, which performs the
public-client token request of the Authorization Code + PKCE grant (no
client secret) and turns the provider's answer into a
:class:`~deskauth.models.TokenResult`, plus the helpers that decode the ID
token payload into a :class:`~deskauth.models.UserProfile`.

The ID token's signature is **not** verified. Its claims are only used to
label the local session; they must not be trusted for authorization
decisions.

Both a blocking (:meth:`TokenExchangeClient.exchange`) and an ``asyncio``
(:meth:`TokenExchangeClient.aexchange`) variant are provided. Either one
is bounded by the client's timeout and reports transport failures
(:class:`~deskauth.exceptions.NetworkError`,
:class:`~deskauth.exceptions.TokenExchangeTimeoutError`) separately from
provider rejections
(:class:`~deskauth.exceptions.TokenExchangeFailedError`).
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
import time
from typing import Any, Callable, Optional

import httpx

from deskauth.auth.urls import token_endpoint
from deskauth.exceptions import (
    ConfigMissingError,
    InvalidIdTokenError,
    MissingSubjectClaimError,
    MissingTokenError,
    NetworkError,
    TokenExchangeFailedError,
    TokenExchangeTimeoutError,
)
from deskauth.models import ProviderConfig, TokenResult, UserProfile

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600
MAX_EXPIRES_IN = 366 * 24 * 3600
DEFAULT_TIMEOUT = 30.0


def resolve_token_endpoint(config: ProviderConfig) -> str:
    """Return the token endpoint for *config*, checked by httpx's URL parser.

    Raises:
        ConfigMissingError: If the configured domain does not make a valid
            URL (e.g. a non-numeric port).
    """
    url = token_endpoint(config)
    try:
        httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ConfigMissingError(
            f"Invalid provider domain {config.domain!r}: {exc}", detail=str(exc)
        ) from exc
    return url


def build_token_request(
    config: ProviderConfig, code: str, code_verifier: str
) -> dict[str, str]:
    """Return the JSON body for the ``authorization_code`` grant."""
    return {
        "grant_type": "authorization_code",
        "client_id": config.client_id,
        "code_verifier": code_verifier,
        "code": code,
        "redirect_uri": config.web_redirect_uri,
    }


def decode_id_token_claims(id_token: str) -> dict[str, Any]:
    """Decode the payload segment of a JWT without checking its signature.

    Args:
        id_token: A ``header.payload.signature`` token.

    Returns:
        The payload as a dict.

    Raises:
        InvalidIdTokenError: If the token has fewer than two segments or the
            payload is not base64url-encoded JSON object.
    """
    segments = id_token.split(".")
    if len(segments) < 2:
        raise InvalidIdTokenError("Invalid ID token format")

    payload = segments[1]
    padded = payload + "=" * (-len(payload) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        claims = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidIdTokenError(
            f"Failed to decode ID token payload: {exc}", detail=str(exc)
        ) from exc

    if not isinstance(claims, dict):
        raise InvalidIdTokenError("ID token payload is not a JSON object")
    return claims


def _optional_str(claims: dict[str, Any], key: str) -> Optional[str]:
    value = claims.get(key)
    return value if isinstance(value, str) else None


def user_profile_from_claims(claims: dict[str, Any]) -> UserProfile:
    """Build a :class:`UserProfile` from decoded ID token claims.

    Raises:
        MissingSubjectClaimError: If ``sub`` is absent or not a string.
    """
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise MissingSubjectClaimError("No sub claim in ID token")
    return UserProfile(
        subject=subject,
        name=_optional_str(claims, "name"),
        email=_optional_str(claims, "email"),
        picture_url=_optional_str(claims, "picture"),
    )


def _expires_in(token_data: dict[str, Any]) -> int:
    value = token_data.get("expires_in")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_EXPIRES_IN
    # json.loads turns 1e400 into inf; NaN fails every comparison.
    if isinstance(value, float) and not math.isfinite(value):
        return DEFAULT_EXPIRES_IN
    if value < 0:
        return DEFAULT_EXPIRES_IN
    return int(min(value, MAX_EXPIRES_IN))


class TokenExchangeClient:
    """Exchanges authorization codes for tokens at the provider's token endpoint.

    Args:
        timeout: Upper bound in seconds for each token request.
        clock: Returns the current unix time; used to compute ``expires_at``.
        async_transport: Optional transport for the ``asyncio`` client
            (e.g. :class:`httpx.MockTransport` in tests).
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._clock = clock
        self._async_transport = async_transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def exchange(
        self, config: ProviderConfig, code: str, code_verifier: str
    ) -> TokenResult:
        """Exchange *code* for tokens with a single blocking POST.

        Args:
            config: Provider settings (a snapshot; not re-read during the call).
            code: The authorization code from the redirect.
            code_verifier: The verifier whose challenge was sent on authorize.

        Returns:
            The tokens, their absolute expiry and the decoded user profile.

        Raises:
            ConfigMissingError: If the domain does not make a valid URL.
            TokenExchangeTimeoutError: If the endpoint did not answer in time.
            NetworkError: On any other transport failure.
            TokenExchangeFailedError: On a non-2xx answer or a non-JSON body.
            MissingTokenError: If ``access_token`` or ``id_token`` is missing.
            InvalidIdTokenError: If the ID token cannot be decoded.
            MissingSubjectClaimError: If the ID token has no ``sub``.
        """
        url = resolve_token_endpoint(config)
        logger.info("Exchanging authorization code at %s", url)
        try:
            response = httpx.post(
                url,
                json=build_token_request(config, code, code_verifier),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TokenExchangeFailedError(
                exc.response.status_code, exc.response.text
            ) from exc
        except httpx.TimeoutException as exc:
            raise TokenExchangeTimeoutError(
                f"Token request timed out after {self._timeout:g}s", detail=str(exc)
            ) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"Failed to send token request: {exc}", detail=str(exc)
            ) from exc
        return self._parse_response(response)

    async def aexchange(
        self, config: ProviderConfig, code: str, code_verifier: str
    ) -> TokenResult:
        """Non-blocking counterpart of :meth:`exchange`.

        The awaiting task may be cancelled; the HTTP request is then
        abandoned and :class:`asyncio.CancelledError` propagates.
        """
        url = resolve_token_endpoint(config)
        logger.info("Exchanging authorization code at %s", url)
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._async_transport
        ) as client:
            try:
                response = await client.post(
                    url,
                    json=build_token_request(config, code, code_verifier),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise TokenExchangeFailedError(
                    exc.response.status_code, exc.response.text
                ) from exc
            except httpx.TimeoutException as exc:
                raise TokenExchangeTimeoutError(
                    f"Token request timed out after {self._timeout:g}s",
                    detail=str(exc),
                ) from exc
            except httpx.HTTPError as exc:
                raise NetworkError(
                    f"Failed to send token request: {exc}", detail=str(exc)
                ) from exc
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> TokenResult:
        try:
            token_data = response.json()
        except ValueError as exc:
            raise TokenExchangeFailedError(
                response.status_code,
                response.text,
                message=f"Failed to parse token response: {exc}",
            ) from exc
        if not isinstance(token_data, dict):
            raise TokenExchangeFailedError(
                response.status_code,
                response.text,
                message="Token response is not a JSON object",
            )
        logger.debug("Token response keys: %s", sorted(token_data))

        access_token = token_data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MissingTokenError("access_token")
        id_token = token_data.get("id_token")
        if not isinstance(id_token, str) or not id_token:
            raise MissingTokenError("id_token")

        # TODO: verify the ID token signature against the provider's JWKS
        # before trusting any claim.
        user = user_profile_from_claims(decode_id_token_claims(id_token))
        expires_in = _expires_in(token_data)
        logger.info("Token exchange succeeded for subject %s", user.subject)

        return TokenResult(
            access_token=access_token,
            id_token=id_token,
            expires_at=int(self._clock()) + expires_in,
            user=user,
        )
