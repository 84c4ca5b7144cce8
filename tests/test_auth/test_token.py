"""Tests for deskauth.auth.token -- code exchange and ID token decoding."""

from __future__ import annotations

import asyncio
import base64
import json
import math
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest

from deskauth.auth.token import (
    DEFAULT_EXPIRES_IN,
    MAX_EXPIRES_IN,
    TokenExchangeClient,
    build_token_request,
    decode_id_token_claims,
    resolve_token_endpoint,
    user_profile_from_claims,
)
from deskauth.exceptions import (
    ConfigMissingError,
    InvalidIdTokenError,
    MissingSubjectClaimError,
    MissingTokenError,
    NetworkError,
    TokenExchangeFailedError,
    TokenExchangeTimeoutError,
)
from deskauth.models import ProviderConfig, UserProfile

_POST = "deskauth.auth.token.httpx.post"

_NOW = 1_700_000_000.0


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _make_id_token(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT-shaped ``header.payload.signature`` string."""
    header = _b64url(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
    payload = _b64url(json.dumps(claims).encode())
    return f"{header}.{payload}.c2lnbmF0dXJl"


def _make_token_response(
    access_token: str | None = "test-access-token",
    id_token: str | None = None,
    expires_in: Any = 7200,
) -> dict[str, Any]:
    """Build a token endpoint JSON body; pass ``None`` to drop a field."""
    data: dict[str, Any] = {"token_type": "Bearer"}
    if access_token is not None:
        data["access_token"] = access_token
    if id_token is None:
        id_token = _make_id_token({"sub": "abc123", "name": "A", "email": "a@x.com"})
    if id_token:
        data["id_token"] = id_token
    if expires_in is not None:
        data["expires_in"] = expires_in
    return data


def _mock_httpx_post(
    token_response: Any = None,
    status_code: int = 200,
    text: str | None = None,
) -> MagicMock:
    """Create a mock ``httpx.Response`` as returned by ``httpx.post``."""
    if token_response is None:
        token_response = _make_token_response()

    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = token_response
    mock_response.text = text if text is not None else json.dumps(token_response)

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response


def _client() -> TokenExchangeClient:
    return TokenExchangeClient(timeout=5.0, clock=lambda: _NOW)


# ---------------------------------------------------------------------------
# ID token decoding
# ---------------------------------------------------------------------------


class TestDecodeIdTokenClaims:
    def test_decodes_payload(self) -> None:
        token = _make_id_token({"sub": "abc123", "name": "A", "email": "a@x.com"})
        assert decode_id_token_claims(token) == {
            "sub": "abc123",
            "name": "A",
            "email": "a@x.com",
        }

    def test_two_segments_enough(self) -> None:
        header, payload, _ = _make_id_token({"sub": "x"}).split(".")
        assert decode_id_token_claims(f"{header}.{payload}") == {"sub": "x"}

    @pytest.mark.parametrize("claims", [{"sub": "a"}, {"sub": "ab"}, {"sub": "abc"}])
    def test_padding_lengths(self, claims: dict[str, str]) -> None:
        assert decode_id_token_claims(_make_id_token(claims)) == claims

    def test_single_segment(self) -> None:
        with pytest.raises(InvalidIdTokenError, match="Invalid ID token format"):
            decode_id_token_claims("no-dots-here")

    def test_payload_not_base64(self) -> None:
        with pytest.raises(InvalidIdTokenError):
            decode_id_token_claims("header.a.sig")

    def test_payload_not_json(self) -> None:
        with pytest.raises(InvalidIdTokenError):
            decode_id_token_claims("header.bm90IGpzb24.sig")  # "not json"

    def test_payload_not_object(self) -> None:
        with pytest.raises(InvalidIdTokenError, match="not a JSON object"):
            decode_id_token_claims("header.WzEsMiwzXQ.sig")  # [1,2,3]


class TestUserProfileFromClaims:
    def test_full_profile(self) -> None:
        user = user_profile_from_claims(
            {"sub": "abc", "name": "A", "email": "a@x.com", "picture": "https://p/a.png"}
        )
        assert user == UserProfile(
            subject="abc", name="A", email="a@x.com", picture_url="https://p/a.png"
        )

    def test_optional_claims_absent(self) -> None:
        user = user_profile_from_claims({"sub": "abc"})
        assert user.name is None
        assert user.email is None
        assert user.picture_url is None

    def test_non_string_optional_claims_ignored(self) -> None:
        user = user_profile_from_claims({"sub": "abc", "name": 42, "email": None})
        assert user.name is None
        assert user.email is None

    @pytest.mark.parametrize("claims", [{}, {"sub": 123}, {"sub": ""}])
    def test_missing_subject(self, claims: dict[str, object]) -> None:
        with pytest.raises(MissingSubjectClaimError, match="No sub claim"):
            user_profile_from_claims(claims)


# ---------------------------------------------------------------------------
# Request body
# ---------------------------------------------------------------------------


class TestBuildTokenRequest:
    def test_body(self, provider_config: ProviderConfig) -> None:
        assert build_token_request(provider_config, "XYZ", "VERIFIER") == {
            "grant_type": "authorization_code",
            "client_id": "cid",
            "code_verifier": "VERIFIER",
            "code": "XYZ",
            "redirect_uri": "http://localhost:3000/auth/callback",
        }

    def test_no_client_secret(self, provider_config: ProviderConfig) -> None:
        assert "client_secret" not in build_token_request(provider_config, "c", "v")


# ---------------------------------------------------------------------------
# Token endpoint
# ---------------------------------------------------------------------------


class TestResolveTokenEndpoint:
    def test_valid_domain(self, provider_config: ProviderConfig) -> None:
        assert resolve_token_endpoint(provider_config) == "https://t.example.com/oauth/token"

    @pytest.mark.parametrize("domain", ["t.example.com:notaport", "https://t.example.com:80a"])
    def test_invalid_port(self, domain: str) -> None:
        config = ProviderConfig(domain=domain, client_id="cid")
        with pytest.raises(ConfigMissingError, match="Invalid provider domain") as exc_info:
            resolve_token_endpoint(config)
        assert exc_info.value.detail


# ---------------------------------------------------------------------------
# Blocking exchange
# ---------------------------------------------------------------------------


class TestExchange:
    def test_success(self, provider_config: ProviderConfig) -> None:
        mock_resp = _mock_httpx_post(_make_token_response(expires_in=7200))

        with patch(_POST, return_value=mock_resp) as mock_post:
            result = _client().exchange(provider_config, "XYZ", "VERIFIER")

        assert result.access_token == "test-access-token"
        assert result.expires_at == int(_NOW) + 7200
        assert result.user.subject == "abc123"
        assert result.user.name == "A"
        assert result.user.email == "a@x.com"

        mock_post.assert_called_once()
        call = mock_post.call_args
        assert call.args[0] == "https://t.example.com/oauth/token"
        assert call.kwargs["json"]["code"] == "XYZ"
        assert call.kwargs["json"]["code_verifier"] == "VERIFIER"
        assert call.kwargs["headers"] == {"Accept": "application/json"}
        assert call.kwargs["timeout"] == 5.0

    @pytest.mark.parametrize(
        "expires_in", [None, "3600", -5, True, math.inf, -math.inf, math.nan]
    )
    def test_expires_in_defaults(self, provider_config: ProviderConfig, expires_in: object) -> None:
        body = _make_token_response(expires_in=None)
        if expires_in is not None:
            body["expires_in"] = expires_in
        with patch(_POST, return_value=_mock_httpx_post(body)):
            result = _client().exchange(provider_config, "c", "v")
        assert result.expires_at == int(_NOW) + DEFAULT_EXPIRES_IN

    def test_expires_in_overflowing_json_number(self, provider_config: ProviderConfig) -> None:
        text = (
            '{"access_token": "AT", "id_token": "'
            + _make_id_token({"sub": "abc123"})
            + '", "expires_in": 1e400}'
        )
        mock_resp = _mock_httpx_post(json.loads(text), text=text)
        with patch(_POST, return_value=mock_resp):
            result = _client().exchange(provider_config, "c", "v")
        assert result.expires_at == int(_NOW) + DEFAULT_EXPIRES_IN

    @pytest.mark.parametrize("expires_in", [10**30, 1e300])
    def test_expires_in_capped(self, provider_config: ProviderConfig, expires_in: object) -> None:
        body = _make_token_response(expires_in=expires_in)
        with patch(_POST, return_value=_mock_httpx_post(body)):
            result = _client().exchange(provider_config, "c", "v")
        assert result.expires_at == int(_NOW) + MAX_EXPIRES_IN

    def test_invalid_domain_never_posts(self) -> None:
        config = ProviderConfig(domain="t.example.com:notaport", client_id="cid")
        with patch(_POST) as mock_post:
            with pytest.raises(ConfigMissingError, match="Invalid provider domain"):
                _client().exchange(config, "c", "v")
        mock_post.assert_not_called()

    def test_http_error_status(self, provider_config: ProviderConfig) -> None:
        mock_resp = _mock_httpx_post(
            {"error": "invalid_grant"}, status_code=400, text='{"error":"invalid_grant"}'
        )
        with patch(_POST, return_value=mock_resp):
            with pytest.raises(TokenExchangeFailedError) as exc_info:
                _client().exchange(provider_config, "c", "v")

        exc = exc_info.value
        assert exc.status == 400
        assert exc.body == '{"error":"invalid_grant"}'
        assert str(exc) == 'Token request failed with status 400: {"error":"invalid_grant"}'

    def test_timeout(self, provider_config: ProviderConfig) -> None:
        with patch(_POST, side_effect=httpx.ReadTimeout("timed out")):
            with pytest.raises(TokenExchangeTimeoutError, match="timed out after 5s"):
                _client().exchange(provider_config, "c", "v")

    def test_connection_error(self, provider_config: ProviderConfig) -> None:
        with patch(_POST, side_effect=httpx.ConnectError("refused")):
            with pytest.raises(NetworkError, match="Failed to send token request") as exc_info:
                _client().exchange(provider_config, "c", "v")
        assert not isinstance(exc_info.value, TokenExchangeTimeoutError)

    def test_body_not_json(self, provider_config: ProviderConfig) -> None:
        mock_resp = _mock_httpx_post(text="<html>oops</html>")
        mock_resp.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
        with patch(_POST, return_value=mock_resp):
            with pytest.raises(TokenExchangeFailedError, match="Failed to parse token response"):
                _client().exchange(provider_config, "c", "v")

    def test_body_not_object(self, provider_config: ProviderConfig) -> None:
        with patch(_POST, return_value=_mock_httpx_post(["not", "a", "dict"])):
            with pytest.raises(TokenExchangeFailedError, match="not a JSON object"):
                _client().exchange(provider_config, "c", "v")

    def test_missing_access_token(self, provider_config: ProviderConfig) -> None:
        body = _make_token_response(access_token=None)
        with patch(_POST, return_value=_mock_httpx_post(body)):
            with pytest.raises(MissingTokenError, match="'access_token'") as exc_info:
                _client().exchange(provider_config, "c", "v")
        assert exc_info.value.token_name == "access_token"

    def test_missing_id_token(self, provider_config: ProviderConfig) -> None:
        body = _make_token_response(id_token="")
        with patch(_POST, return_value=_mock_httpx_post(body)):
            with pytest.raises(MissingTokenError, match="'id_token'"):
                _client().exchange(provider_config, "c", "v")

    def test_invalid_id_token(self, provider_config: ProviderConfig) -> None:
        body = _make_token_response(id_token="garbage")
        with patch(_POST, return_value=_mock_httpx_post(body)):
            with pytest.raises(InvalidIdTokenError):
                _client().exchange(provider_config, "c", "v")

    def test_id_token_without_subject(self, provider_config: ProviderConfig) -> None:
        body = _make_token_response(id_token=_make_id_token({"name": "A"}))
        with patch(_POST, return_value=_mock_httpx_post(body)):
            with pytest.raises(MissingSubjectClaimError):
                _client().exchange(provider_config, "c", "v")


# ---------------------------------------------------------------------------
# asyncio exchange
# ---------------------------------------------------------------------------


def _async_client(handler) -> TokenExchangeClient:
    return TokenExchangeClient(
        timeout=5.0, clock=lambda: _NOW, async_transport=httpx.MockTransport(handler)
    )


class TestAsyncExchange:
    def test_success(self, provider_config: ProviderConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_make_token_response(expires_in=60))

        result = asyncio.run(_async_client(handler).aexchange(provider_config, "XYZ", "V"))

        assert result.expires_at == int(_NOW) + 60
        assert result.user.subject == "abc123"
        assert len(seen) == 1
        assert str(seen[0].url) == "https://t.example.com/oauth/token"
        assert json.loads(seen[0].content)["code"] == "XYZ"

    def test_rejected(self, provider_config: ProviderConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="unauthorized")

        with pytest.raises(TokenExchangeFailedError) as exc_info:
            asyncio.run(_async_client(handler).aexchange(provider_config, "c", "v"))
        assert exc_info.value.status == 401
        assert exc_info.value.body == "unauthorized"

    def test_timeout(self, provider_config: ProviderConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(TokenExchangeTimeoutError):
            asyncio.run(_async_client(handler).aexchange(provider_config, "c", "v"))

    def test_network_error(self, provider_config: ProviderConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            asyncio.run(_async_client(handler).aexchange(provider_config, "c", "v"))

    def test_cancellation_propagates(self, provider_config: ProviderConfig) -> None:
        async def scenario() -> None:
            started = asyncio.Event()

            async def handler(request: httpx.Request) -> httpx.Response:
                started.set()
                await asyncio.sleep(10)
                return httpx.Response(200, json=_make_token_response())

            client = _async_client(handler)
            task = asyncio.create_task(client.aexchange(provider_config, "c", "v"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())


class TestTimeoutProperty:
    def test_timeout_exposed(self) -> None:
        assert TokenExchangeClient(timeout=12.5).timeout == 12.5

    def test_default_timeout(self) -> None:
        assert TokenExchangeClient().timeout == 30.0
