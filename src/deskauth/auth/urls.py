"""Provider URL construction: authorize, token and logout endpoints.

Every function here is pure. Opening the resulting URL is the job of the
browser opener in :mod:`deskauth.auth.browser`.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode, urlsplit

from deskauth.models import ProviderConfig

API_PATH_SEGMENT = "/api/"


def _encode(params: dict[str, str]) -> str:
    # Percent-encode everything, including "/" and ":" inside redirect URIs,
    # and spaces as %20 rather than "+".
    return urlencode(params, quote_via=quote, safe="")


def normalize_domain(domain: str) -> str:
    """Turn a configured domain into an origin without a trailing slash.

    A bare host gets an ``https://`` prefix; a value that already has a
    scheme is used as-is.

    Example::

        >>> normalize_domain("tenant.example.com/")
        'https://tenant.example.com'
        >>> normalize_domain("http://localhost:8080")
        'http://localhost:8080'
    """
    domain = domain.strip().rstrip("/")
    if "://" in domain:
        return domain
    return f"https://{domain}"


def tenant_root(domain: str) -> str:
    """Return the normalized domain truncated before any API sub-path.

    Authorization and logout endpoints live at the tenant root, so a domain
    configured as ``https://example.com/api/v2`` yields
    ``https://example.com``.
    """
    normalized = normalize_domain(domain)
    parts = urlsplit(normalized)
    # A trailing "/api" counts as well as "/api/...".
    index = (parts.path + "/").find(API_PATH_SEGMENT)
    if index < 0:
        return normalized
    return f"{parts.scheme}://{parts.netloc}{parts.path[:index]}"


def token_endpoint(config: ProviderConfig) -> str:
    """Return the ``/oauth/token`` endpoint for *config*."""
    return f"{normalize_domain(config.domain)}/oauth/token"


def build_authorize_url(config: ProviderConfig, state: str, code_challenge: str) -> str:
    """Compose the provider's authorize URL for an Authorization Code + PKCE request.

    Args:
        config: Provider settings. ``web_redirect_uri`` is sent as the
            ``redirect_uri`` parameter.
        state: CSRF state token for this attempt.
        code_challenge: S256 challenge derived from the attempt's verifier.

    Returns:
        The full ``{root}/authorize?...`` URL. ``audience`` is appended only
        when configured.
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.web_redirect_uri,
        "scope": config.scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    if config.audience:
        params["audience"] = config.audience
    return f"{tenant_root(config.domain)}/authorize?{_encode(params)}"


def build_logout_url(config: ProviderConfig) -> str:
    """Compose the provider logout URL returning to the app's custom scheme."""
    params = {"client_id": config.client_id, "returnTo": config.redirect_uri}
    return f"{tenant_root(config.domain)}/v2/logout?{_encode(params)}"
