"""PKCE parameter generation (:rfc:`7636`).

Produces the CSRF ``state`` token and the ``code_verifier`` for a login and
derives the S256 ``code_challenge`` sent in the authorize request. All
randomness comes from :mod:`secrets`.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string
from typing import NamedTuple

STATE_LENGTH = 32
CODE_VERIFIER_LENGTH = 64

# RFC 7636 section 4.1
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128

_ALPHABET = string.ascii_letters + string.digits


class PkceParams(NamedTuple):
    """The triple produced for one login attempt."""

    state: str
    code_verifier: str
    code_challenge: str


def generate_random_string(length: int) -> str:
    """Return *length* random characters drawn from ``[A-Za-z0-9]``."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge: ``base64url(sha256(verifier))`` without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_code_challenge(code_verifier: str, code_challenge: str) -> bool:
    """Check that *code_challenge* was derived from *code_verifier*."""
    return secrets.compare_digest(generate_code_challenge(code_verifier), code_challenge)


def generate(
    state_length: int = STATE_LENGTH,
    verifier_length: int = CODE_VERIFIER_LENGTH,
) -> PkceParams:
    """Generate a fresh ``(state, code_verifier, code_challenge)`` triple.

    Args:
        state_length: Length of the CSRF state token, at least 32.
        verifier_length: Length of the code verifier, 43 to 128.

    Raises:
        ValueError: If a requested length is outside the allowed range.
    """
    if state_length < STATE_LENGTH:
        raise ValueError(f"state must be at least {STATE_LENGTH} characters")
    if not MIN_VERIFIER_LENGTH <= verifier_length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"code_verifier must be {MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH} characters"
        )

    state = generate_random_string(state_length)
    code_verifier = generate_random_string(verifier_length)
    return PkceParams(state, code_verifier, generate_code_challenge(code_verifier))
