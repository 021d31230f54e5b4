"""PKCE code verifier and challenge generation (:rfc:`7636`).

Provides the S256 transform used by every authorization request the flow
builds. :class:`~pkceflow.models.ClientConfig` calls these at
construction so that each sign-in attempt carries a fresh pair.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

# RFC 7636 section 4.1: unreserved URI characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"

MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
DEFAULT_VERIFIER_LENGTH = 64


def generate_code_verifier(length: int = DEFAULT_VERIFIER_LENGTH) -> str:
    """Generate a random PKCE code verifier.

    Every character is drawn independently and uniformly from
    :data:`VERIFIER_ALPHABET` using :mod:`secrets`.

    Args:
        length: Number of characters. Must be between 43 and 128.

    Returns:
        The verifier string.

    Raises:
        ValueError: If *length* is outside the range allowed by RFC 7636.
    """
    if not MIN_VERIFIER_LENGTH <= length <= MAX_VERIFIER_LENGTH:
        raise ValueError(
            f"code verifier length must be between {MIN_VERIFIER_LENGTH} "
            f"and {MAX_VERIFIER_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def generate_code_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for *verifier*.

    Returns:
        ``base64url(SHA256(verifier))`` with the ``=`` padding stripped.
    """
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(length: int = DEFAULT_VERIFIER_LENGTH) -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    code_verifier = generate_code_verifier(length)
    return code_verifier, generate_code_challenge(code_verifier)
