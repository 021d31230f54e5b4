"""Authorization request URL construction.

:func:`build_auth_url` composes the URL the user's browser is sent to:
the discovered ``authorization_endpoint`` plus the PKCE, client and
state parameters. Query parameters already present on the endpoint
(provider-specific extensions) are kept.
"""

from __future__ import annotations

import uuid
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from pkceflow.exceptions import InvalidClientConfigError
from pkceflow.models import ClientConfig, OauthConfig
from pkceflow.state import encode_state

CODE_CHALLENGE_METHOD = "S256"


def build_auth_url(
    client_config: ClientConfig,
    oauth_config: OauthConfig,
    state: dict[str, Any],
) -> str:
    """Build the authorization request URL.

    A fresh ``nonce`` is generated on every call. *state* is encoded with
    :func:`~pkceflow.state.encode_state`.

    Args:
        client_config: Client registration and PKCE pair.
        oauth_config: Discovered endpoints.
        state: Caller-defined mapping round-tripped through the provider.

    Returns:
        The absolute authorization URL.

    Raises:
        InvalidClientConfigError: If ``oauth_config.auth_url`` is not an
            absolute http(s) URL, or *state* cannot be JSON-encoded.
    """
    try:
        parts = urlsplit(oauth_config.auth_url)
    except ValueError as exc:
        raise InvalidClientConfigError("Invalid auth URL") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidClientConfigError(f"Invalid auth URL: {oauth_config.auth_url!r}")

    try:
        encoded_state = encode_state(state)
    except (TypeError, ValueError) as exc:
        raise InvalidClientConfigError(f"Unable to encode auth state: {exc}") from exc

    params: dict[str, str] = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update(
        {
            "redirect_uri": client_config.redirect_uri,
            "nonce": str(uuid.uuid4()),
            "scope": client_config.scope,
            "response_type": "code",
            "response_mode": "query",
            "state": encoded_state,
            "client_id": client_config.client_id,
            "code_challenge": client_config.code_challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
            "login_hint": client_config.login_hint or "",
        }
    )

    query = urlencode(params, quote_via=quote, safe=":/")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
