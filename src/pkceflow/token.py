"""Authorization code exchange at the token endpoint.

Posts an ``authorization_code`` grant, authenticated with HTTP Basic
(``client_id:client_secret``), and returns the access token. The PKCE
``code_verifier`` is always sent; without it an S256 challenge cannot be
satisfied.
"""

from __future__ import annotations

import base64
from typing import Optional

from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import InvalidClientConfigError, ParseError, ServerError
from pkceflow.models import ClientConfig, OauthConfig


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Return the ``Authorization`` header value for client credentials."""
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


async def exchange_auth_code(
    code: str,
    client_config: Optional[ClientConfig],
    oauth_config: Optional[OauthConfig],
    *,
    http: Optional[JsonHttpClient] = None,
) -> str:
    """Exchange an authorization code for an access token.

    Args:
        code: The code from a :class:`~pkceflow.models.RedirectSuccess`.
        client_config: The config used for the authorization request (its
            ``code_verifier`` must be the one the challenge came from).
        oauth_config: Discovered endpoints.
        http: Client to send the request with.

    Returns:
        The ``access_token`` string.

    Raises:
        InvalidClientConfigError: If either config or the client secret is
            missing. No request is made.
        ServerError: On transport failure, non-2xx status, or a response
            without ``access_token``.
        ParseError: If a 2xx body is not a JSON object.
    """
    if client_config is None:
        raise InvalidClientConfigError("Missing client config")
    if oauth_config is None:
        raise InvalidClientConfigError("Missing oauth config")
    if not client_config.client_secret:
        raise InvalidClientConfigError(
            "Unknown client secret, cannot exchange auth code"
        )

    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": client_config.redirect_uri,
        "code_verifier": client_config.code_verifier,
    }
    headers = {
        "Authorization": basic_auth_header(
            client_config.client_id, client_config.client_secret
        ),
        "Content-Type": "application/x-www-form-urlencoded",
    }

    http = http or JsonHttpClient()
    body = await http.request_json(
        "POST",
        oauth_config.token_url,
        headers=headers,
        data=data,
        description="token exchange",
    )

    if not isinstance(body, dict):
        raise ParseError("JSON parse error from token endpoint")

    access_token = body.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        error_code = body.get("error") if isinstance(body.get("error"), str) else None
        raise ServerError(
            error_code or "Unknown server error, no access token returned",
            error_code=error_code,
        )
    return access_token
