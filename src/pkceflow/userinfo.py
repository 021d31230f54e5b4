"""UserInfo endpoint call."""

from __future__ import annotations

from typing import Any, Optional

from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import InvalidClientConfigError, ParseError
from pkceflow.models import OauthConfig


async def fetch_user_info(
    access_token: str,
    oauth_config: Optional[OauthConfig],
    *,
    http: Optional[JsonHttpClient] = None,
) -> dict[str, Any]:
    """Fetch the signed-in user's claims with a bearer token.

    Returns:
        The claims object. Values may be ``None``.

    Raises:
        InvalidClientConfigError: If there is no oauth config or it has no
            user info URL.
        ServerError: On transport failure or non-2xx status.
        ParseError: If the body is not a JSON object.
    """
    if oauth_config is None:
        raise InvalidClientConfigError("Missing oauth config")
    if not oauth_config.user_info_url:
        raise InvalidClientConfigError("Missing user info URL")

    http = http or JsonHttpClient()
    claims = await http.request_json(
        "GET",
        oauth_config.user_info_url,
        headers={"Authorization": f"Bearer {access_token}"},
        description="user info request",
    )
    if not isinstance(claims, dict):
        raise ParseError("JSON parse error from user info response")
    return claims
