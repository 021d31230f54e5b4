"""OpenID Connect discovery -- resolve an issuer into its endpoint URLs.

Fetches ``{issuer}/.well-known/openid-configuration`` (or, for providers
that host several authorities under one issuer,
``{issuer}/{authority_id}/.well-known/openid-configuration``) and turns
the document into an :class:`~pkceflow.models.OauthConfig`.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlsplit

from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import InvalidClientConfigError, ParseError
from pkceflow.models import OauthConfig

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = ".well-known/openid-configuration"
DEFAULT_AUTHORITY = "default"

_REQUIRED_FIELDS = ("authorization_endpoint", "token_endpoint", "userinfo_endpoint")


def build_discovery_url(
    issuer: str,
    authority_id: Optional[str] = None,
    use_authority_path: bool = False,
) -> str:
    """Return the well-known configuration URL for *issuer*.

    Args:
        issuer: Issuer base URL. A trailing slash is ignored.
        authority_id: Authority segment; ``"default"`` when omitted.
        use_authority_path: Insert the authority segment between issuer
            and well-known path.

    Raises:
        InvalidClientConfigError: If the resulting URL has no http(s)
            scheme or no host.
    """
    base = issuer.rstrip("/")
    if use_authority_path:
        url = f"{base}/{authority_id or DEFAULT_AUTHORITY}/{WELL_KNOWN_PATH}"
    else:
        url = f"{base}/{WELL_KNOWN_PATH}"

    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise InvalidClientConfigError(f"Invalid openid config URL: {url}") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidClientConfigError(f"Invalid openid config URL: {url}")
    return url


async def fetch_openid_configuration(
    issuer: str,
    authority_id: Optional[str] = None,
    *,
    use_authority_path: bool = False,
    http: Optional[JsonHttpClient] = None,
) -> OauthConfig:
    """Fetch and parse the issuer's discovery document.

    Args:
        issuer: Issuer base URL, copied unchanged into the result.
        authority_id: Optional authority segment (see
            :func:`build_discovery_url`).
        use_authority_path: Whether to use the authority URL form.
        http: Client to send the request with; a default one is used when
            omitted.

    Returns:
        The discovered :class:`~pkceflow.models.OauthConfig`.

    Raises:
        InvalidClientConfigError: If the discovery URL cannot be built.
        ServerError: On transport failure or a non-2xx response.
        ParseError: If the body is not a JSON object with the three
            endpoint fields as strings.
    """
    url = build_discovery_url(issuer, authority_id, use_authority_path)
    http = http or JsonHttpClient()
    doc = await http.request_json("GET", url, description="openid discovery")

    if not isinstance(doc, dict):
        raise ParseError("Error parsing oauth config response from issuer")

    missing = [f for f in _REQUIRED_FIELDS if not isinstance(doc.get(f), str)]
    if missing:
        raise ParseError(
            "Missing required oauth config properties from issuer openid config: "
            + ", ".join(missing)
        )

    logger.debug("Discovered endpoints for %s", issuer)
    return OauthConfig(
        issuer=issuer,
        auth_url=doc["authorization_endpoint"],
        token_url=doc["token_endpoint"],
        user_info_url=doc["userinfo_endpoint"],
    )
