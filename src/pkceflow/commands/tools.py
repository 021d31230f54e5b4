"""Stand-alone helpers that need no sign-in: PKCE pairs, discovery, redirect parsing."""

from __future__ import annotations

from typing import Optional

import typer

from pkceflow.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_CONFIG
from pkceflow.models import ClientConfig, RedirectError, RedirectNotMine
from pkceflow.output import error, format_response
from pkceflow.pkce import DEFAULT_VERIFIER_LENGTH, MAX_VERIFIER_LENGTH, MIN_VERIFIER_LENGTH


def pkce_command(
    length: int = typer.Option(
        DEFAULT_VERIFIER_LENGTH,
        "--length",
        "-l",
        help=f"Verifier length ({MIN_VERIFIER_LENGTH}-{MAX_VERIFIER_LENGTH}).",
    ),
) -> None:
    """Print a fresh PKCE verifier and its S256 challenge."""
    from pkceflow.pkce import generate_pkce_pair

    try:
        verifier, challenge = generate_pkce_pair(length)
    except ValueError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_CONFIG) from None
    format_response(
        {"code_verifier": verifier, "code_challenge": challenge, "method": "S256"}
    )


def discover_command(
    issuer: str = typer.Argument(help="Issuer base URL."),
    authority_id: Optional[str] = typer.Option(
        None, "--authority", help="Authority id for multi-authority issuers."
    ),
    use_authority_path: bool = typer.Option(
        False,
        "--authority-path/--no-authority-path",
        help="Discover under {issuer}/{authority}/.well-known/.",
    ),
) -> None:
    """Fetch an issuer's OpenID configuration and print its endpoints.

    Example::

        pkceflow discover https://login.example.com
    """
    from pkceflow.client import JsonHttpClient
    from pkceflow.commands.signin import run_async
    from pkceflow.config import resolve_global_config
    from pkceflow.discovery import fetch_openid_configuration
    from pkceflow.exceptions import PkceflowError

    try:
        timeout = resolve_global_config().http_timeout
    except PkceflowError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    oauth_config = run_async(
        fetch_openid_configuration(
            issuer,
            authority_id,
            use_authority_path=use_authority_path,
            http=JsonHttpClient(timeout=timeout),
        )
    )
    format_response(oauth_config.model_dump(mode="json"))


def parse_redirect_command(
    profile_name: str = typer.Argument(help="Profile name."),
    url: str = typer.Argument(help="Redirect URL to classify."),
) -> None:
    """Classify a redirect URL against a profile's redirect URI.

    Prints the outcome. Exits with code 3 if the URL carries an error or
    is not addressed to the profile's client.
    """
    from pkceflow.commands.signin import load_context
    from pkceflow.redirect import handle_redirect

    _, profile = load_context(profile_name)
    outcome = handle_redirect(url, ClientConfig.from_profile(profile))
    format_response(outcome.model_dump(mode="json"))
    if isinstance(outcome, RedirectNotMine):
        error(f"URL does not match redirect URI {profile.redirect_uri}")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    if isinstance(outcome, RedirectError):
        error(outcome.message)
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
