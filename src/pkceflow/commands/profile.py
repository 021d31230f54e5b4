"""Profile commands -- manage saved client registrations.

Provides the ``pkceflow profile`` sub-command group. A profile holds the
non-secret half of a client registration (client id, redirect URI,
issuer, scope); the client secret is referenced by a source descriptor
and read at run time.

Typical workflow::

    pkceflow profile add corp --client-id abc \\
        --redirect-uri http://127.0.0.1:8765/callback \\
        --issuer https://login.example.com \\
        --secret-source env:CORP_CLIENT_SECRET
    pkceflow profile use corp
    pkceflow login
"""

from __future__ import annotations

from typing import Optional

import typer

from pkceflow.exceptions import ConfigError
from pkceflow.models import DEFAULT_SCOPE, Profile
from pkceflow.output import error, format_response, info, print_table, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    client_id: str = typer.Option(..., "--client-id", help="OAuth client id."),
    redirect_uri: str = typer.Option(..., "--redirect-uri", help="Registered redirect URI."),
    issuer: str = typer.Option(..., "--issuer", help="Issuer base URL."),
    scope: str = typer.Option(DEFAULT_SCOPE, "--scope", help="Space-delimited scopes."),
    authority_id: Optional[str] = typer.Option(
        None, "--authority", help="Authority id for multi-authority issuers."
    ),
    use_authority_path: bool = typer.Option(
        False,
        "--authority-path/--no-authority-path",
        help="Discover under {issuer}/{authority}/.well-known/.",
    ),
    secret_source: Optional[str] = typer.Option(
        None, "--secret-source", help="Client secret source: env:VAR, file:/path, prompt."
    ),
    login_hint: Optional[str] = typer.Option(None, "--login-hint", help="Pre-filled username."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Create or replace a profile.

    Raises:
        typer.Exit: With code 2 if the profile exists and ``--force`` was
            not given.
    """
    from pkceflow.config import profile_exists, save_profile

    if profile_exists(name) and not force:
        error(f'Profile "{name}" already exists.')
        suggest("Use --force to overwrite it.")
        raise typer.Exit(code=2)

    profile = Profile(
        name=name,
        client_id=client_id,
        redirect_uri=redirect_uri,
        issuer=issuer,
        scope=scope,
        authority_id=authority_id,
        use_authority_path=use_authority_path,
        client_secret_source=secret_source,
        login_hint=login_hint,
    )
    save_profile(profile)
    success(f'Profile "{name}" saved.')
    suggest(f"Sign in: pkceflow login {name}")


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Print a profile."""
    from pkceflow.config import load_profile

    try:
        profile = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(profile.model_dump(mode="json"))


@profile_app.command("list")
def profile_list() -> None:
    """List saved profiles; the default one is marked with ``*``."""
    from pkceflow.config import list_profiles, load_global_config

    names = list_profiles()
    if not names:
        info("No profiles saved.")
        suggest("Create one: pkceflow profile add NAME --client-id ... --issuer ...")
        return
    default = load_global_config().default_profile
    print_table(
        ["default", "name"],
        [["*" if n == default else "", n] for n in names],
        title="Profiles",
    )


@profile_app.command("remove")
def profile_remove(name: str = typer.Argument(help="Profile name.")) -> None:
    """Delete a profile (and unset it as default)."""
    from pkceflow.config import delete_profile, load_global_config, save_global_config

    try:
        delete_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    cfg = load_global_config()
    if cfg.default_profile == name:
        cfg.default_profile = None
        save_global_config(cfg)
    success(f'Profile "{name}" removed.')


@profile_app.command("use")
def profile_use(name: str = typer.Argument(help="Profile name.")) -> None:
    """Make a profile the default for commands that take an optional profile."""
    from pkceflow.config import load_global_config, profile_exists, save_global_config

    if not profile_exists(name):
        error(f"Profile '{name}' not found.")
        raise typer.Exit(code=ConfigError.exit_code)
    cfg = load_global_config()
    cfg.default_profile = name
    save_global_config(cfg)
    success(f'Default profile set to "{name}".')
