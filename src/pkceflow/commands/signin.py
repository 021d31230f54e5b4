"""Sign-in commands -- run the Authorization Code + PKCE flow from the terminal.

``login`` drives the whole flow through a
:class:`~pkceflow.flow.SignInFlow`. ``authorize-url``, ``exchange`` and
``userinfo`` expose the individual steps so that a flow can be driven by
hand (for example when the redirect lands in another application).

Typical workflow::

    pkceflow login corp --userinfo
    pkceflow authorize-url corp --state tenant=acme
    pkceflow exchange corp CODE --verifier VERIFIER
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import Iterator
from typing import Any, Optional

import typer

from pkceflow.exceptions import PkceflowError, SignInCancelledError
from pkceflow.exit_codes import EXIT_INVALID_CONFIG
from pkceflow.flow import FlowObserver, Presenter, SignInFlow
from pkceflow.models import ClientConfig, FlowState, GlobalConfig, OauthConfig, Profile
from pkceflow.output import debug, error, format_response, info, print_data, success


class CliObserver(FlowObserver):
    """Supplies a fixed client config and records the outcome of one attempt."""

    def __init__(self, client_config: ClientConfig, state: Optional[dict[str, Any]] = None) -> None:
        self._client_config = client_config
        self._state = state or {}
        self.code: Optional[str] = None
        self.returned_state: dict[str, Any] = {}
        self.errors: list[PkceflowError] = []

    async def provide_client_config(self) -> Optional[ClientConfig]:
        return self._client_config

    async def provide_auth_state(
        self, client_config: ClientConfig, oauth_config: OauthConfig
    ) -> dict[str, Any]:
        return dict(self._state)

    def on_success(self, code: str, client_config: ClientConfig, state: dict[str, Any]) -> None:
        self.code = code
        self.returned_state = state

    def on_error(self, error: PkceflowError) -> None:
        debug(f"{error.kind}: {error}")
        self.errors.append(error)


# ------------------------------------------------------------------ #
# Shared helpers
# ------------------------------------------------------------------ #


def load_context(profile_name: Optional[str]) -> tuple[GlobalConfig, Profile]:
    """Resolve the global config and a profile, exiting with a message when there is none."""
    from pkceflow.config import resolve_config

    try:
        cfg, profile = resolve_config(cli_profile=profile_name)
    except PkceflowError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    if profile is None:
        error("No profile given and no default profile set.")
        raise typer.Exit(code=EXIT_INVALID_CONFIG)
    return cfg, profile


def client_secret_for(profile: Profile) -> Optional[str]:
    """Read the profile's client secret, if it declares a source."""
    from pkceflow.config import resolve_credential

    if not profile.client_secret_source:
        return None
    try:
        return resolve_credential(profile.client_secret_source)
    except PkceflowError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def parse_state_options(pairs: Optional[list[str]]) -> dict[str, Any]:
    """Turn ``KEY=VALUE`` options into a state mapping."""
    state: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            error(f"Invalid --state value {pair!r}; expected KEY=VALUE.")
            raise typer.Exit(code=EXIT_INVALID_CONFIG)
        state[key] = value
    return state


def run_async(coro: Any) -> Any:
    """Run *coro* to completion, mapping pkceflow errors onto exit codes."""
    try:
        return asyncio.run(coro)
    except PkceflowError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


def login_command(
    profile_name: Optional[str] = typer.Argument(None, help="Profile name (default profile if omitted)."),
    exchange: Optional[bool] = typer.Option(
        None,
        "--exchange/--no-exchange",
        help="Exchange the code for an access token (default: when a secret source is set).",
    ),
    userinfo: bool = typer.Option(False, "--userinfo", help="Also fetch user info claims."),
    manual: bool = typer.Option(
        False, "--manual", help="Paste the redirect URL instead of listening on loopback."
    ),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser."),
    state: Optional[list[str]] = typer.Option(
        None, "--state", help="Extra auth state entry KEY=VALUE (repeatable)."
    ),
) -> None:
    """Sign in through the browser and print the result.

    Prints a JSON object with the authorization ``code`` and the returned
    ``state``, plus ``access_token`` and ``userinfo`` when requested.

    Example::

        pkceflow login corp --userinfo
    """
    from pkceflow.presenters import LoopbackBrowserPresenter, ManualPastePresenter

    cfg, profile = load_context(profile_name)
    extra_state = parse_state_options(state)

    if exchange is None:
        exchange = profile.client_secret_source is not None
    if userinfo and not exchange:
        error("--userinfo needs an access token; drop --no-exchange.")
        raise typer.Exit(code=EXIT_INVALID_CONFIG)

    secret = client_secret_for(profile) if exchange else None
    client_config = ClientConfig.from_profile(profile, client_secret=secret)

    presenter: Presenter
    if manual:
        presenter = ManualPastePresenter(announce=info, open_browser=not no_browser)
    else:
        presenter = LoopbackBrowserPresenter(open_browser=not no_browser, announce=info)

    result = run_async(
        _login(cfg, profile, client_config, presenter, extra_state, exchange, userinfo)
    )
    success("Signed in.")
    format_response(result)


@contextlib.contextmanager
def cancel_on_interrupt(flow: SignInFlow) -> Iterator[None]:
    """Turn Ctrl-C into :meth:`SignInFlow.cancel` while the block runs.

    Must be entered from a task on the running loop. Outside a live attempt
    (before it starts, or during the token exchange) Ctrl-C cancels that
    task instead. Where the loop cannot own SIGINT (non-main thread,
    Windows) the process-wide handler stays in charge.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    previous = signal.getsignal(signal.SIGINT)

    def _interrupt() -> None:
        if flow.state is FlowState.IDLE or flow.state.is_terminal:
            if task is not None:
                task.cancel()
        else:
            debug("Interrupted; cancelling sign-in")
            flow.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _interrupt)
    except (NotImplementedError, RuntimeError):
        installed = False
    else:
        installed = True
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
            if previous is not None:
                signal.signal(signal.SIGINT, previous)


async def _login(
    cfg: GlobalConfig,
    profile: Profile,
    client_config: ClientConfig,
    presenter: Presenter,
    extra_state: dict[str, Any],
    exchange: bool,
    userinfo: bool,
) -> dict[str, Any]:
    from pkceflow.client import JsonHttpClient

    observer = CliObserver(client_config, extra_state)
    async with JsonHttpClient(timeout=cfg.http_timeout) as http:
        flow = SignInFlow(
            observer,
            presenter,
            http=http,
            use_authority_path=profile.use_authority_path,
            report_cancellation=cfg.report_cancellation,
        )
        try:
            with cancel_on_interrupt(flow):
                return await _drive(flow, observer, exchange, userinfo)
        except asyncio.CancelledError:
            raise SignInCancelledError("Sign-in cancelled") from None


async def _drive(
    flow: SignInFlow, observer: CliObserver, exchange: bool, userinfo: bool
) -> dict[str, Any]:
    final = await flow.run()
    if final is not FlowState.COMPLETED or observer.code is None:
        if observer.errors:
            raise observer.errors[-1]
        raise SignInCancelledError("Sign-in cancelled")

    result: dict[str, Any] = {"code": observer.code, "state": observer.returned_state}
    if exchange:
        access_token = await flow.exchange_auth_code(observer.code)
        result["access_token"] = access_token
        if userinfo:
            result["userinfo"] = await flow.fetch_user_info(access_token)
    return result


def authorize_url_command(
    profile_name: Optional[str] = typer.Argument(None, help="Profile name (default profile if omitted)."),
    state: Optional[list[str]] = typer.Option(
        None, "--state", help="Extra auth state entry KEY=VALUE (repeatable)."
    ),
) -> None:
    """Discover the issuer and print an authorization URL with its PKCE verifier.

    Keep the printed ``code_verifier``: ``pkceflow exchange`` needs it to
    redeem the code.
    """
    cfg, profile = load_context(profile_name)
    extra_state = parse_state_options(state)
    client_config = ClientConfig.from_profile(profile)

    async def _build() -> dict[str, Any]:
        from pkceflow.authorize import build_auth_url
        from pkceflow.client import JsonHttpClient
        from pkceflow.discovery import fetch_openid_configuration
        from pkceflow.state import with_default_state

        oauth_config = await fetch_openid_configuration(
            profile.issuer,
            profile.authority_id,
            use_authority_path=profile.use_authority_path,
            http=JsonHttpClient(timeout=cfg.http_timeout),
        )
        auth_state = with_default_state(
            extra_state, client_config.redirect_uri, oauth_config.auth_url
        )
        return {
            "url": build_auth_url(client_config, oauth_config, auth_state),
            "code_verifier": client_config.code_verifier,
        }

    format_response(run_async(_build()))


def exchange_command(
    profile_name: str = typer.Argument(help="Profile name."),
    code: str = typer.Argument(help="Authorization code from the redirect."),
    verifier: str = typer.Option(..., "--verifier", help="PKCE code verifier used for the request."),
) -> None:
    """Exchange an authorization code for an access token and print it."""
    cfg, profile = load_context(profile_name)
    client_config = ClientConfig(
        client_id=profile.client_id,
        redirect_uri=profile.redirect_uri,
        issuer=profile.issuer,
        authority_id=profile.authority_id,
        scope=profile.scope,
        client_secret=client_secret_for(profile),
        code_verifier=verifier,
    )

    async def _exchange() -> str:
        from pkceflow.client import JsonHttpClient
        from pkceflow.discovery import fetch_openid_configuration
        from pkceflow.token import exchange_auth_code

        async with JsonHttpClient(timeout=cfg.http_timeout) as http:
            oauth_config = await fetch_openid_configuration(
                profile.issuer,
                profile.authority_id,
                use_authority_path=profile.use_authority_path,
                http=http,
            )
            return await exchange_auth_code(code, client_config, oauth_config, http=http)

    print_data(run_async(_exchange()))


def userinfo_command(
    profile_name: str = typer.Argument(help="Profile name."),
    access_token: str = typer.Argument(help="Bearer access token."),
) -> None:
    """Fetch and print the user info claims for an access token."""
    cfg, profile = load_context(profile_name)

    async def _fetch() -> dict[str, Any]:
        from pkceflow.client import JsonHttpClient
        from pkceflow.discovery import fetch_openid_configuration
        from pkceflow.userinfo import fetch_user_info

        async with JsonHttpClient(timeout=cfg.http_timeout) as http:
            oauth_config = await fetch_openid_configuration(
                profile.issuer,
                profile.authority_id,
                use_authority_path=profile.use_authority_path,
                http=http,
            )
            return await fetch_user_info(access_token, oauth_config, http=http)

    format_response(run_async(_fetch()))
