"""Sign-in flow orchestration.

:class:`SignInFlow` sequences one Authorization Code + PKCE attempt:

1. ask the :class:`FlowObserver` for a :class:`~pkceflow.models.ClientConfig`
2. discover the issuer's endpoints
3. ask the observer for the caller-defined auth state
4. build the authorization URL and hand it to the :class:`Presenter`
5. wait for the presenter to forward a redirect (or a cancellation)
6. report success or failure to the observer and dismiss the presenter

Everything runs on the asyncio event loop that called :meth:`SignInFlow.sign_in`.
Errors are reported through :meth:`FlowObserver.on_error` and never
raised out of :meth:`~SignInFlow.sign_in`, :meth:`~SignInFlow.handle_redirect`
or :meth:`~SignInFlow.cancel`.

Token exchange and user info are separate steps the caller invokes
after a success is reported; the flow does not chain them.

Example::

    flow = SignInFlow(observer, LoopbackBrowserPresenter())
    await flow.sign_in()
    if await flow.wait() is FlowState.COMPLETED:
        token = await flow.exchange_auth_code(observer.code)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from pkceflow import authorize, discovery, redirect, token, userinfo
from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import (
    AuthError,
    FlowInProgressError,
    InvalidClientConfigError,
    PkceflowError,
    SignInCancelledError,
)
from pkceflow.models import (
    ClientConfig,
    FlowState,
    OauthConfig,
    RedirectError,
    RedirectNotMine,
    RedirectSuccess,
)
from pkceflow.state import with_default_state

logger = logging.getLogger(__name__)


class FlowObserver(ABC):
    """Caller-implemented hooks that supply inputs and receive outcomes.

    :meth:`provide_client_config` and :meth:`on_success` / :meth:`on_error`
    must be implemented. :meth:`provide_auth_state` defaults to an empty
    state.
    """

    @abstractmethod
    async def provide_client_config(self) -> Optional[ClientConfig]:
        """Return the client config for this attempt, or ``None`` to abort."""

    async def provide_auth_state(
        self, client_config: ClientConfig, oauth_config: OauthConfig
    ) -> dict[str, Any]:
        """Return values to round-trip through the ``state`` parameter.

        ``source_redirect_url`` and ``authorize_url`` may be included to
        override the defaults the flow fills in.
        """
        return {}

    @abstractmethod
    def on_success(
        self, code: str, client_config: ClientConfig, state: dict[str, Any]
    ) -> None:
        """The provider redirected back with an authorization code."""

    @abstractmethod
    def on_error(self, error: PkceflowError) -> None:
        """The attempt (or a follow-up call) failed."""


class Presenter(ABC):
    """The interactive surface that shows the authorization URL.

    A presenter opens *url* for the user, then forwards every candidate
    redirect to :meth:`SignInFlow.handle_redirect` and a user dismissal to
    :meth:`SignInFlow.cancel`. Both must be called on the flow's event loop.
    """

    @abstractmethod
    async def present(self, url: str, flow: SignInFlow) -> None:
        """Show *url*. Should return once presentation has started."""

    async def dismiss(self) -> None:
        """Tear down the surface. Called once the attempt is over; must be idempotent."""


class SignInFlow:
    """One orchestrator per app session; runs one sign-in attempt at a time.

    Args:
        observer: Supplies configs and receives outcomes.
        presenter: Shows the authorization URL and forwards the redirect.
        http: Client for discovery, token and user info requests.
        use_authority_path: Discover under ``{issuer}/{authority_id}/``.
        report_cancellation: Report a dismissal as
            :class:`~pkceflow.exceptions.SignInCancelledError`; when
            ``False`` the flow fails silently.
    """

    def __init__(
        self,
        observer: FlowObserver,
        presenter: Presenter,
        *,
        http: Optional[JsonHttpClient] = None,
        use_authority_path: bool = False,
        report_cancellation: bool = True,
    ) -> None:
        self._observer = observer
        self._presenter = presenter
        self._http = http or JsonHttpClient()
        self._use_authority_path = use_authority_path
        self._report_cancellation = report_cancellation

        self._state = FlowState.IDLE
        self._attempt = 0
        self._client_config: Optional[ClientConfig] = None
        self._oauth_config: Optional[OauthConfig] = None
        self._auth_url: Optional[str] = None
        self._presented = False
        self._done: Optional[asyncio.Future[FlowState]] = None
        self._dismiss_task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def client_config(self) -> Optional[ClientConfig]:
        return self._client_config

    @property
    def oauth_config(self) -> Optional[OauthConfig]:
        return self._oauth_config

    @property
    def auth_url(self) -> Optional[str]:
        """The authorization URL handed to the presenter, once built."""
        return self._auth_url

    # ------------------------------------------------------------------ #
    # Sign-in
    # ------------------------------------------------------------------ #

    async def sign_in(self) -> None:
        """Run the flow up to presentation.

        Returns once the presenter has been given the authorization URL, or
        as soon as the attempt fails. A call while another attempt is still
        running is rejected with
        :class:`~pkceflow.exceptions.FlowInProgressError` and leaves that
        attempt untouched.
        """
        if self._state is not FlowState.IDLE and not self._state.is_terminal:
            logger.warning("sign_in rejected: attempt in state %s", self._state.value)
            self._observer.on_error(
                FlowInProgressError("A sign-in attempt is already in progress")
            )
            return

        self._reset()
        attempt = self._attempt

        try:
            # 1. client config
            self._transition(FlowState.CONFIG_REQUESTED)
            config = await self._observer.provide_client_config()
            if not self._is_current(attempt):
                return
            if config is None:
                raise InvalidClientConfigError("Missing client config")
            self._client_config = config
            self._transition(FlowState.CONFIG_RECEIVED)

            # 2-3. discovery
            self._transition(FlowState.DISCOVERY_IN_FLIGHT)
            oauth_config = await discovery.fetch_openid_configuration(
                config.issuer,
                config.authority_id,
                use_authority_path=self._use_authority_path,
                http=self._http,
            )
            if not self._is_current(attempt):
                return
            self._oauth_config = oauth_config
            self._transition(FlowState.OAUTH_READY)

            # 4. auth state
            self._transition(FlowState.AUTH_STATE_REQUESTED)
            auth_state = await self._observer.provide_auth_state(config, oauth_config)
            if not self._is_current(attempt):
                return
            auth_state = with_default_state(
                auth_state, config.redirect_uri, oauth_config.auth_url
            )

            # 5. present
            self._auth_url = authorize.build_auth_url(config, oauth_config, auth_state)
            self._transition(FlowState.PRESENTING)
            self._presented = True
            await self._presenter.present(self._auth_url, self)
        except PkceflowError as exc:
            if self._is_current(attempt):
                self._fail(exc)

    async def wait(self) -> FlowState:
        """Wait until the current attempt completes or fails and return that state."""
        if self._done is not None:
            await asyncio.shield(self._done)
        if self._dismiss_task is not None:
            await self._dismiss_task
        return self._state

    async def run(self) -> FlowState:
        """:meth:`sign_in` followed by :meth:`wait`."""
        await self.sign_in()
        return await self.wait()

    def handle_redirect(self, url: str) -> bool:
        """Offer a candidate redirect URL to the flow.

        Returns:
            ``False`` if the URL is not addressed to this client, or no
            attempt is waiting for a redirect; the caller should let normal
            navigation continue. ``True`` if the URL ended the attempt.
        """
        if self._state is not FlowState.PRESENTING or self._client_config is None:
            return False

        outcome = redirect.handle_redirect(url, self._client_config)
        if isinstance(outcome, RedirectNotMine):
            logger.debug("Ignoring redirect not addressed to this client")
            return False

        self._transition(FlowState.REDIRECT_PENDING)
        if isinstance(outcome, RedirectError):
            self._fail(AuthError(outcome.message, error_code=outcome.error))
        elif isinstance(outcome, RedirectSuccess):
            self._finish(FlowState.COMPLETED)
            self._observer.on_success(outcome.code, self._client_config, outcome.state)
        return True

    def cancel(self) -> None:
        """The user dismissed the sign-in. No-op once the attempt is over."""
        if self._state is FlowState.IDLE or self._state.is_terminal:
            return
        # Invalidate any await still in flight for this attempt
        self._attempt += 1
        if self._report_cancellation:
            self._fail(SignInCancelledError("Sign-in cancelled by user"))
        else:
            logger.info("Sign-in cancelled by user")
            self._finish(FlowState.FAILED)

    # ------------------------------------------------------------------ #
    # Follow-up calls
    # ------------------------------------------------------------------ #

    async def exchange_auth_code(self, code: str) -> str:
        """Exchange *code* using this flow's client and oauth configs.

        Failures are reported to the observer and re-raised.
        """
        try:
            return await token.exchange_auth_code(
                code, self._client_config, self._oauth_config, http=self._http
            )
        except PkceflowError as exc:
            self._observer.on_error(exc)
            raise

    async def fetch_user_info(self, access_token: str) -> dict[str, Any]:
        """Fetch user claims using this flow's oauth config.

        Failures are reported to the observer and re-raised.
        """
        try:
            return await userinfo.fetch_user_info(
                access_token, self._oauth_config, http=self._http
            )
        except PkceflowError as exc:
            self._observer.on_error(exc)
            raise

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _reset(self) -> None:
        self._attempt += 1
        self._state = FlowState.IDLE
        self._client_config = None
        self._oauth_config = None
        self._auth_url = None
        self._presented = False
        self._dismiss_task = None
        self._done = asyncio.get_running_loop().create_future()

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt and not self._state.is_terminal

    def _transition(self, new_state: FlowState) -> None:
        logger.debug("Sign-in flow %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _fail(self, error: PkceflowError) -> None:
        logger.debug("Sign-in failed (%s): %s", error.kind, error)
        self._finish(FlowState.FAILED)
        self._observer.on_error(error)

    def _finish(self, final_state: FlowState) -> None:
        self._transition(final_state)
        if self._done is not None and not self._done.done():
            self._done.set_result(final_state)
        if self._presented:
            self._presented = False
            self._dismiss_task = asyncio.get_running_loop().create_task(
                self._presenter.dismiss()
            )
