"""Tests for the sign-in flow orchestrator."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from pkceflow.client import JsonHttpClient
from pkceflow.exceptions import (
    AuthError,
    FlowInProgressError,
    InvalidClientConfigError,
    PkceflowError,
    ServerError,
    SignInCancelledError,
)
from pkceflow.flow import FlowObserver, Presenter, SignInFlow
from pkceflow.models import ClientConfig, FlowState, OauthConfig
from pkceflow.state import AUTHORIZE_URL_KEY, SOURCE_REDIRECT_URL_KEY, decode_state


ISSUER = "https://idp.example.com"
DISCOVERY_DOC = {
    "authorization_endpoint": f"{ISSUER}/authorize",
    "token_endpoint": f"{ISSUER}/token",
    "userinfo_endpoint": f"{ISSUER}/userinfo",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        headers={"content-type": "application/json"},
        content=json.dumps(data).encode("utf-8"),
    )


def _provider(request: httpx.Request) -> httpx.Response:
    """A well-behaved identity provider."""
    path = request.url.path
    if path == "/.well-known/openid-configuration":
        return _json_response(DISCOVERY_DOC)
    if path == "/token":
        return _json_response({"access_token": "T"})
    if path == "/userinfo":
        return _json_response({"sub": "u1"})
    return httpx.Response(404)


def _http(handler=_provider) -> JsonHttpClient:
    return JsonHttpClient(timeout=5, transport=httpx.MockTransport(handler))


def _client_config() -> ClientConfig:
    return ClientConfig(
        client_id="abc",
        redirect_uri="myapp://cb",
        issuer=ISSUER,
        scope="openid",
        client_secret="s3cr3t",
    )


class RecordingObserver(FlowObserver):
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        state: Optional[dict[str, Any]] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.config = config
        self.state = state or {}
        self.gate = gate
        self.successes: list[tuple[str, dict[str, Any]]] = []
        self.errors: list[PkceflowError] = []

    async def provide_client_config(self) -> Optional[ClientConfig]:
        if self.gate is not None:
            await self.gate.wait()
        return self.config

    async def provide_auth_state(
        self, client_config: ClientConfig, oauth_config: OauthConfig
    ) -> dict[str, Any]:
        return dict(self.state)

    def on_success(self, code: str, client_config: ClientConfig, state: dict[str, Any]) -> None:
        self.successes.append((code, state))

    def on_error(self, error: PkceflowError) -> None:
        self.errors.append(error)


class RecordingPresenter(Presenter):
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.dismissed = 0

    async def present(self, url: str, flow: SignInFlow) -> None:
        self.urls.append(url)

    async def dismiss(self) -> None:
        self.dismissed += 1

    @property
    def state_param(self) -> str:
        return parse_qs(urlsplit(self.urls[-1]).query)["state"][0]


def _flow(
    observer: RecordingObserver,
    presenter: RecordingPresenter,
    **kwargs: Any,
) -> SignInFlow:
    kwargs.setdefault("http", _http())
    return SignInFlow(observer, presenter, **kwargs)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestSignInSuccess:
    def test_full_flow(self) -> None:
        observer = RecordingObserver(_client_config(), state={"tenant": "acme"})
        presenter = RecordingPresenter()

        async def _run() -> tuple[SignInFlow, FlowState, bool]:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            assert flow.state is FlowState.PRESENTING
            accepted = flow.handle_redirect(
                f"myapp://cb?code=AUTH123&state={presenter.state_param}"
            )
            return flow, await flow.wait(), accepted

        flow, final, accepted = asyncio.run(_run())

        assert accepted is True
        assert final is FlowState.COMPLETED
        assert observer.errors == []
        code, state = observer.successes[0]
        assert code == "AUTH123"
        assert state == {
            "tenant": "acme",
            SOURCE_REDIRECT_URL_KEY: "myapp://cb",
            AUTHORIZE_URL_KEY: f"{ISSUER}/authorize",
        }
        assert presenter.dismissed == 1
        assert flow.auth_url == presenter.urls[0]
        assert flow.oauth_config is not None
        assert flow.oauth_config.token_url == f"{ISSUER}/token"

    def test_auth_url_carries_defaults(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> None:
            await _flow(observer, presenter).sign_in()

        asyncio.run(_run())
        state = decode_state(presenter.state_param)
        assert state[SOURCE_REDIRECT_URL_KEY] == "myapp://cb"
        assert state[AUTHORIZE_URL_KEY] == f"{ISSUER}/authorize"

    def test_exchange_and_user_info_after_success(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> tuple[str, dict[str, Any]]:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            flow.handle_redirect(f"myapp://cb?code=AUTH123&state={presenter.state_param}")
            await flow.wait()
            token = await flow.exchange_auth_code("AUTH123")
            return token, await flow.fetch_user_info(token)

        assert asyncio.run(_run()) == ("T", {"sub": "u1"})

    def test_new_sign_in_after_completion(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            flow.handle_redirect(f"myapp://cb?code=one&state={presenter.state_param}")
            await flow.wait()
            await flow.sign_in()
            return flow.state

        assert asyncio.run(_run()) is FlowState.PRESENTING
        assert len(presenter.urls) == 2
        assert observer.errors == []


# ---------------------------------------------------------------------------
# Redirect handling
# ---------------------------------------------------------------------------


class TestRedirects:
    def test_not_mine_leaves_flow_presenting(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> tuple[bool, FlowState]:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            return flow.handle_redirect("https://example.com/?code=x"), flow.state

        assert asyncio.run(_run()) == (False, FlowState.PRESENTING)
        assert observer.successes == [] and observer.errors == []
        assert presenter.dismissed == 0

    def test_provider_error_fails_flow(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            assert flow.handle_redirect(
                "myapp://cb?error=access_denied&error_description=User%20denied"
            )
            return await flow.wait()

        assert asyncio.run(_run()) is FlowState.FAILED
        (error,) = observer.errors
        assert isinstance(error, AuthError)
        assert error.error_code == "access_denied"
        assert str(error) == "access_denied User denied"
        assert presenter.dismissed == 1

    def test_garbage_state_fails_flow(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            flow.handle_redirect("myapp://cb?code=x&state=garbage")
            return await flow.wait()

        assert asyncio.run(_run()) is FlowState.FAILED
        assert observer.errors[0].error_code == "invalid_state"  # type: ignore[attr-defined]

    def test_redirect_when_idle_is_ignored(self) -> None:
        flow = SignInFlow(RecordingObserver(_client_config()), RecordingPresenter())
        assert flow.handle_redirect("myapp://cb?code=x") is False
        assert flow.state is FlowState.IDLE

    def test_second_redirect_after_completion_ignored(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> bool:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            url = f"myapp://cb?code=x&state={presenter.state_param}"
            flow.handle_redirect(url)
            await flow.wait()
            return flow.handle_redirect(url)

        assert asyncio.run(_run()) is False
        assert len(observer.successes) == 1


# ---------------------------------------------------------------------------
# Failures before presentation
# ---------------------------------------------------------------------------


class TestEarlyFailures:
    def test_missing_client_config(self) -> None:
        observer = RecordingObserver(None)
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            return await _flow(observer, presenter).run()

        assert asyncio.run(_run()) is FlowState.FAILED
        (error,) = observer.errors
        assert isinstance(error, InvalidClientConfigError)
        assert str(error) == "Missing client config"
        assert presenter.urls == []
        assert presenter.dismissed == 0

    def test_discovery_failure(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()
        http = _http(lambda request: httpx.Response(500))

        async def _run() -> FlowState:
            return await _flow(observer, presenter, http=http).run()

        assert asyncio.run(_run()) is FlowState.FAILED
        assert isinstance(observer.errors[0], ServerError)
        assert presenter.urls == []

    def test_authority_path_discovery(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return _json_response(DISCOVERY_DOC)

        config = ClientConfig(
            client_id="abc", redirect_uri="myapp://cb", issuer=ISSUER, authority_id="t1"
        )

        async def _run() -> None:
            flow = _flow(
                RecordingObserver(config),
                RecordingPresenter(),
                http=_http(handler),
                use_authority_path=True,
            )
            await flow.sign_in()

        asyncio.run(_run())
        assert seen == ["/t1/.well-known/openid-configuration"]


# ---------------------------------------------------------------------------
# Cancellation and concurrency
# ---------------------------------------------------------------------------


class TestCancellation:
    def test_cancel_while_presenting(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            flow.cancel()
            return await flow.wait()

        assert asyncio.run(_run()) is FlowState.FAILED
        (error,) = observer.errors
        assert isinstance(error, SignInCancelledError)
        assert error.kind == "Cancelled"
        assert presenter.dismissed == 1

    def test_silent_cancel(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> FlowState:
            flow = _flow(observer, presenter, report_cancellation=False)
            await flow.sign_in()
            flow.cancel()
            return await flow.wait()

        assert asyncio.run(_run()) is FlowState.FAILED
        assert observer.errors == []

    def test_cancel_is_idempotent(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        async def _run() -> None:
            flow = _flow(observer, presenter)
            await flow.sign_in()
            flow.cancel()
            flow.cancel()
            await flow.wait()

        asyncio.run(_run())
        assert len(observer.errors) == 1
        assert presenter.dismissed == 1

    def test_cancel_when_idle_is_noop(self) -> None:
        observer = RecordingObserver(_client_config())
        flow = SignInFlow(observer, RecordingPresenter())
        flow.cancel()
        assert flow.state is FlowState.IDLE
        assert observer.errors == []

    def test_cancel_during_config_request_drops_late_config(self) -> None:
        async def _run() -> tuple[RecordingObserver, RecordingPresenter, FlowState]:
            gate = asyncio.Event()
            observer = RecordingObserver(_client_config(), gate=gate)
            presenter = RecordingPresenter()
            flow = _flow(observer, presenter)

            task = asyncio.create_task(flow.sign_in())
            await asyncio.sleep(0)
            assert flow.state is FlowState.CONFIG_REQUESTED
            flow.cancel()
            gate.set()
            await task
            return observer, presenter, flow.state

        observer, presenter, state = asyncio.run(_run())
        assert state is FlowState.FAILED
        assert presenter.urls == []
        assert [type(e) for e in observer.errors] == [SignInCancelledError]

    def test_second_sign_in_rejected(self) -> None:
        async def _run() -> tuple[RecordingObserver, RecordingPresenter, FlowState, FlowState]:
            gate = asyncio.Event()
            observer = RecordingObserver(_client_config(), gate=gate)
            presenter = RecordingPresenter()
            flow = _flow(observer, presenter)

            first = asyncio.create_task(flow.sign_in())
            await asyncio.sleep(0)
            await flow.sign_in()
            during = flow.state
            gate.set()
            await first
            return observer, presenter, during, flow.state

        observer, presenter, during, after = asyncio.run(_run())
        assert during is FlowState.CONFIG_REQUESTED
        assert after is FlowState.PRESENTING
        assert [type(e) for e in observer.errors] == [FlowInProgressError]
        assert len(presenter.urls) == 1


class TestFollowUpCalls:
    def test_exchange_failure_reported_and_raised(self) -> None:
        observer = RecordingObserver(_client_config())
        presenter = RecordingPresenter()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/token":
                return _json_response({"error": "invalid_grant"}, status_code=400)
            return _provider(request)

        async def _run() -> None:
            flow = _flow(observer, presenter, http=_http(handler))
            await flow.sign_in()
            flow.handle_redirect(f"myapp://cb?code=x&state={presenter.state_param}")
            await flow.wait()
            await flow.exchange_auth_code("x")

        with pytest.raises(ServerError):
            asyncio.run(_run())
        assert isinstance(observer.errors[-1], ServerError)

    def test_exchange_before_sign_in(self) -> None:
        observer = RecordingObserver(_client_config())
        flow = SignInFlow(observer, RecordingPresenter())
        with pytest.raises(InvalidClientConfigError):
            asyncio.run(flow.exchange_auth_code("x"))
        assert isinstance(observer.errors[0], InvalidClientConfigError)
