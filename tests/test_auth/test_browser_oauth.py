"""Test the desktop sign-in orchestrator (end to end over a real loopback socket)."""
import asyncio
import socket
import threading
import time
from dataclasses import replace
from unittest.mock import patch

import pytest

from desktop_auth.exceptions import (
    AccessDeniedError,
    BindError,
    BrowserLaunchError,
    ConfigurationError,
    ExchangeError,
    InvalidTransitionError,
    SignInInProgressError,
    SignInTimeoutError,
    StateMismatchError,
    UserCancelledError,
)
from desktop_auth.flows.browser_oauth import (
    SignInOrchestrator,
    SignInSession,
    SignInStatus,
    open_system_browser,
)
from desktop_auth.flows.callback_server import RedirectListener
from desktop_auth.flows.pkce import derive_code_challenge
from desktop_auth.flows.token_client import TokenClient


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _is_listening(port: int) -> bool:
    try:
        with socket.create_connection(("127.0.0.1", port), timeout=1):
            return True
    except OSError:
        return False


@pytest.fixture
def orchestrator(provider_stub, browser) -> SignInOrchestrator:
    return SignInOrchestrator(
        token_client=TokenClient(transport=provider_stub.transport),
        launch_browser=browser,
    )


class TestSignInSession:
    """세션 상태 머신 테스트."""

    def test_create_generates_fresh_material(self):
        """세션마다 새 PKCE / state."""
        first, second = SignInSession.create(), SignInSession.create()
        assert first.status is SignInStatus.PENDING
        assert first.state != second.state
        assert first.pkce.code_verifier != second.pkce.code_verifier

    def test_happy_path_transitions(self):
        """PENDING -> AWAITING_REDIRECT -> EXCHANGING -> COMPLETED."""
        session = SignInSession.create()
        session.advance(SignInStatus.AWAITING_REDIRECT)
        session.advance(SignInStatus.EXCHANGING)
        session.advance(SignInStatus.COMPLETED)
        assert session.status.is_terminal

    def test_terminal_state_is_final(self):
        """종료 상태에서는 전이 불가."""
        session = SignInSession.create()
        session.advance(SignInStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError):
            session.advance(SignInStatus.AWAITING_REDIRECT)

    def test_cannot_skip_redirect(self):
        """리디렉션 없이 교환 불가."""
        session = SignInSession.create()
        with pytest.raises(InvalidTransitionError):
            session.advance(SignInStatus.EXCHANGING)

    def test_timeout_only_while_awaiting(self):
        """시간 초과는 리디렉션 대기 중에만."""
        session = SignInSession.create()
        with pytest.raises(InvalidTransitionError):
            session.advance(SignInStatus.TIMED_OUT)

    def test_repr_hides_secrets(self):
        """repr에 verifier / state 노출 안 함."""
        session = SignInSession.create()
        assert session.state not in repr(session)
        assert session.pkce.code_verifier not in repr(session)


class TestSignInSuccess:
    """정상 로그인 테스트."""

    @pytest.mark.asyncio
    async def test_sign_in_returns_token(self, orchestrator, provider_stub, browser, config):
        """리디렉션 수신 후 토큰 교환."""
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        before = int(time.time())
        result = await orchestrator.sign_in(config)
        browser.join()

        assert result.access_token == "AT1"
        assert result.id_token == "IDT1"
        assert result.refresh_token == "RT1"
        assert result.scopes == ["openid", "email"]
        assert before + 3600 <= result.expires_at <= int(time.time()) + 3600
        assert orchestrator.session.status is SignInStatus.COMPLETED
        assert not orchestrator.is_active

        # 브라우저에는 성공 페이지
        assert browser.responses[0].status_code == 200
        assert "Sign-in complete" in browser.responses[0].text

    @pytest.mark.asyncio
    async def test_exchange_uses_session_material(self, orchestrator, provider_stub, browser, config):
        """교환 요청의 verifier / redirect_uri가 인증 URL과 일치."""
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        await orchestrator.sign_in(config)
        query = browser.last_query
        form = provider_stub.forms[0]

        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "ABC"
        assert form["redirect_uri"] == query["redirect_uri"]
        assert derive_code_challenge(form["code_verifier"]) == query["code_challenge"]
        assert query["redirect_uri"] == f"http://localhost:{orchestrator.session.port}/callback"
        assert query["access_type"] == "offline"
        assert query["prompt"] == "consent"

    @pytest.mark.asyncio
    async def test_requested_scopes_used_when_response_has_none(
        self, orchestrator, provider_stub, browser, config
    ):
        """응답에 scope가 없으면 요청 scope 사용."""
        provider_stub.token_body = {"access_token": "AT1", "expires_in": 3600}
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        result = await orchestrator.sign_in(replace(config, scopes=("email",)))

        assert result.scopes == ["openid", "email"]
        assert result.refresh_token is None

    @pytest.mark.asyncio
    async def test_port_released_after_completion(self, orchestrator, browser, config):
        """완료 후 같은 고정 포트로 다시 바인딩 가능."""
        port = _free_port()
        config = replace(config, redirect_uri=f"http://localhost:{port}/callback")
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        await orchestrator.sign_in(config)
        browser.join()

        assert orchestrator.session.port == port
        with RedirectListener().start(port) as listener:
            assert listener.port == port

    @pytest.mark.asyncio
    async def test_sequential_sign_ins_use_new_sessions(self, orchestrator, browser, config):
        """두 번째 로그인은 새 state / verifier."""
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        await orchestrator.sign_in(config)
        first_state = browser.last_query["state"]
        await orchestrator.sign_in(config)

        assert browser.last_query["state"] != first_state

    @pytest.mark.asyncio
    async def test_async_browser_launcher(self, provider_stub, browser, config):
        """async 브라우저 collaborator 지원."""
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        async def launch(url):
            browser(url)

        orchestrator = SignInOrchestrator(
            token_client=TokenClient(transport=provider_stub.transport),
            launch_browser=launch,
        )
        result = await orchestrator.sign_in(config)
        assert result.access_token == "AT1"


class TestSignInFailures:
    """로그인 실패 경로 테스트."""

    @pytest.mark.asyncio
    async def test_access_denied(self, orchestrator, provider_stub, browser, config):
        """제공자 거부 - 교환 요청 없음."""
        browser.respond = lambda query: {
            "error": "access_denied",
            "error_description": "The user denied access",
            "state": query["state"],
        }

        with pytest.raises(AccessDeniedError) as exc_info:
            await orchestrator.sign_in(config)

        assert exc_info.value.error_code == "access_denied"
        assert exc_info.value.description == "The user denied access"
        assert provider_stub.requests == []
        assert orchestrator.session.status is SignInStatus.FAILED

    @pytest.mark.asyncio
    async def test_error_without_state(self, orchestrator, provider_stub, browser, config):
        """state 없는 error 리디렉션도 AccessDeniedError."""
        browser.respond = lambda query: {"error": "access_denied"}

        with pytest.raises(AccessDeniedError):
            await orchestrator.sign_in(config)
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_cancel_error_code(self, orchestrator, provider_stub, browser, config):
        """취소 error 코드는 UserCancelledError."""
        browser.respond = lambda query: {"error": "user_cancelled", "state": query["state"]}

        with pytest.raises(UserCancelledError):
            await orchestrator.sign_in(config)
        assert orchestrator.session.status is SignInStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_state_mismatch_with_valid_code(self, orchestrator, provider_stub, browser, config):
        """state 불일치는 code가 있어도 교환하지 않음."""
        browser.respond = lambda query: {"code": "ABC", "state": "forged-state"}

        with pytest.raises(StateMismatchError):
            await orchestrator.sign_in(config)

        assert provider_stub.requests == []
        assert orchestrator.session.status is SignInStatus.FAILED

    @pytest.mark.asyncio
    async def test_missing_state(self, orchestrator, provider_stub, browser, config):
        """state 없이 code만 온 경우도 불일치."""
        browser.respond = lambda query: {"code": "ABC"}

        with pytest.raises(StateMismatchError):
            await orchestrator.sign_in(config)
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_state_checked_before_error(self, orchestrator, browser, config):
        """state가 틀린 error 리디렉션은 StateMismatchError."""
        browser.respond = lambda query: {"error": "access_denied", "state": "forged-state"}

        with pytest.raises(StateMismatchError):
            await orchestrator.sign_in(config)

    @pytest.mark.asyncio
    async def test_exchange_failure(self, orchestrator, provider_stub, browser, config):
        """토큰 엔드포인트 실패는 ExchangeError."""
        provider_stub.token_status = 400
        provider_stub.token_body = {"error": "invalid_grant"}
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        with pytest.raises(ExchangeError) as exc_info:
            await orchestrator.sign_in(config)

        assert exc_info.value.status_code == 400
        assert orchestrator.session.status is SignInStatus.FAILED

    @pytest.mark.asyncio
    async def test_missing_client_secret(self, orchestrator, provider_stub, browser, config):
        """client secret 누락 - 리스너 / 브라우저 / 네트워크 없음."""
        with pytest.raises(ConfigurationError, match="Client secret"):
            await orchestrator.sign_in(replace(config, client_secret=None))

        assert browser.urls == []
        assert provider_stub.requests == []
        assert orchestrator.session is None

    @pytest.mark.asyncio
    async def test_bind_error(self, orchestrator, browser, config):
        """포트 사용 중이면 BindError, 브라우저 실행 안 함."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            port = sock.getsockname()[1]

            with pytest.raises(BindError):
                await orchestrator.sign_in(
                    replace(config, redirect_uri=f"http://localhost:{port}/callback")
                )

        assert browser.urls == []
        assert orchestrator.session.status is SignInStatus.FAILED

    @pytest.mark.asyncio
    async def test_browser_launch_failure(self, provider_stub, config):
        """브라우저 실행 실패 시 리스너 종료."""
        port = _free_port()

        def launch(url):
            raise RuntimeError("no display")

        orchestrator = SignInOrchestrator(
            token_client=TokenClient(transport=provider_stub.transport),
            launch_browser=launch,
        )
        with pytest.raises(BrowserLaunchError):
            await orchestrator.sign_in(
                replace(config, redirect_uri=f"http://localhost:{port}/callback")
            )

        assert orchestrator.session.status is SignInStatus.FAILED
        assert not _is_listening(port)

    @pytest.mark.asyncio
    async def test_timeout(self, orchestrator, provider_stub, browser, config):
        """리디렉션이 오지 않으면 TIMED_OUT, 포트 해제."""
        with pytest.raises(SignInTimeoutError):
            await orchestrator.sign_in(replace(config, timeout=0.3))

        assert orchestrator.session.status is SignInStatus.TIMED_OUT
        assert not _is_listening(orchestrator.session.port)
        assert provider_stub.requests == []
        assert not orchestrator.is_active


class TestCancellation:
    """취소 / 동시 실행 테스트."""

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self, orchestrator, provider_stub, config):
        """대기 중 cancel()."""
        asyncio.get_running_loop().call_later(0.2, orchestrator.cancel)

        with pytest.raises(UserCancelledError):
            await orchestrator.sign_in(config)

        assert orchestrator.session.status is SignInStatus.CANCELLED
        assert not _is_listening(orchestrator.session.port)
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_cancel_from_other_thread(self, orchestrator, config):
        """다른 스레드에서 cancel() 호출."""
        timer = threading.Timer(0.2, orchestrator.cancel)
        timer.start()
        try:
            with pytest.raises(UserCancelledError):
                await orchestrator.sign_in(config)
        finally:
            timer.cancel()

        assert orchestrator.session.status is SignInStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_task_cancellation(self, orchestrator, config):
        """asyncio task 취소도 CANCELLED로 종료."""
        task = asyncio.create_task(orchestrator.sign_in(config))
        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.session.status is SignInStatus.CANCELLED
        assert not _is_listening(orchestrator.session.port)
        assert not orchestrator.is_active

    @pytest.mark.asyncio
    async def test_second_sign_in_rejected(self, orchestrator, config):
        """진행 중인 로그인이 있으면 두 번째 호출 거부."""
        task = asyncio.create_task(orchestrator.sign_in(config))
        await asyncio.sleep(0.2)
        first_session = orchestrator.session

        with pytest.raises(SignInInProgressError):
            await orchestrator.sign_in(config)
        assert orchestrator.session is first_session

        orchestrator.cancel()
        with pytest.raises(UserCancelledError):
            await task

    @pytest.mark.asyncio
    async def test_cancel_right_after_redirect(self, provider_stub, browser, config):
        """리디렉션 수신 직후 cancel()되면 교환하지 않음."""
        browser.respond = lambda query: {"code": "ABC", "state": query["state"]}

        class CancelOnRedirect(RedirectListener):
            async def await_redirect(self, timeout):
                outcome = await super().await_redirect(timeout)
                orchestrator.cancel()
                return outcome

        orchestrator = SignInOrchestrator(
            token_client=TokenClient(transport=provider_stub.transport),
            launch_browser=browser,
            listener_factory=CancelOnRedirect,
        )

        with pytest.raises(UserCancelledError):
            await orchestrator.sign_in(config)

        assert provider_stub.requests == []
        assert orchestrator.session.status is SignInStatus.CANCELLED
        assert not _is_listening(orchestrator.session.port)


class TestOpenSystemBrowser:
    """기본 브라우저 collaborator 테스트."""

    def test_opens_url(self):
        """webbrowser.open 호출."""
        with patch("desktop_auth.flows.browser_oauth.webbrowser.open", return_value=True) as mock_open:
            open_system_browser("https://accounts.google.com/o/oauth2/auth?x=1")
        mock_open.assert_called_once_with("https://accounts.google.com/o/oauth2/auth?x=1")

    def test_open_failure(self):
        """브라우저를 열 수 없으면 BrowserLaunchError."""
        with patch("desktop_auth.flows.browser_oauth.webbrowser.open", return_value=False):
            with pytest.raises(BrowserLaunchError):
                open_system_browser("https://accounts.google.com/o/oauth2/auth")
