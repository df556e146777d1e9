"""Browser-based OAuth 2.0 + PKCE Sign-In

로컬 HTTP 리스너로 인증 리디렉션을 받는 데스크톱 로그인 플로우.

플로우:
1. PKCE + state 생성, 리스너 시작
2. 인증 URL 생성 후 브라우저 실행 collaborator에 전달
3. 리디렉션 대기 (timeout / 취소 가능)
4. state 검증 후 토큰 교환
"""

import asyncio
import inspect
import logging
import secrets
import threading
import time
import webbrowser
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from rich.console import Console
from rich.panel import Panel

from desktop_auth.config import SignInConfig
from desktop_auth.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    BrowserLaunchError,
    InvalidTransitionError,
    SignInInProgressError,
    SignInTimeoutError,
    StateMismatchError,
    UserCancelledError,
)
from desktop_auth.flows.authorization_url import build_authorization_url, normalize_scopes
from desktop_auth.flows.callback_server import RedirectListener, RedirectOutcome
from desktop_auth.flows.pkce import PkceMaterial, generate_pkce, generate_state
from desktop_auth.flows.token_client import TokenClient
from desktop_auth.models import TokenResult

logger = logging.getLogger(__name__)
console = Console()

BrowserLauncher = Callable[[str], Awaitable[None] | None]


class SignInStatus(str, Enum):
    """로그인 세션 상태."""

    PENDING = "pending"
    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING = "exchanging"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in _TRANSITIONS


_TRANSITIONS: dict[SignInStatus, frozenset[SignInStatus]] = {
    SignInStatus.PENDING: frozenset({
        SignInStatus.AWAITING_REDIRECT,
        SignInStatus.FAILED,
        SignInStatus.CANCELLED,
    }),
    SignInStatus.AWAITING_REDIRECT: frozenset({
        SignInStatus.EXCHANGING,
        SignInStatus.FAILED,
        SignInStatus.CANCELLED,
        SignInStatus.TIMED_OUT,
    }),
    SignInStatus.EXCHANGING: frozenset({
        SignInStatus.COMPLETED,
        SignInStatus.FAILED,
        SignInStatus.CANCELLED,
    }),
}


@dataclass
class SignInSession:
    """로그인 시도 하나의 상태. 종료 후 재사용하지 않음."""

    pkce: PkceMaterial
    state: str
    created_at: float = field(default_factory=time.time)
    port: int | None = None
    redirect_uri: str | None = None
    status: SignInStatus = SignInStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"SignInSession(status={self.status.value!r}, port={self.port!r}, "
            f"created_at={self.created_at!r})"
        )

    @classmethod
    def create(cls) -> "SignInSession":
        return cls(pkce=generate_pkce(), state=generate_state())

    def advance(self, status: SignInStatus) -> None:
        """상태 전이.

        Raises:
            InvalidTransitionError: 허용되지 않은 전이
        """
        allowed = _TRANSITIONS.get(self.status, frozenset())
        if status not in allowed:
            raise InvalidTransitionError(
                f"Invalid sign-in transition: {self.status.value} -> {status.value}"
            )
        logger.debug("Session %s -> %s", self.status.value, status.value)
        self.status = status


def open_system_browser(url: str) -> None:
    """기본 브라우저 실행 collaborator.

    Raises:
        BrowserLaunchError: 브라우저를 열 수 없을 때
    """
    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]브라우저가 자동으로 열립니다.[/bold cyan]\n\n"
            f"열리지 않으면 아래 URL을 직접 열어주세요:\n"
            f"[link={url}]{url}[/link]",
            title="[AUTH] Sign-In Required",
            border_style="cyan",
        )
    )
    console.print()
    if not webbrowser.open(url):
        raise BrowserLaunchError("Failed to open browser")


class SignInOrchestrator:
    """데스크톱 Authorization Code + PKCE 로그인 상태 머신.

    인스턴스 하나에서 동시에 하나의 로그인만 진행됩니다.
    두 번째 sign_in 호출은 SignInInProgressError.

    Example:
        orchestrator = SignInOrchestrator()
        config = SignInConfig(
            client_id="your-client-id",
            client_secret="your-secret",
            scopes=("openid", "email"),
        )
        token = await orchestrator.sign_in(config)
    """

    # 사용자 취소로 취급할 redirect error 코드
    CANCEL_ERROR_CODES = frozenset({
        "user_cancelled",
        "user_canceled",
        "cancelled",
        "canceled",
    })

    def __init__(
        self,
        token_client: TokenClient | None = None,
        launch_browser: BrowserLauncher = open_system_browser,
        listener_factory: Callable[..., RedirectListener] = RedirectListener,
    ):
        """초기화.

        Args:
            token_client: 토큰 엔드포인트 클라이언트 (timeout / transport만 사용,
                엔드포인트는 항상 config.endpoints)
            launch_browser: 인증 URL을 여는 collaborator (동기 또는 async)
            listener_factory: 리스너 생성 함수
        """
        self.token_client = token_client
        self.launch_browser = launch_browser
        self.listener_factory = listener_factory
        self.session: SignInSession | None = None

        self._active = threading.Lock()
        self._cancel_requested = threading.Event()
        self._listener: RedirectListener | None = None
        self._listener_lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        return self._active.locked()

    def cancel(self) -> None:
        """진행 중인 로그인 취소 (스레드 안전).

        바인딩 전/대기 중 어느 시점이든 리스너를 멈추고 교환을 하지 않습니다.
        """
        self._cancel_requested.set()
        with self._listener_lock:
            listener = self._listener
        if listener is not None:
            listener.cancel()

    async def sign_in(self, config: SignInConfig) -> TokenResult:
        """로그인 수행.

        Args:
            config: 로그인 설정

        Returns:
            TokenResult: 토큰 결과

        Raises:
            ConfigurationError: 설정 오류 (네트워크 호출 없음)
            SignInInProgressError: 이미 진행 중인 로그인 있음
            BindError, BrowserLaunchError, SignInTimeoutError,
            UserCancelledError, AccessDeniedError, StateMismatchError,
            ExchangeError
        """
        config.validate()

        if not self._active.acquire(blocking=False):
            raise SignInInProgressError("A sign-in attempt is already in progress")

        self._cancel_requested.clear()
        session = SignInSession.create()
        self.session = session
        try:
            return await self._run(session, config)
        except asyncio.CancelledError:
            self._terminate(session, SignInStatus.CANCELLED)
            raise
        except SignInTimeoutError:
            logger.error("Timeout waiting for redirect: %s...", session.state[:8])
            self._terminate(session, SignInStatus.TIMED_OUT)
            raise
        except UserCancelledError:
            self._terminate(session, SignInStatus.CANCELLED)
            raise
        except AuthenticationError as e:
            logger.error("Sign-in failed: %s", type(e).__name__)
            self._terminate(session, SignInStatus.FAILED)
            raise
        except Exception:
            self._terminate(session, SignInStatus.FAILED)
            raise
        finally:
            self._stop_listener()
            self._active.release()

    async def _run(self, session: SignInSession, config: SignInConfig) -> TokenResult:
        target = config.redirect_target()
        listener = self.listener_factory(
            host=target.host,
            path=target.path,
            success_html=config.success_html,
        )
        with self._listener_lock:
            if self._cancel_requested.is_set():
                raise UserCancelledError("Sign-in was cancelled")
            self._listener = listener

        listener.start(target.port)
        session.port = listener.port
        session.redirect_uri = listener.redirect_uri

        auth_url = build_authorization_url(
            config,
            redirect_uri=session.redirect_uri,
            state=session.state,
            code_challenge=session.pkce.code_challenge,
        )
        await self._launch(auth_url)
        session.advance(SignInStatus.AWAITING_REDIRECT)

        outcome = await listener.await_redirect(config.timeout)
        # 교환 전에 포트 해제
        self._stop_listener()

        # 리디렉션 수신 직후 도착한 취소
        if self._cancel_requested.is_set():
            raise UserCancelledError("Sign-in was cancelled")

        self._check_redirect(session, outcome)
        session.advance(SignInStatus.EXCHANGING)

        # 인증 URL과 같은 제공자의 토큰 엔드포인트로만 교환
        token_client = (self.token_client or TokenClient()).for_endpoints(config.endpoints)
        payload = await token_client.exchange_code(
            outcome.code,
            config,
            redirect_uri=session.redirect_uri,
            code_verifier=session.pkce.code_verifier,
        )
        result = TokenResult.from_payload(payload, normalize_scopes(config.scopes))
        session.advance(SignInStatus.COMPLETED)
        logger.info("Sign-in completed (scopes: %s)", " ".join(result.scopes))
        return result

    async def _launch(self, auth_url: str) -> None:
        try:
            result = self.launch_browser(auth_url)
            if inspect.isawaitable(result):
                await result
        except BrowserLaunchError:
            raise
        except Exception as e:
            raise BrowserLaunchError(f"Failed to open browser: {e}") from e

    def _check_redirect(self, session: SignInSession, outcome: RedirectOutcome) -> None:
        """state 검증 후 error 파라미터 처리.

        Raises:
            StateMismatchError: state 불일치 (code 유무와 무관)
            UserCancelledError: 취소 error 코드
            AccessDeniedError: 그 밖의 error 코드
        """
        has_error = outcome.error is not None
        # state 없는 error 리디렉션은 교환으로 이어질 수 없으므로 error로 처리
        if not (has_error and outcome.state is None and outcome.code is None):
            received = (outcome.state or "").encode()
            if not secrets.compare_digest(received, session.state.encode()):
                logger.error("State mismatch on redirect (possible CSRF)")
                raise StateMismatchError("State parameter does not match the sign-in session")

        if has_error:
            error = outcome.error or "unknown_error"
            description = outcome.error_description
            if error in self.CANCEL_ERROR_CODES:
                raise UserCancelledError(
                    f"User cancelled the sign-in flow: {error}", error_code=error
                )
            message = f"Authorization denied: {error}"
            if description:
                message += f" - {description}"
            raise AccessDeniedError(message, error_code=error, description=description)

        if not outcome.code:
            raise AccessDeniedError("Authorization code not found in redirect")

    def _stop_listener(self) -> None:
        with self._listener_lock:
            listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()

    def _terminate(self, session: SignInSession, status: SignInStatus) -> None:
        if not session.status.is_terminal:
            session.advance(status)
