"""Redirect Listener

브라우저 리디렉션 한 번을 받기 위한 임시 로컬 HTTP 서버.
로그인 시도 하나가 끝나면 반드시 종료됩니다.
"""

import asyncio
import html
import logging
import threading
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qsl, urlparse

from desktop_auth.config import (
    DEFAULT_CALLBACK_PATH,
    DEFAULT_REDIRECT_HOST,
    LOCALHOST_ADDR,
)
from desktop_auth.exceptions import BindError, SignInTimeoutError, UserCancelledError

logger = logging.getLogger(__name__)

SUCCESS_HTML_RESPONSE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Sign-in complete</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI',
                         Roboto, sans-serif;
            display: flex;
            justify-content: center;
            align-items: center;
            height: 100vh;
            margin: 0;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
            color: white;
        }
        .container {
            text-align: center;
            padding: 40px;
            background: rgba(255,255,255,0.1);
            border-radius: 16px;
        }
        h1 { font-size: 40px; margin-bottom: 16px; }
        p { font-size: 18px; opacity: 0.9; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Sign-in complete</h1>
        <p>You may close this window and return to the app.</p>
    </div>
</body>
</html>
"""

ERROR_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Sign-in failed</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding-top: 20vh;">
    <h1>Sign-in failed</h1>
    <p>{message}</p>
    <p>You may close this window and return to the app.</p>
</body>
</html>
"""


@dataclass(frozen=True)
class RedirectOutcome:
    """리디렉션 쿼리 파라미터 (같은 키가 여러 번 오면 마지막 값)."""

    params: dict[str, str] = field(default_factory=dict)

    @property
    def code(self) -> str | None:
        return self.params.get("code")

    @property
    def state(self) -> str | None:
        return self.params.get("state")

    @property
    def error(self) -> str | None:
        return self.params.get("error")

    @property
    def error_description(self) -> str | None:
        return self.params.get("error_description")


class _RedirectHandler(BaseHTTPRequestHandler):
    """OAuth callback 핸들러."""

    # 브라우저의 preconnect 소켓이 teardown을 막지 않도록 소켓 타임아웃 지정
    timeout = 10
    server: "_CallbackServer"

    def log_message(self, format, *args):
        """기본 stderr 로그 비활성화."""
        pass

    def do_GET(self):
        """GET 요청 처리 (OAuth callback)."""
        listener = self.server.listener
        parsed = urlparse(self.path)

        logger.debug("Received request: %s", parsed.path)

        # 이미 결과를 받은 뒤의 요청 (favicon, 재시도 등)
        if listener.is_settled:
            self._send_empty(204)
            return

        if parsed.path != listener.path:
            if parsed.path not in ("/favicon.ico", "/robots.txt"):
                logger.warning("Ignoring request to unexpected path: %s", parsed.path)
            self._send_empty(404)
            return

        params = dict(parse_qsl(parsed.query, keep_blank_values=True))
        logger.debug("Callback params: %s", sorted(params))

        if "code" not in params and "error" not in params:
            logger.warning("Callback without code or error parameter")
            self._send_empty(400)
            return

        if not listener._claim():
            self._send_empty(204)
            return

        outcome = RedirectOutcome(params)
        try:
            if outcome.error:
                message = outcome.error_description or outcome.error
                body = ERROR_HTML_TEMPLATE.format(message=html.escape(message))
            else:
                body = listener.success_html
            self._send_html(body)
        except OSError as e:
            logger.debug("Browser connection dropped before response: %s", e)
        finally:
            listener._deliver(outcome)

    def _send_html(self, body: str):
        payload = body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(payload)

    def _send_empty(self, status: int):
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.send_header("Connection", "close")
        self.end_headers()


class _CallbackServer(ThreadingHTTPServer):
    daemon_threads = True
    # 다른 소켓과 포트 공유 금지
    allow_reuse_port = False

    def __init__(self, address: tuple[str, int], listener: "RedirectListener"):
        self.listener = listener
        super().__init__(address, _RedirectHandler)


class RedirectListener:
    """로컬 리디렉션 리스너.

    포트 하나에 바인딩하고, code 또는 error를 가진 첫 요청 하나만
    결과로 취급합니다. 결과는 one-shot Future로 orchestrator에 전달.

    Example:
        listener = RedirectListener(path="/callback")
        listener.start()
        try:
            outcome = await listener.await_redirect(timeout=300)
        finally:
            listener.stop()
    """

    POLL_INTERVAL = 0.1

    def __init__(
        self,
        host: str = DEFAULT_REDIRECT_HOST,
        path: str = DEFAULT_CALLBACK_PATH,
        success_html: str | None = None,
        bind_address: str = LOCALHOST_ADDR,
    ):
        """초기화.

        Args:
            host: redirect URI에 들어갈 host (localhost 또는 127.0.0.1)
            path: 콜백 경로
            success_html: 성공 시 브라우저에 보여줄 HTML (None이면 기본 페이지)
            bind_address: 실제로 바인딩할 주소
        """
        self.host = host
        self.path = path
        self.success_html = success_html or SUCCESS_HTML_RESPONSE
        self.bind_address = bind_address

        self._outcome: Future = Future()
        self._claimed = False
        self._lock = threading.Lock()
        self._server: _CallbackServer | None = None
        self._thread: threading.Thread | None = None
        self._port: int | None = None

    @property
    def port(self) -> int:
        if self._port is None:
            raise RuntimeError("Listener has not been started")
        return self._port

    @property
    def redirect_uri(self) -> str:
        """authorization URL과 토큰 교환에 쓰일 redirect URI"""
        return f"http://{self.host}:{self.port}{self.path}"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def is_settled(self) -> bool:
        """결과(리디렉션 또는 취소)가 이미 정해졌는지"""
        return self._claimed or self._outcome.done()

    def start(self, preferred_port: int | None = None) -> "RedirectListener":
        """포트 바인딩 후 별도 스레드에서 요청 대기 시작.

        Args:
            preferred_port: 고정 포트 (None이면 OS가 임시 포트 할당)

        Raises:
            BindError: 포트 바인딩 실패
        """
        if self._port is not None:
            raise RuntimeError("Listener cannot be started twice")

        port = preferred_port or 0
        try:
            server = _CallbackServer((self.bind_address, port), self)
        except OSError as e:
            if port:
                raise BindError(f"Failed to bind to port {port}: {e}", port=port) from e
            raise BindError(f"Failed to bind to any available port: {e}") from e

        self._server = server
        self._port = server.server_address[1]
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": self.POLL_INTERVAL},
            name=f"redirect-listener-{self._port}",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Listening on %s:%d", self.bind_address, self._port)
        return self

    async def await_redirect(self, timeout: float) -> RedirectOutcome:
        """리디렉션 수신 대기.

        Args:
            timeout: 최대 대기 시간 (초)

        Returns:
            RedirectOutcome: 첫 번째 유효 요청의 쿼리 파라미터

        Raises:
            SignInTimeoutError: 시간 초과
            UserCancelledError: cancel() 호출됨
        """
        logger.debug("Waiting for redirect (timeout: %ss)", timeout)
        try:
            outcome = await asyncio.wait_for(asyncio.wrap_future(self._outcome), timeout)
        except asyncio.TimeoutError:
            raise SignInTimeoutError(
                f"No redirect received within {timeout} seconds", timeout=timeout
            ) from None

        if outcome is None:
            raise UserCancelledError("Sign-in was cancelled")
        return outcome

    def cancel(self) -> None:
        """대기 중인 await_redirect를 취소 (스레드 안전)."""
        if self._deliver(None):
            logger.debug("Redirect wait cancelled")

    def stop(self) -> None:
        """서버 종료 및 포트 해제. 여러 번 호출해도 안전."""
        with self._lock:
            server, thread = self._server, self._thread
            self._server = self._thread = None
        if server is None:
            return

        # 늦게 도착한 요청은 아무 효과 없음
        if not self._outcome.done():
            self._outcome.cancel()

        server.shutdown()
        if thread is not None:
            thread.join(timeout=2)
        server.server_close()
        logger.debug("Listener on port %s closed", self._port)

    def _claim(self) -> bool:
        with self._lock:
            if self._claimed or self._outcome.done():
                return False
            self._claimed = True
            return True

    def _deliver(self, outcome: RedirectOutcome | None) -> bool:
        """one-shot 전달. 이미 결과가 있거나 취소됐으면 False."""
        try:
            self._outcome.set_result(outcome)
        except InvalidStateError:
            return False
        return True

    def __enter__(self) -> "RedirectListener":
        if self._port is None:
            self.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
