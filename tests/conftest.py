"""Shared test fixtures."""

import threading
from urllib.parse import parse_qsl, urlparse

import httpx
import pytest

from desktop_auth.config import SignInConfig

SCENARIO_TOKEN_RESPONSE = {
    "access_token": "AT1",
    "id_token": "IDT1",
    "refresh_token": "RT1",
    "expires_in": 3600,
    "scope": "openid email",
    "token_type": "Bearer",
}


class ProviderStub:
    """토큰 / 폐기 엔드포인트 stub (httpx.MockTransport)."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_status = 200
        self.token_body: dict = dict(SCENARIO_TOKEN_RESPONSE)
        self.revoke_status = 200
        self.revoke_body: dict = {}
        self.raise_error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        if request.url.path.endswith("/revoke"):
            return httpx.Response(self.revoke_status, json=self.revoke_body)
        return httpx.Response(self.token_status, json=self.token_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def forms(self) -> list[dict[str, str]]:
        """요청 본문 (form) 파싱 결과"""
        return [dict(parse_qsl(r.content.decode())) for r in self.requests]


class FakeBrowser:
    """브라우저 실행 collaborator 대역.

    respond가 설정되어 있으면 별도 스레드에서 redirect_uri로 GET 요청.
    """

    def __init__(self):
        self.urls: list[str] = []
        self.respond = None  # (auth URL 쿼리 dict) -> redirect 쿼리 dict
        self.responses: list[httpx.Response] = []
        self.errors: list[Exception] = []
        self._threads: list[threading.Thread] = []

    def __call__(self, url: str) -> None:
        self.urls.append(url)
        if self.respond is None:
            return
        query = dict(parse_qsl(urlparse(url).query))
        params = self.respond(query)
        thread = threading.Thread(
            target=self._visit, args=(query["redirect_uri"], params), daemon=True
        )
        self._threads.append(thread)
        thread.start()

    def _visit(self, redirect_uri: str, params: dict) -> None:
        try:
            with httpx.Client(trust_env=False, timeout=5) as client:
                self.responses.append(client.get(redirect_uri, params=params))
        except httpx.HTTPError as e:
            self.errors.append(e)

    @property
    def last_query(self) -> dict[str, str]:
        return dict(parse_qsl(urlparse(self.urls[-1]).query))

    def join(self) -> None:
        for thread in self._threads:
            thread.join(timeout=5)


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def config() -> SignInConfig:
    """테스트용 로그인 설정."""
    return SignInConfig(
        client_id="test-client",
        client_secret="test-secret",
        scopes=("openid", "email"),
        timeout=5,
    )


@pytest.fixture(autouse=True)
def clear_google_env(monkeypatch):
    """로컬 환경변수가 설정 테스트에 섞이지 않도록."""
    for name in (
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
        "GOOGLE_OAUTH_SCOPES",
        "GOOGLE_OAUTH_REDIRECT_URI",
        "GOOGLE_OAUTH_TIMEOUT",
        "GOOGLE_HOSTED_DOMAIN",
        "GOOGLE_LOGIN_HINT",
    ):
        monkeypatch.delenv(name, raising=False)
