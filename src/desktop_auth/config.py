"""Sign-in configuration.

호출자가 전달하는 로그인 설정과 제공자 엔드포인트.
환경변수 fallback 지원 (GOOGLE_CLIENT_ID 등).
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from urllib.parse import urlparse

from desktop_auth.exceptions import ConfigurationError

# Google OAuth 엔드포인트
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOCATION_URL = "https://oauth2.googleapis.com/revoke"

LOCALHOST_ADDR = "127.0.0.1"
DEFAULT_REDIRECT_HOST = "localhost"
DEFAULT_CALLBACK_PATH = "/callback"
DEFAULT_TIMEOUT = 300.0  # 5분

_LOOPBACK_HOSTS = (DEFAULT_REDIRECT_HOST, LOCALHOST_ADDR)


class FlowType(str, Enum):
    """인증 플로우 종류.

    NATIVE: 모바일 플랫폼 SDK (데스크톱에서는 지원 안 함)
    WEB: 로컬 리디렉션 리스너 + Authorization Code + PKCE
    """

    NATIVE = "native"
    WEB = "web"


@dataclass(frozen=True)
class ProviderEndpoints:
    """OAuth 제공자 엔드포인트."""

    authorization_endpoint: str = GOOGLE_AUTH_URL
    token_endpoint: str = GOOGLE_TOKEN_URL
    revocation_endpoint: str = GOOGLE_REVOCATION_URL


@dataclass(frozen=True)
class RedirectTarget:
    """파싱된 redirect URI (host, 포트, 경로)."""

    host: str = DEFAULT_REDIRECT_HOST
    port: int | None = None
    path: str = DEFAULT_CALLBACK_PATH


@dataclass(frozen=True)
class SignInConfig:
    """로그인 설정 (한 번의 시도 동안 불변).

    Example:
        config = SignInConfig(
            client_id="123.apps.googleusercontent.com",
            client_secret="GOCSPX-...",
            scopes=("openid", "email"),
        )
    """

    client_id: str
    client_secret: str | None = None
    scopes: tuple[str, ...] = ()
    hosted_domain: str | None = None
    login_hint: str | None = None
    redirect_uri: str | None = None  # 예: "http://localhost:8765/callback"
    success_html: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    flow_type: FlowType = FlowType.WEB
    endpoints: ProviderEndpoints = field(default_factory=ProviderEndpoints)

    def __post_init__(self):
        # list로 넘겨도 순서 유지한 채 tuple로 고정
        if not isinstance(self.scopes, tuple):
            object.__setattr__(self, "scopes", tuple(self.scopes or ()))

    def validate(self) -> None:
        """필수 필드 검증.

        Raises:
            ConfigurationError: 누락되거나 잘못된 필드가 있을 때
        """
        if not self.client_id:
            raise ConfigurationError("Client ID is required")
        if not self.client_secret:
            raise ConfigurationError(
                "Client secret is required for desktop authentication"
            )
        if not self.scopes or not any(s.strip() for s in self.scopes):
            raise ConfigurationError(
                "No scopes provided. At least one scope is required for authentication"
            )
        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive: {self.timeout}")
        self.redirect_target()

    def redirect_target(self) -> RedirectTarget:
        """redirect_uri 파싱.

        redirect_uri가 없으면 localhost + 임시 포트 + 기본 콜백 경로.

        Raises:
            ConfigurationError: loopback이 아닌 host, 잘못된 URI
        """
        if not self.redirect_uri:
            return RedirectTarget()

        parsed = urlparse(self.redirect_uri)
        if parsed.scheme != "http":
            raise ConfigurationError(
                f"Redirect URI must use the http scheme: {self.redirect_uri}"
            )
        host = parsed.hostname
        if not host:
            raise ConfigurationError("Redirect URI must have a host")
        if host not in _LOOPBACK_HOSTS:
            raise ConfigurationError(
                "Redirect URI must use localhost or 127.0.0.1 for desktop authentication"
            )
        try:
            port = parsed.port
        except ValueError as e:
            raise ConfigurationError(f"Invalid redirect URI: {e}") from e

        return RedirectTarget(
            host=host,
            port=port or None,
            path=parsed.path or DEFAULT_CALLBACK_PATH,
        )

    @classmethod
    def from_env(cls, **overrides) -> "SignInConfig":
        """환경변수에서 설정 생성.

        명시적으로 전달한 값이 환경변수보다 우선합니다.

        환경변수:
            GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET,
            GOOGLE_OAUTH_SCOPES (공백 또는 쉼표 구분),
            GOOGLE_OAUTH_REDIRECT_URI, GOOGLE_OAUTH_TIMEOUT,
            GOOGLE_HOSTED_DOMAIN, GOOGLE_LOGIN_HINT
        """
        raw_scopes = os.getenv("GOOGLE_OAUTH_SCOPES", "")
        raw_timeout = os.getenv("GOOGLE_OAUTH_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
        except ValueError as e:
            raise ConfigurationError(
                f"GOOGLE_OAUTH_TIMEOUT is not a number: {raw_timeout}"
            ) from e

        config = cls(
            client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
            client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            scopes=tuple(raw_scopes.replace(",", " ").split()),
            hosted_domain=os.getenv("GOOGLE_HOSTED_DOMAIN"),
            login_hint=os.getenv("GOOGLE_LOGIN_HINT"),
            redirect_uri=os.getenv("GOOGLE_OAUTH_REDIRECT_URI"),
            timeout=timeout,
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(config, **overrides) if overrides else config
