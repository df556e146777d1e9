"""Custom authentication exceptions.

인증 관련 예외 클래스 정의.
호출자가 "재시도 / 재로그인 / 무시" 를 구분할 수 있도록 계층 구조 제공.
코어는 어떤 예외도 자동으로 재시도하지 않습니다.
"""


class AuthenticationError(Exception):
    """기본 인증 예외.

    모든 인증 관련 예외의 베이스 클래스.

    Attributes:
        provider: 인증 제공자 이름 (예: 'google')
    """

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class ConfigurationError(AuthenticationError):
    """설정 오류.

    필수 필드 누락 (client secret, scopes 등) 또는 잘못된 redirect URI.
    네트워크 호출 전에 즉시 발생.
    """
    pass


class BindError(AuthenticationError):
    """로컬 리스너 포트 바인딩 실패.

    Attributes:
        port: 바인딩을 시도한 포트 (0이면 임시 포트)
    """

    def __init__(self, message: str, port: int = 0, provider: str | None = None):
        self.port = port
        super().__init__(message, provider)


class BrowserLaunchError(AuthenticationError):
    """브라우저 실행 실패."""
    pass


class SignInInProgressError(AuthenticationError):
    """같은 orchestrator에서 이미 로그인이 진행 중."""
    pass


class SignInTimeoutError(AuthenticationError):
    """리디렉션 대기 시간 초과.

    사용자 취소와 구분됨 - 호출자는 재시도를 안내할 수 있음.

    Attributes:
        timeout: 대기한 시간 (초)
    """

    def __init__(self, message: str, timeout: float = 0.0, provider: str | None = None):
        self.timeout = timeout
        super().__init__(message, provider)


class StateMismatchError(AuthenticationError):
    """리디렉션의 state 값이 세션 값과 다름.

    CSRF / 코드 주입 공격 가능성. 절대 재시도하지 않음.
    """
    pass


class UnsupportedFlowError(AuthenticationError):
    """현재 플랫폼에서 지원하지 않는 인증 플로우."""
    pass


class InvalidTransitionError(AuthenticationError):
    """세션 상태 머신의 잘못된 전이 (프로그래밍 오류)."""
    pass


class OAuthError(AuthenticationError):
    """OAuth 플로우 에러.

    OAuth 콜백 또는 토큰 엔드포인트 실패를 나타냄.

    Attributes:
        error_code: OAuth 에러 코드 (예: 'invalid_grant', 'access_denied')
        provider: 인증 제공자 이름
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider: str | None = None
    ):
        self.error_code = error_code
        super().__init__(message, provider)


class UserCancelledError(OAuthError):
    """사용자가 로그인을 취소함 (창 닫기, 취소 신호 등)."""
    pass


class AccessDeniedError(OAuthError):
    """제공자가 error 파라미터로 인가를 거부함.

    Attributes:
        description: 제공자의 error_description (있을 경우)
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        description: str | None = None,
        provider: str | None = None
    ):
        self.description = description
        super().__init__(message, error_code, provider)


class ExchangeError(OAuthError):
    """토큰 엔드포인트 호출 실패.

    Attributes:
        status_code: HTTP 상태 코드 (네트워크 오류면 None)
        body: 제공자의 응답 본문 (진단용, 가공하지 않음)
        error_code: 응답 JSON의 'error' 값
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        error_code: str | None = None,
        provider: str | None = None
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, error_code, provider)


class RefreshError(ExchangeError):
    """Refresh token 교환 실패."""

    @property
    def requires_sign_in(self) -> bool:
        """refresh token 자체가 무효화되어 전체 로그인이 필요한지 여부"""
        return self.error_code == "invalid_grant"


class InvalidGrantError(RefreshError):
    """Refresh token이 만료/폐기됨. 재로그인 필요."""
    pass


class RevokeError(OAuthError):
    """토큰 폐기 실패.

    sign-out 전체를 실패시키지 않음 (로그만 남김).

    Attributes:
        status_code: HTTP 상태 코드 (네트워크 오류면 None)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        provider: str | None = None
    ):
        self.status_code = status_code
        super().__init__(message, error_code, provider)
