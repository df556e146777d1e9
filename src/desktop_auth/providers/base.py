"""Sign-in flow 추상 클래스

플랫폼별 인증 플로우가 구현해야 하는 인터페이스 정의.
"""

from abc import ABC, abstractmethod

from desktop_auth.config import FlowType, SignInConfig
from desktop_auth.models import TokenResult


class SignInFlow(ABC):
    """인증 플로우 추상 베이스 클래스

    NativeMobileFlow / WebAuthorizationCodeFlow 중 하나가 설정에 따라 선택됨.
    """

    @property
    @abstractmethod
    def flow_type(self) -> FlowType:
        """플로우 종류"""
        pass

    @abstractmethod
    async def sign_in(self, config: SignInConfig) -> TokenResult:
        """로그인 수행

        Returns:
            TokenResult: 인증 토큰
        """
        pass

    def cancel(self) -> None:
        """진행 중인 로그인 취소 (기본: 취소할 대상 없음)"""

    @abstractmethod
    async def sign_out(self, access_token: str | None = None) -> None:
        """로그아웃 (best-effort 토큰 폐기, 로컬에서는 항상 성공)

        Args:
            access_token: 폐기할 토큰 (None이면 폐기 생략)
        """
        pass

    @abstractmethod
    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        scopes=None,
    ) -> TokenResult:
        """토큰 갱신

        Args:
            refresh_token: 기존 refresh token
            client_id: OAuth client ID
            client_secret: OAuth client secret
            scopes: 응답에 scope가 없을 때 사용할 scope

        Returns:
            TokenResult: 갱신된 토큰 (새 refresh token이 없으면 기존 값 유지)
        """
        pass
