"""Web Authorization Code Flow

데스크톱용 로그인: 로컬 리디렉션 리스너 + Authorization Code + PKCE.
refresh / sign-out은 리스너를 사용하지 않는 단발성 호출.
"""

import logging

from desktop_auth.config import FlowType, ProviderEndpoints, SignInConfig
from desktop_auth.exceptions import ConfigurationError, RevokeError
from desktop_auth.flows.browser_oauth import (
    BrowserLauncher,
    SignInOrchestrator,
    open_system_browser,
)
from desktop_auth.flows.token_client import TokenClient
from desktop_auth.models import TokenResult
from desktop_auth.providers.base import SignInFlow

logger = logging.getLogger(__name__)


class WebAuthorizationCodeFlow(SignInFlow):
    """브라우저 + 로컬 리스너 기반 로그인 플로우.

    Example:
        flow = WebAuthorizationCodeFlow()
        token = await flow.sign_in(config)
        token = await flow.refresh_token(token.refresh_token, client_id, secret)
        await flow.sign_out(token.access_token)
    """

    def __init__(
        self,
        endpoints: ProviderEndpoints | None = None,
        token_client: TokenClient | None = None,
        launch_browser: BrowserLauncher = open_system_browser,
    ):
        self.endpoints = endpoints or ProviderEndpoints()
        self.token_client = token_client or TokenClient(self.endpoints)
        self.orchestrator = SignInOrchestrator(
            token_client=self.token_client,
            launch_browser=launch_browser,
        )

    @property
    def flow_type(self) -> FlowType:
        return FlowType.WEB

    async def sign_in(self, config: SignInConfig) -> TokenResult:
        """브라우저 로그인 (한 번에 하나의 시도만)"""
        return await self.orchestrator.sign_in(config)

    def cancel(self) -> None:
        """진행 중인 로그인 취소"""
        self.orchestrator.cancel()

    async def sign_out(self, access_token: str | None = None) -> None:
        """토큰 폐기 (실패해도 로컬 로그아웃은 성공)"""
        if not access_token:
            logger.debug("No token to revoke, local sign-out only")
            return

        try:
            await self.token_client.revoke(access_token)
        except RevokeError as e:
            logger.warning(
                "Token revocation failed (status=%s), signing out locally", e.status_code
            )

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        scopes=None,
    ) -> TokenResult:
        """Refresh token으로 갱신.

        Raises:
            ConfigurationError: refresh token / client secret 누락
            InvalidGrantError: refresh token 무효 (재로그인 필요)
            RefreshError: 그 밖의 실패
        """
        if not refresh_token:
            raise ConfigurationError("No refresh token available")
        if not client_secret:
            raise ConfigurationError(
                "Client secret is required for desktop authentication"
            )

        payload = await self.token_client.refresh(refresh_token, client_id, client_secret)
        result = TokenResult.from_payload(payload, scopes or ())
        return result.with_fallback_refresh_token(refresh_token)
