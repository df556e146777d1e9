"""Google Auth

앱 레이어가 호출하는 진입점 (sign_in / sign_out / refresh_token).
flow_type에 따라 플로우 구현을 선택합니다.
"""

import logging

from desktop_auth.config import FlowType, ProviderEndpoints, SignInConfig
from desktop_auth.models import TokenResult
from desktop_auth.providers import create_flow
from desktop_auth.providers.base import SignInFlow

logger = logging.getLogger(__name__)


class GoogleAuth:
    """Google 로그인 facade.

    플로우 인스턴스는 종류별로 하나씩 만들어 재사용하므로,
    같은 GoogleAuth에서 동시에 두 번 로그인하면 두 번째는 거부됩니다.

    Example:
        auth = GoogleAuth()
        token = await auth.sign_in(SignInConfig.from_env())
        await auth.sign_out(token.access_token)
    """

    def __init__(self, endpoints: ProviderEndpoints | None = None, **flow_kwargs):
        """초기화.

        Args:
            endpoints: 제공자 엔드포인트 (기본값: Google)
            **flow_kwargs: WebAuthorizationCodeFlow 추가 인자
                (token_client, launch_browser)
        """
        self.endpoints = endpoints or ProviderEndpoints()
        self._flow_kwargs = flow_kwargs
        self._flows: dict[FlowType, SignInFlow] = {}

    def flow(self, flow_type: FlowType | str = FlowType.WEB) -> SignInFlow:
        """플로우 종류별 인스턴스 (최초 호출 시 생성)"""
        flow_type = FlowType(flow_type)
        if flow_type not in self._flows:
            kwargs = dict(self._flow_kwargs)
            if flow_type is FlowType.WEB:
                kwargs.setdefault("endpoints", self.endpoints)
            self._flows[flow_type] = create_flow(flow_type, **kwargs)
            logger.debug("Created %s flow", flow_type.value)
        return self._flows[flow_type]

    async def sign_in(self, config: SignInConfig) -> TokenResult:
        return await self.flow(config.flow_type).sign_in(config)

    def cancel(self, flow_type: FlowType | str = FlowType.WEB) -> None:
        """진행 중인 로그인 취소 (예: 사용자가 창을 닫음). 스레드 안전.

        해당 종류의 플로우가 아직 만들어지지 않았으면 아무 일도 하지 않음.
        """
        flow = self._flows.get(FlowType(flow_type))
        if flow is not None:
            flow.cancel()

    async def sign_out(
        self,
        access_token: str | None = None,
        flow_type: FlowType | str = FlowType.WEB,
    ) -> None:
        await self.flow(flow_type).sign_out(access_token)

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        scopes=None,
        flow_type: FlowType | str = FlowType.WEB,
    ) -> TokenResult:
        return await self.flow(flow_type).refresh_token(
            refresh_token, client_id, client_secret, scopes=scopes
        )
