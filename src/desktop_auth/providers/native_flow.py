"""Native Mobile Flow

모바일 플랫폼 SDK 로그인 자리. 데스크톱에서는 실행되지 않습니다.
"""

from desktop_auth.config import FlowType, SignInConfig
from desktop_auth.exceptions import UnsupportedFlowError
from desktop_auth.models import TokenResult
from desktop_auth.providers.base import SignInFlow

_MESSAGE = "Native sign-in requires a mobile platform SDK; use FlowType.WEB on desktop"


class NativeMobileFlow(SignInFlow):
    """모바일 전용 플로우 (데스크톱에서는 모든 호출이 UnsupportedFlowError)."""

    @property
    def flow_type(self) -> FlowType:
        return FlowType.NATIVE

    async def sign_in(self, config: SignInConfig) -> TokenResult:
        raise UnsupportedFlowError(_MESSAGE)

    async def sign_out(self, access_token: str | None = None) -> None:
        raise UnsupportedFlowError(_MESSAGE)

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
        scopes=None,
    ) -> TokenResult:
        raise UnsupportedFlowError(_MESSAGE)
