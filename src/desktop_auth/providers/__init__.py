"""Sign-in Flows

플랫폼별 인증 플로우 구현.
데스크톱은 WebAuthorizationCodeFlow만 지원.
"""

from desktop_auth.config import FlowType
from desktop_auth.providers.base import SignInFlow
from desktop_auth.providers.native_flow import NativeMobileFlow
from desktop_auth.providers.web_flow import WebAuthorizationCodeFlow


def create_flow(flow_type: FlowType | str = FlowType.WEB, **kwargs) -> SignInFlow:
    """설정된 플로우 종류에 맞는 구현 생성.

    Args:
        flow_type: FlowType 또는 "web" / "native"
        **kwargs: WebAuthorizationCodeFlow 생성 인자

    Raises:
        ValueError: 알 수 없는 flow_type
    """
    flow_type = FlowType(flow_type)
    if flow_type is FlowType.NATIVE:
        return NativeMobileFlow()
    return WebAuthorizationCodeFlow(**kwargs)


__all__ = [
    "FlowType",
    "SignInFlow",
    "NativeMobileFlow",
    "WebAuthorizationCodeFlow",
    "create_flow",
]
