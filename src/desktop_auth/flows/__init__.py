"""OAuth Flows

데스크톱 Authorization Code + PKCE 플로우 구성 요소.
리디렉션 리스너, 인증 URL, 토큰 엔드포인트 클라이언트, 상태 머신.
"""

from desktop_auth.flows.authorization_url import build_authorization_url
from desktop_auth.flows.browser_oauth import (
    SignInOrchestrator,
    SignInSession,
    SignInStatus,
    open_system_browser,
)
from desktop_auth.flows.callback_server import RedirectListener, RedirectOutcome
from desktop_auth.flows.pkce import (
    PkceMaterial,
    derive_code_challenge,
    generate_pkce,
    generate_state,
)
from desktop_auth.flows.token_client import RawTokenPayload, TokenClient

__all__ = [
    # Orchestrator
    "SignInOrchestrator",
    "SignInSession",
    "SignInStatus",
    "open_system_browser",
    # Listener
    "RedirectListener",
    "RedirectOutcome",
    # PKCE / state
    "PkceMaterial",
    "generate_pkce",
    "generate_state",
    "derive_code_challenge",
    # URL / token endpoint
    "build_authorization_url",
    "TokenClient",
    "RawTokenPayload",
]
