"""Authorization URL 생성 (부수효과 없음)."""

from urllib.parse import urlencode

from desktop_auth.config import SignInConfig
from desktop_auth.flows.pkce import CODE_CHALLENGE_METHOD


def normalize_scopes(scopes) -> list[str]:
    """scope 중복 제거 (순서 유지) + openid 보장"""
    result: list[str] = []
    for scope in scopes:
        scope = scope.strip()
        if scope and scope not in result:
            result.append(scope)
    if "openid" not in result:
        result.insert(0, "openid")
    return result


def build_authorization_url(
    config: SignInConfig,
    redirect_uri: str,
    state: str,
    code_challenge: str,
) -> str:
    """인증 URL 생성.

    offline access + 강제 consent를 요청하여 매 로그인마다
    refresh token이 발급되도록 합니다.

    Args:
        config: 로그인 설정
        redirect_uri: 토큰 교환 시에도 동일하게 전송될 redirect URI
        state: 세션 state 값
        code_challenge: PKCE challenge (S256)

    Returns:
        str: 인증 URL
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(normalize_scopes(config.scopes)),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": CODE_CHALLENGE_METHOD,
        "access_type": "offline",
        "prompt": "consent",
    }

    if config.hosted_domain:
        params["hd"] = config.hosted_domain
    if config.login_hint:
        params["login_hint"] = config.login_hint

    return f"{config.endpoints.authorization_endpoint}?{urlencode(params)}"
