"""Token endpoint client.

authorization code 교환, refresh token 교환, 토큰 폐기.
호출 사이에 공유 상태가 없어서 동시에 호출해도 안전합니다.
"""

import logging
import time

import httpx

from desktop_auth.config import ProviderEndpoints, SignInConfig
from desktop_auth.exceptions import (
    ExchangeError,
    InvalidGrantError,
    RefreshError,
    RevokeError,
)
from desktop_auth.models import RawTokenPayload

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


def _error_code(response: httpx.Response) -> str | None:
    """에러 응답 JSON의 'error' 값 (없으면 None)"""
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str):
            return error
    return None


class TokenClient:
    """OAuth 토큰/폐기 엔드포인트 클라이언트.

    자동 재시도 없음. redirect를 따라가지 않음 (SSRF 방지).

    Example:
        client = TokenClient()
        payload = await client.refresh("1//0g...", client_id, client_secret)
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        endpoints: ProviderEndpoints | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """초기화.

        Args:
            endpoints: 제공자 엔드포인트 (기본값: Google)
            timeout: HTTP 요청 타임아웃 (초)
            transport: httpx transport (테스트용 MockTransport 등)
        """
        self.endpoints = endpoints or ProviderEndpoints()
        self.timeout = timeout
        self.transport = transport

    def for_endpoints(self, endpoints: ProviderEndpoints) -> "TokenClient":
        """같은 timeout / transport로 다른 엔드포인트를 쓰는 클라이언트.

        엔드포인트가 같으면 자기 자신을 반환.
        """
        if endpoints == self.endpoints:
            return self
        return TokenClient(endpoints, timeout=self.timeout, transport=self.transport)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=False,
            transport=self.transport,
        )

    async def _post_token(
        self, data: dict[str, str], error_cls: type[ExchangeError], action: str
    ) -> RawTokenPayload:
        try:
            async with self._client() as client:
                response = await client.post(
                    self.endpoints.token_endpoint, data=data, headers=FORM_HEADERS
                )
        except httpx.HTTPError as e:
            raise error_cls(f"{action} failed: {e}") from e

        received_at = time.time()

        if not response.is_success:
            error_code = _error_code(response)
            logger.error(
                "%s failed: status=%d error=%s", action, response.status_code, error_code
            )
            if error_cls is RefreshError and error_code == "invalid_grant":
                error_cls = InvalidGrantError
            raise error_cls(
                f"{action} failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
                error_code=error_code,
            )

        try:
            result = response.json()
            return RawTokenPayload.from_json(result, received_at)
        except (ValueError, KeyError, TypeError) as e:
            raise error_cls(
                f"{action} returned an invalid token response",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def exchange_code(
        self,
        code: str,
        config: SignInConfig,
        redirect_uri: str,
        code_verifier: str,
    ) -> RawTokenPayload:
        """인증 코드를 토큰으로 교환.

        Args:
            code: 인증 코드
            config: 로그인 설정 (client_id, client_secret)
            redirect_uri: 인증 요청에 사용한 것과 동일한 redirect URI
            code_verifier: 인증 URL에 보낸 challenge의 원본 verifier

        Returns:
            RawTokenPayload: 토큰 응답

        Raises:
            ExchangeError: 네트워크 오류 또는 non-2xx 응답
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": config.client_id,
            "client_secret": config.client_secret or "",
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }
        logger.debug("Exchanging authorization code at %s", self.endpoints.token_endpoint)
        return await self._post_token(data, ExchangeError, "Token exchange")

    async def refresh(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> RawTokenPayload:
        """Refresh token으로 새 access token 발급.

        응답에 refresh_token이 없을 수 있음 (rotation 미보장).

        Raises:
            InvalidGrantError: refresh token이 만료/폐기됨 (재로그인 필요)
            RefreshError: 그 밖의 실패
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        logger.debug("Refreshing token at %s", self.endpoints.token_endpoint)
        return await self._post_token(data, RefreshError, "Token refresh")

    async def revoke(self, token: str) -> None:
        """토큰 폐기.

        이미 무효한 토큰 (HTTP 400)은 성공으로 취급 - 여러 번 호출해도 안전.

        Raises:
            RevokeError: 그 밖의 non-2xx 응답 또는 네트워크 오류
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    self.endpoints.revocation_endpoint,
                    data={"token": token},
                    headers=FORM_HEADERS,
                )
        except httpx.HTTPError as e:
            raise RevokeError(f"Failed to revoke token: {e}") from e

        if response.is_success:
            logger.debug("Token revoked")
            return
        if response.status_code == 400:
            logger.debug("Token already invalid (error=%s)", _error_code(response))
            return

        raise RevokeError(
            f"Token revocation failed with status {response.status_code}: {response.text}",
            status_code=response.status_code,
            error_code=_error_code(response),
        )
