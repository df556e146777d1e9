"""Token models.

토큰 엔드포인트 응답과 호출자에게 돌려주는 결과.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class RawTokenPayload:
    """토큰 엔드포인트 응답.

    Attributes:
        received_at: 응답을 받은 시각 (epoch 초)
    """

    access_token: str
    expires_in: int | None = None
    id_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str = "Bearer"
    received_at: float = 0.0

    def __repr__(self) -> str:
        # 토큰 값이 로그/트레이스백에 찍히지 않도록
        return (
            f"RawTokenPayload(token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, scope={self.scope!r})"
        )

    @classmethod
    def from_json(cls, data: dict[str, Any], received_at: float) -> "RawTokenPayload":
        """응답 JSON 파싱.

        Raises:
            TypeError: JSON 객체가 아님
            ValueError: access_token이 없거나 빈 값
        """
        if not isinstance(data, dict):
            raise TypeError(f"Token response must be a JSON object, got {type(data).__name__}")
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response has no access_token")

        expires_in = data.get("expires_in")
        return cls(
            access_token=access_token,
            expires_in=int(expires_in) if expires_in is not None else None,
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
            token_type=data.get("token_type", "Bearer"),
            received_at=received_at,
        )


@dataclass
class TokenResult:
    """토큰 결과 데이터 클래스

    expires_at 단위는 Unix epoch 초 (UTC). 제공자가 expires_in을
    주지 않으면 None.
    """

    access_token: str
    id_token: str | None = None
    refresh_token: str | None = None
    scopes: list[str] = field(default_factory=list)
    expires_at: int | None = None

    def __repr__(self) -> str:
        return (
            f"TokenResult(scopes={self.scopes!r}, expires_at={self.expires_at!r}, "
            f"has_id_token={self.id_token is not None}, "
            f"has_refresh_token={self.refresh_token is not None})"
        )

    @classmethod
    def from_payload(
        cls, payload: RawTokenPayload, requested_scopes=()
    ) -> "TokenResult":
        """토큰 응답 -> TokenResult

        응답에 scope가 없으면 요청한 scope가 그대로 부여된 것으로 간주.
        """
        if payload.scope:
            scopes = payload.scope.split()
        else:
            scopes = list(requested_scopes)

        expires_at = None
        if payload.expires_in is not None:
            expires_at = int(payload.received_at) + payload.expires_in

        return cls(
            access_token=payload.access_token,
            id_token=payload.id_token,
            refresh_token=payload.refresh_token,
            scopes=scopes,
            expires_at=expires_at,
        )

    def with_fallback_refresh_token(self, previous: str | None) -> "TokenResult":
        """새 refresh token이 없으면 이전 것을 유지"""
        if self.refresh_token or not previous:
            return self
        return replace(self, refresh_token=previous)

    @property
    def expires_at_datetime(self) -> datetime | None:
        if self.expires_at is None:
            return None
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    def is_expired(self, leeway: int = 0) -> bool:
        """토큰 만료 여부 확인 (leeway 초만큼 일찍 만료로 간주)"""
        if self.expires_at is None:
            return False
        return time.time() + leeway >= self.expires_at

    def to_dict(self) -> dict:
        """딕셔너리로 변환 (앱 레이어 전달용, camelCase)"""
        return {
            "idToken": self.id_token,
            "accessToken": self.access_token,
            "scopes": list(self.scopes),
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenResult":
        """딕셔너리에서 생성"""
        return cls(
            access_token=data["accessToken"],
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
            scopes=list(data.get("scopes") or []),
            expires_at=data.get("expiresAt"),
        )
