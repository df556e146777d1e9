"""Desktop Auth - OAuth 2.0 + PKCE sign-in for desktop apps.

로컬 리디렉션 리스너로 인증 코드를 받아 토큰으로 교환합니다.

Example:
    from desktop_auth import GoogleAuth, SignInConfig

    auth = GoogleAuth()
    token = await auth.sign_in(SignInConfig(
        client_id="your-client-id",
        client_secret="your-secret",
        scopes=("openid", "email"),
    ))
"""

from desktop_auth.config import FlowType, ProviderEndpoints, SignInConfig
from desktop_auth.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    BindError,
    BrowserLaunchError,
    ConfigurationError,
    ExchangeError,
    InvalidGrantError,
    OAuthError,
    RefreshError,
    RevokeError,
    SignInInProgressError,
    SignInTimeoutError,
    StateMismatchError,
    UnsupportedFlowError,
    UserCancelledError,
)
from desktop_auth.google_auth import GoogleAuth
from desktop_auth.models import TokenResult

__version__ = "0.1.0"

__all__ = [
    # Core
    "GoogleAuth",
    "SignInConfig",
    "ProviderEndpoints",
    "FlowType",
    "TokenResult",
    # Exceptions
    "AuthenticationError",
    "ConfigurationError",
    "BindError",
    "BrowserLaunchError",
    "SignInInProgressError",
    "SignInTimeoutError",
    "UserCancelledError",
    "AccessDeniedError",
    "StateMismatchError",
    "OAuthError",
    "ExchangeError",
    "RefreshError",
    "InvalidGrantError",
    "RevokeError",
    "UnsupportedFlowError",
]
