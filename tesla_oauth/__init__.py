"""Tesla OAuth package: PKCE sign-in, partner tokens and session lifecycle"""

from .models import AuthConfig, AuthState, AuthStatus, PkceCodes, TokenResponse, UserIdentity
from .pkce import PKCEManager, code_challenge_for
from .authorization import build_authorize_url
from .token_exchange import exchange_code, refresh_access_token, request_partner_token
from .identity import resolve_identity
from .callback_server import OAuthCallbackServer
from .session import AuthSessionManager, parse_callback

__all__ = [
    "AuthConfig",
    "AuthState",
    "AuthStatus",
    "PkceCodes",
    "TokenResponse",
    "UserIdentity",
    "PKCEManager",
    "code_challenge_for",
    "build_authorize_url",
    "exchange_code",
    "refresh_access_token",
    "request_partner_token",
    "resolve_identity",
    "OAuthCallbackServer",
    "AuthSessionManager",
    "parse_callback",
]
