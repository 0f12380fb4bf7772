"""OAuth authorization URL construction"""

from urllib.parse import urlencode

from settings import AUTHORIZE_URL
from .models import AuthConfig, PkceCodes


def build_authorize_url(config: AuthConfig, codes: PkceCodes, authorize_url: str = AUTHORIZE_URL) -> str:
    """Construct the OAuth authorize URL with PKCE

    Args:
        config: Client registration
        codes: Handshake whose challenge and state are sent
        authorize_url: Provider authorize endpoint

    Returns:
        Full authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": config.scope,
        "code_challenge": codes.code_challenge,
        "code_challenge_method": "S256",
        "state": codes.state,
    }
    return f"{authorize_url}?{urlencode(params)}"
