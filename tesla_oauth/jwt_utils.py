"""
JWT payload parsing (no signature verification)
"""
import base64
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode the payload segment of a JWT without verifying it.

    Args:
        token: JWT string (header.payload.signature)

    Returns:
        Decoded payload as a dictionary, or None if the token is not a JWT
    """
    if not token or token.count(".") != 2:
        return None

    _, payload, _ = token.split(".")
    # JWT segments are base64url without padding
    padded = payload + "=" * (-len(payload) % 4)

    try:
        claims = json.loads(base64.urlsafe_b64decode(padded.encode()).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Error decoding JWT payload: {e}")
        return None

    return claims if isinstance(claims, dict) else None


def extract_email(access_token: str) -> Optional[str]:
    """
    Extract the email claim from an access token.

    Returns:
        Email address if present, None otherwise
    """
    claims = decode_jwt(access_token) or {}
    email = claims.get("email")
    return email if isinstance(email, str) and email else None
