"""User identity decoding for the /users/me response

The endpoint has answered with more than one body shape, so decoding is an
ordered list of independent attempts; the first that succeeds wins.
"""

import logging
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ValidationError

from .jwt_utils import extract_email
from .models import UserIdentity

logger = logging.getLogger(__name__)

PLACEHOLDER_SUB = "authenticated-user"
PARTNER_IDENTITY = UserIdentity(
    sub="partner-token-user",
    email="partner@tesla.com",
    given_name="Partner",
    family_name="User",
)


class VaultUserInfo(BaseModel):
    email: str
    full_name: str
    vault_uuid: str
    profile_image_url: Optional[str] = None


class VaultUserInfoResponse(BaseModel):
    """Fleet API shape: ``{"response": {"email", "full_name", "vault_uuid"}}``"""
    response: VaultUserInfo


class OAuthUserInfo(BaseModel):
    """Flat OpenID Connect userinfo shape"""
    sub: str
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None


def split_full_name(full_name: str) -> tuple[Optional[str], Optional[str]]:
    """Split 'First Middle Last' into ('First', 'Middle Last')"""
    parts = full_name.strip().split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def _from_vault_shape(payload: Any, access_token: str) -> Optional[UserIdentity]:
    try:
        info = VaultUserInfoResponse.model_validate(payload).response
    except ValidationError:
        return None
    given_name, family_name = split_full_name(info.full_name)
    return UserIdentity(sub=info.vault_uuid, email=info.email, given_name=given_name, family_name=family_name)


def _from_oauth_shape(payload: Any, access_token: str) -> Optional[UserIdentity]:
    try:
        info = OAuthUserInfo.model_validate(payload)
    except ValidationError:
        return None
    return UserIdentity(sub=info.sub, email=info.email, given_name=info.given_name, family_name=info.family_name)


def _from_token_claims(payload: Any, access_token: str) -> Optional[UserIdentity]:
    email = extract_email(access_token)
    if not email:
        return None
    return UserIdentity(sub=PLACEHOLDER_SUB, email=email, given_name="Tesla", family_name="User")


DECODERS: List[Callable[[Any, str], Optional[UserIdentity]]] = [
    _from_vault_shape,
    _from_oauth_shape,
    _from_token_claims,
]


def placeholder_identity() -> UserIdentity:
    return UserIdentity(sub=PLACEHOLDER_SUB, email="user@tesla.com", given_name="Tesla", family_name="User")


def resolve_identity(payload: Any, access_token: str) -> UserIdentity:
    """Decode a userinfo payload, falling back to token claims and then a placeholder

    Args:
        payload: Parsed JSON body, or None when the request failed
        access_token: Token whose JWT payload may carry an email claim

    Returns:
        The first identity any decoder produces, else a placeholder
    """
    for decoder in DECODERS:
        identity = decoder(payload, access_token)
        if identity is not None:
            logger.debug(f"Identity decoded by {decoder.__name__}")
            return identity

    logger.warning("Could not decode user info; using placeholder identity")
    return placeholder_identity()
