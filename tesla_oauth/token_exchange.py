"""OAuth token endpoint calls: code exchange, partner token and refresh"""

import logging
from typing import Dict

import httpx
from pydantic import ValidationError

from errors import DecodeError, HttpStatusError, TransportError
from settings import FLEET_API_BASE, PARTNER_SCOPES, PARTNER_TOKEN_URL, TOKEN_URL
from .models import AuthConfig, TokenResponse

logger = logging.getLogger(__name__)


async def _post_token_request(
    client: httpx.AsyncClient,
    url: str,
    data: Dict[str, str],
    action: str,
    any_success: bool = False,
) -> TokenResponse:
    """POST a form-encoded token request and decode the response

    Args:
        client: HTTP client
        url: Token endpoint
        data: Form fields
        action: Short description used in error messages
        any_success: Accept any 2xx instead of only 200

    Raises:
        TransportError: No HTTP response
        HttpStatusError: Rejected by the provider
        DecodeError: Response body is not a token response
    """
    logger.debug(f"{action}: POST {url} (grant_type={data.get('grant_type')})")
    try:
        response = await client.post(
            url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except httpx.RequestError as e:
        logger.error(f"{action} request failed: {e}")
        raise TransportError(e) from e

    ok = response.is_success if any_success else response.status_code == 200
    if not ok:
        logger.error(f"{action} failed with status {response.status_code}: {response.text}")
        raise HttpStatusError(
            response.status_code,
            response.text,
            f"{action} failed: HTTP {response.status_code} - {response.text or 'Unknown error'}",
        )

    try:
        return TokenResponse.model_validate_json(response.content)
    except ValidationError as e:
        logger.error(f"Failed to parse {action.lower()} response: {e}")
        raise DecodeError(f"Failed to parse {action.lower()} response") from e


async def exchange_code(
    client: httpx.AsyncClient,
    config: AuthConfig,
    code: str,
    code_verifier: str,
    token_url: str = TOKEN_URL,
) -> TokenResponse:
    """Exchange an authorization code for tokens

    Args:
        client: HTTP client
        config: Client registration
        code: Authorization code from the callback
        code_verifier: Verifier matching the challenge sent at authorization

    Returns:
        Decoded token response (always carries a refresh token)
    """
    tokens = await _post_token_request(
        client,
        token_url,
        {
            "grant_type": "authorization_code",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "code": code,
            "code_verifier": code_verifier,
            "redirect_uri": config.redirect_uri,
        },
        "Token exchange",
    )
    if not tokens.refresh_token:
        raise DecodeError("Token exchange response missing refresh token")

    logger.info("OAuth tokens obtained")
    return tokens


async def request_partner_token(
    client: httpx.AsyncClient,
    config: AuthConfig,
    token_url: str = PARTNER_TOKEN_URL,
    audience: str = FLEET_API_BASE,
) -> TokenResponse:
    """Get an application-only (client_credentials) access token

    Partner tokens carry no end-user identity and no refresh token.
    """
    tokens = await _post_token_request(
        client,
        token_url,
        {
            "grant_type": "client_credentials",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "scope": PARTNER_SCOPES,
            "audience": audience,
        },
        "Partner token generation",
    )
    logger.info("Partner token obtained")
    return tokens


async def refresh_access_token(
    client: httpx.AsyncClient,
    config: AuthConfig,
    refresh_token: str,
    token_url: str = TOKEN_URL,
) -> TokenResponse:
    """Trade a refresh token for a new access token"""
    tokens = await _post_token_request(
        client,
        token_url,
        {
            "grant_type": "refresh_token",
            "client_id": config.client_id,
            "refresh_token": refresh_token,
        },
        "Token refresh",
        any_success=True,
    )
    logger.info("Successfully refreshed OAuth tokens")
    return tokens
