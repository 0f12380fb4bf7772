"""Authenticated client for the Tesla Fleet API energy endpoints"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from errors import AuthenticationRequired, DecodeError, TransportError, error_for_status
from settings import FLEET_API_BASE, REQUEST_TIMEOUT, USER_AGENT
from utils.storage import ACCESS_TOKEN, CredentialVault
from .models import EnergySite, LiveReading, LiveStatusPayload

logger = logging.getLogger(__name__)

OPERATION_MODES = ("self_consumption", "backup", "autonomous")


class SessionHooks(Protocol):
    """What the client needs from a session manager"""

    async def refresh_token_if_needed(self) -> bool: ...

    async def sign_out(self) -> None: ...


class _LiveStatusResponse(BaseModel):
    response: LiveStatusPayload


class _ProductsResponse(BaseModel):
    response: List[Dict[str, Any]]


class EnergyApiClient:
    """Fleet API client with token enforcement and typed status mapping

    When bound to a session, every call first asks it to refresh the token
    if needed, and a 401 signs the session out. There is no retry here;
    callers decide what to do with each error type.
    """

    def __init__(
        self,
        vault: CredentialVault,
        base_url: str = FLEET_API_BASE,
        http_client: Optional[httpx.AsyncClient] = None,
        session: Optional[SessionHooks] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.vault = vault
        self.base_url = base_url.rstrip("/")
        self.session = session
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def bind_session(self, session: Optional[SessionHooks]):
        self.session = session

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, endpoint: str, json_body: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Send an authenticated request and map the status code

        Raises:
            AuthenticationRequired: Token refresh failed, no token, or HTTP 401
            HttpStatusError: Any other status >= 400 (typed by status)
            TransportError: No response received
        """
        if self.session is not None:
            if not await self.session.refresh_token_if_needed():
                raise AuthenticationRequired()

        access_token = self.vault.get(ACCESS_TOKEN)
        if not access_token:
            raise AuthenticationRequired()

        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

        logger.debug(f"{method} {endpoint}")
        try:
            response = await self._client.request(method, url, headers=headers, json=json_body)
        except httpx.RequestError as e:
            logger.warning(f"{method} {endpoint} failed: {e}")
            raise TransportError(e) from e

        status = response.status_code
        if 200 <= status <= 299:
            return response

        logger.warning(f"{method} {endpoint} returned HTTP {status}")
        if status == 401:
            if self.session is not None:
                await self.session.sign_out()
            raise AuthenticationRequired()
        raise error_for_status(status, response.text)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {response.request.url.path}") from e

    async def fetch_user_info(self) -> Any:
        """GET /api/1/users/me and return the parsed JSON body"""
        response = await self._request("GET", "/api/1/users/me")
        return self._json(response)

    async def list_energy_sites(self) -> List[EnergySite]:
        """GET /api/1/products and return the battery-capable energy sites

        Vehicles and other products in the listing are skipped.
        """
        response = await self._request("GET", "/api/1/products")
        try:
            products = _ProductsResponse.model_validate(self._json(response)).response
        except ValidationError as e:
            raise DecodeError("Unexpected products response") from e

        sites = []
        for product in products:
            if product.get("resource_type") != "battery":
                continue
            try:
                sites.append(EnergySite.model_validate(product))
            except ValidationError:
                logger.warning(f"Skipping malformed energy site entry: {product.get('energy_site_id')}")
        return sites

    async def fetch_live_status(self, site_id: str) -> LiveReading:
        """GET the live status of an energy site

        Grid power comes from the API when present, otherwise it is derived
        as load - solar - battery.
        """
        response = await self._request("GET", f"/api/1/energy_sites/{site_id}/live_status")
        try:
            payload = _LiveStatusResponse.model_validate(self._json(response)).response
        except ValidationError as e:
            raise DecodeError("Unexpected live status response") from e
        return payload.to_reading()

    async def set_backup_reserve(self, site_id: str, percent: float) -> None:
        """Set the backup reserve percentage (0-100)"""
        if not 0 <= percent <= 100:
            raise ValueError(f"Backup reserve must be between 0 and 100, got {percent}")
        await self._request(
            "POST",
            f"/api/1/energy_sites/{site_id}/backup",
            {"backup_reserve_percent": percent},
        )
        logger.info(f"Backup reserve for site {site_id} set to {percent}%")

    async def set_operation_mode(self, site_id: str, mode: str) -> None:
        """Set the site operation mode (self_consumption, backup or autonomous)"""
        if mode not in OPERATION_MODES:
            raise ValueError(f"Unknown operation mode '{mode}', expected one of {', '.join(OPERATION_MODES)}")
        await self._request(
            "POST",
            f"/api/1/energy_sites/{site_id}/operation",
            {"default_real_mode": mode},
        )
        logger.info(f"Operation mode for site {site_id} set to {mode}")
