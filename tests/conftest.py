"""
Shared test fixtures for the energy monitor tests.

Provides file-backed stores rooted in tmp_path and a fake Tesla backend that
serves canned responses through httpx.MockTransport.
"""

from __future__ import annotations

import json
import socket
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio

import settings
from tesla_oauth.models import AuthConfig
from tesla_oauth.session import AuthSessionManager
from utils.sample_store import SampleStore
from utils.storage import ConfigStore, CredentialVault

FIXED_NOW = 1_700_000_000.0

USERS_ME_URL = f"{settings.FLEET_API_BASE}/api/1/users/me"
PRODUCTS_URL = f"{settings.FLEET_API_BASE}/api/1/products"


def free_port() -> int:
    """Pick a loopback port nothing is listening on."""
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def live_status_url(site_id: str) -> str:
    return f"{settings.FLEET_API_BASE}/api/1/energy_sites/{site_id}/live_status"


class FakeTesla:
    """Routes requests by method and URL (without query) to canned responses.

    A route may hold a list of responses; they are served in order and the
    last one repeats. Unknown routes answer 404. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Any = None,
        text: Optional[str] = None,
    ) -> None:
        if text is not None:
            response = httpx.Response(status, text=text)
        else:
            response = httpx.Response(status, json=json_body if json_body is not None else {})
        self.routes.setdefault((method, url), []).append(response)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url.copy_with(query=None)))
        responses = self.routes.get(key)
        if not responses:
            return httpx.Response(404, json={"error": "not found"})
        return responses.pop(0) if len(responses) > 1 else responses[0]

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and str(r.url.copy_with(query=None)) == url
        ]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body."""
    return dict(httpx.QueryParams(request.content.decode()))


def json_of(request: httpx.Request) -> Any:
    return json.loads(request.content.decode())


@pytest.fixture()
def vault(tmp_path) -> CredentialVault:
    return CredentialVault(str(tmp_path / "vault" / "vault.json"))


@pytest.fixture()
def config_store(tmp_path) -> ConfigStore:
    return ConfigStore(str(tmp_path / "config.json"))


@pytest.fixture()
def sample_store(tmp_path) -> SampleStore:
    return SampleStore(str(tmp_path / "shared" / "samples.json"))


@pytest.fixture()
def auth_config() -> AuthConfig:
    return AuthConfig(client_id="test-client", client_secret="test-secret")


@pytest.fixture()
def fake_tesla() -> FakeTesla:
    return FakeTesla()


@pytest.fixture()
def opened_urls() -> list[str]:
    return []


@pytest_asyncio.fixture()
async def make_manager(auth_config, vault, sample_store, config_store, fake_tesla, opened_urls):
    """Factory for AuthSessionManager wired to the fake backend.

    The refresh loop ticks once an hour unless a test asks otherwise, and the
    browser and callback listener are replaced.
    """
    managers: list[AuthSessionManager] = []
    http_client = fake_tesla.client()

    def browser(url: str) -> bool:
        opened_urls.append(url)
        return True

    def factory(**overrides) -> AuthSessionManager:
        params = dict(
            config=auth_config,
            vault=vault,
            sample_store=sample_store,
            config_store=config_store,
            http_client=http_client,
            browser=browser,
            listen_for_callback=False,
            tick_seconds=3600,
            clock=lambda: FIXED_NOW,
        )
        params.update(overrides)
        manager = AuthSessionManager(**params)
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        await manager.close()
    await http_client.aclose()


def seed_session(vault: CredentialVault, expires_in: float = 3600, refresh_token: Optional[str] = "r0") -> None:
    """Store an access token (and optionally a refresh token) expiring in expires_in seconds."""
    vault.set("access_token", "t0")
    vault.set("refresh_token", refresh_token)
    vault.set_token_expiry(FIXED_NOW + expires_in)
