"""
Tests for the local OAuth callback listener.

Tests verify:
- The full redirect URL is handed to the waiter.
- A second redirect is refused.
- Waiting times out with None.
"""

from __future__ import annotations

import httpx
import pytest

from tesla_oauth.callback_server import OAuthCallbackServer
from tests.conftest import free_port


class TestOAuthCallbackServer:
    """Redirect capture over a real loopback socket."""

    @pytest.mark.asyncio
    async def test_captures_callback_url(self) -> None:
        port = free_port()
        server = OAuthCallbackServer(f"http://127.0.0.1:{port}/callback")
        await server.start()
        try:
            async with httpx.AsyncClient() as client:
                first = await client.get(f"http://127.0.0.1:{port}/callback?code=ABC&state=s1")
                second = await client.get(f"http://127.0.0.1:{port}/callback?code=XYZ&state=s1")

            url = await server.wait_for_callback(timeout=1)
        finally:
            await server.stop()

        assert first.status_code == 200
        assert second.status_code == 409
        assert url.endswith("/callback?code=ABC&state=s1")

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self) -> None:
        server = OAuthCallbackServer(f"http://127.0.0.1:{free_port()}/callback")
        await server.start()
        try:
            assert await server.wait_for_callback(timeout=0.05) is None
        finally:
            await server.stop()
