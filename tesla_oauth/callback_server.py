"""
Local OAuth callback listener bound to the registered redirect URI
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

from aiohttp import web

logger = logging.getLogger(__name__)

SUCCESS_PAGE = """
<html>
    <body>
        <h1>Authorization received</h1>
        <p>You can close this window and return to Energy Monitor.</p>
        <script>
            setTimeout(function() {
                window.close();
            }, 2000);
        </script>
    </body>
</html>
"""


class OAuthCallbackServer:
    """Local HTTP server that captures the provider redirect

    The server does not validate anything itself: it hands the full callback
    URL to whoever awaits ``wait_for_callback``.
    """

    def __init__(self, redirect_uri: str):
        parsed = urlparse(redirect_uri)
        self.host = parsed.hostname or "localhost"
        self.port = parsed.port or 80
        self.path = parsed.path or "/"
        self.callback_url: Optional[str] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._event = asyncio.Event()

        self.app.router.add_get(self.path, self._handle_callback)

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Record the callback URL and show a confirmation page"""
        if self._event.is_set():
            return web.Response(text="Callback already received", status=409)

        self.callback_url = str(request.url)
        self._event.set()
        logger.debug("OAuth callback received")
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")

    async def start(self) -> None:
        """Start the callback server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        site = web.TCPSite(self.runner, host=self.host, port=self.port)
        await site.start()
        logger.info(f"OAuth callback server listening on {self.host}:{self.port}{self.path}")

    async def wait_for_callback(self, timeout: float = 300) -> Optional[str]:
        """
        Wait for the provider redirect.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            The full callback URL, or None on timeout
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
            return self.callback_url
        except asyncio.TimeoutError:
            logger.warning(f"OAuth callback timeout after {timeout} seconds")
            return None

    async def stop(self) -> None:
        """Stop the callback server"""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
