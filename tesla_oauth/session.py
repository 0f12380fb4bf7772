"""Session lifecycle for Tesla OAuth: sign-in, refresh loop and sign-out

Everything here runs on one asyncio event loop, which is the only place
session state and vault token entries are written. Network calls may overlap,
but their results are applied back on the loop.
"""

import asyncio
import hmac
import logging
import time
import webbrowser
from datetime import datetime, timezone
from typing import Callable, List, Optional
from urllib.parse import parse_qs, urlparse

import httpx

from energy.client import EnergyApiClient
from energy.models import EnergySite, LiveReading
from energy.projections import BatteryStatus, EnergyFlow, MenuBarDisplay
from errors import (
    AuthenticationRequired,
    Cancelled,
    ConfigurationError,
    DecodeError,
    EnergyMonitorError,
    StateMismatch,
)
from settings import (
    AUTHORIZE_URL,
    CALLBACK_TIMEOUT_SECONDS,
    CLEAR_SESSION_ON_LAUNCH,
    FLEET_API_BASE,
    PARTNER_TOKEN_URL,
    REFRESH_INTERVAL_SECONDS,
    REQUEST_TIMEOUT,
    SAMPLE_RETENTION_SECONDS,
    TOKEN_REFRESH_MARGIN_SECONDS,
    TOKEN_URL,
)
from utils.sample_store import SampleStore
from utils.storage import (
    ACCESS_TOKEN,
    CODE_VERIFIER,
    REFRESH_TOKEN,
    STATE,
    TOKEN_EXPIRY,
    ConfigStore,
    CredentialVault,
)
from .authorization import build_authorize_url
from .callback_server import OAuthCallbackServer
from .identity import PARTNER_IDENTITY, resolve_identity
from .models import AuthConfig, AuthState, TokenResponse, UserIdentity
from .pkce import PKCEManager
from .token_exchange import exchange_code, refresh_access_token, request_partner_token

logger = logging.getLogger(__name__)

StateListener = Callable[[AuthState], None]


def parse_callback(callback_url: str, expected_state: Optional[str]) -> str:
    """Validate an OAuth redirect and return its authorization code

    Args:
        callback_url: Full redirect URL received by the callback listener
        expected_state: State stored when the attempt started

    Raises:
        DecodeError: URL unparseable or no code
        Cancelled: Provider reported an error (e.g. access_denied)
        StateMismatch: State missing or different from the stored one
    """
    try:
        query = urlparse(callback_url).query
    except (ValueError, AttributeError) as e:
        raise DecodeError("Invalid callback URL") from e
    if not query:
        raise DecodeError("Invalid callback URL")

    params = parse_qs(query)
    error = params.get("error", [None])[0]
    if error:
        description = params.get("error_description", [None])[0]
        raise Cancelled(f"Authentication failed: {description or error}")

    state = params.get("state", [None])[0]
    if not state or not expected_state:
        raise StateMismatch()
    if not hmac.compare_digest(state.encode(), expected_state.encode()):
        raise StateMismatch()

    code = params.get("code", [None])[0]
    if not code:
        raise DecodeError("No authorization code received")
    return code


class AuthSessionManager:
    """Orchestrates the OAuth PKCE flow and the authenticated session

    The published ``state`` is the single source of truth for presentation.
    Operations never raise: failures become ``AuthState.error`` (or
    ``not_authenticated`` when the session had to be dropped).
    """

    def __init__(
        self,
        config: AuthConfig,
        vault: CredentialVault,
        sample_store: SampleStore,
        config_store: ConfigStore,
        http_client: Optional[httpx.AsyncClient] = None,
        api_client: Optional[EnergyApiClient] = None,
        browser: Callable[[str], bool] = webbrowser.open,
        listen_for_callback: bool = True,
        refresh_interval: int = REFRESH_INTERVAL_SECONDS,
        tick_seconds: float = 1.0,
        refresh_margin: float = TOKEN_REFRESH_MARGIN_SECONDS,
        retention_seconds: float = SAMPLE_RETENTION_SECONDS,
        callback_timeout: float = CALLBACK_TIMEOUT_SECONDS,
        clear_session_on_launch: bool = CLEAR_SESSION_ON_LAUNCH,
        authorize_url: str = AUTHORIZE_URL,
        token_url: str = TOKEN_URL,
        partner_token_url: str = PARTNER_TOKEN_URL,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.vault = vault
        self.sample_store = sample_store
        self.config_store = config_store
        self.browser = browser
        self.listen_for_callback = listen_for_callback
        self.refresh_interval = refresh_interval
        self.tick_seconds = tick_seconds
        self.refresh_margin = refresh_margin
        self.retention_seconds = retention_seconds
        self.callback_timeout = callback_timeout
        self.clear_session_on_launch = clear_session_on_launch
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.partner_token_url = partner_token_url
        self.clock = clock

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        self.api = api_client or EnergyApiClient(vault, FLEET_API_BASE, http_client=self._http)
        self.api.bind_session(self)
        self._pkce = PKCEManager(vault)

        self._state = AuthState.not_authenticated()
        self._listeners: List[StateListener] = []
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task] = None
        self._auth_task: Optional[asyncio.Task] = None
        self._callback_server: Optional[OAuthCallbackServer] = None
        # Bumped on sign-out and close so in-flight sign-ins and refreshes can detect it
        self._session_epoch = 0

        self.user_info: Optional[UserIdentity] = None
        self.energy_sites: List[EnergySite] = []
        self.last_refresh_time: Optional[datetime] = None
        self.next_refresh_in = refresh_interval
        self.current_reading: Optional[LiveReading] = None
        self.current_menu_bar_display: Optional[MenuBarDisplay] = None
        self.current_battery_status: Optional[BatteryStatus] = None
        self.current_energy_flow: Optional[EnergyFlow] = None

    # State publication

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def active_site_id(self) -> Optional[str]:
        return self.config_store.site_id

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for state changes

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: AuthState):
        if state == self._state:
            return
        self._state = state
        logger.info(f"Auth state -> {state.status.value}" + (f": {state.message}" if state.message else ""))
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Auth state listener failed")

    def update_config(self, config: AuthConfig):
        self.config = config

    def _check_config(self) -> bool:
        try:
            self.config.validate()
        except ConfigurationError as e:
            self._set_state(AuthState.error(e.message))
            return False
        return True

    def reset_error_state(self):
        """Clear a stale error without touching the session"""
        if self._state.is_error:
            self._set_state(AuthState.not_authenticated())

    # Authorization code flow

    async def start_authentication(self) -> Optional[str]:
        """Begin an OAuth PKCE sign-in

        Generates and stores the handshake, opens the browser on the authorize
        URL and (unless disabled) listens for the redirect in the background.

        Returns:
            The authorization URL, or None if the attempt could not start
        """
        if not self._check_config():
            return None

        await self._abort_pending_authorization()

        codes = self._pkce.generate_pkce()
        self._pkce.save_pkce(codes)
        auth_url = build_authorize_url(self.config, codes, self.authorize_url)
        self._set_state(AuthState.authenticating())

        if self.listen_for_callback:
            server = OAuthCallbackServer(self.config.redirect_uri)
            try:
                await server.start()
            except OSError as e:
                await server.stop()
                self._pkce.clear_pkce()
                self._set_state(AuthState.error(f"Could not listen for the OAuth callback: {e}"))
                return None
            self._callback_server = server
            self._auth_task = asyncio.create_task(self._await_callback(server))

        if not self.browser(auth_url):
            logger.warning(f"Could not open browser automatically; open this URL manually: {auth_url}")

        return auth_url

    async def wait_for_authentication(self) -> AuthState:
        """Wait for a pending browser sign-in to finish"""
        task = self._auth_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._state

    async def _await_callback(self, server: OAuthCallbackServer):
        try:
            callback_url = await server.wait_for_callback(self.callback_timeout)
        finally:
            await server.stop()
            if self._callback_server is server:
                self._callback_server = None

        if callback_url is None:
            self._pkce.clear_pkce()
            self._set_state(AuthState.error(Cancelled("Authentication timed out waiting for the browser").message))
            return

        await self.handle_callback(callback_url)

    async def _abort_pending_authorization(self):
        task = self._auth_task
        server = self._callback_server
        self._auth_task = None
        self._callback_server = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        # A task cancelled before its first step never reaches its finally
        if server is not None:
            await server.stop()

    async def handle_callback(self, callback_url: str) -> bool:
        """Validate the redirect, exchange the code and finish sign-in

        The stored verifier and state are deleted whatever the outcome.

        Returns:
            True if the session is now authenticated
        """
        epoch = self._session_epoch
        code_verifier, stored_state = self._pkce.load_pkce()
        try:
            try:
                code = parse_callback(callback_url, stored_state)
            except EnergyMonitorError as e:
                logger.error(f"Rejected OAuth callback: {e.message}")
                self._set_state(AuthState.error(e.message))
                return False

            if not code_verifier:
                self._set_state(AuthState.error("No PKCE verifier found. Start the sign-in again."))
                return False

            try:
                tokens = await exchange_code(self._http, self.config, code, code_verifier, self.token_url)
            except EnergyMonitorError as e:
                self._set_state(AuthState.error(f"Failed to exchange code for tokens: {e.message}"))
                return False
        finally:
            self._pkce.clear_pkce()

        if epoch != self._session_epoch:
            logger.info("Discarding exchanged tokens: session ended during sign-in")
            return False
        self._store_tokens(tokens)
        return await self._complete_sign_in(epoch)

    # Client credentials flow

    async def authenticate_with_partner_token(self) -> bool:
        """Sign in with an application-only token (no end-user identity)

        Returns:
            True if the session is now authenticated
        """
        if not self._check_config():
            return False

        epoch = self._session_epoch
        self._set_state(AuthState.authenticating())
        try:
            tokens = await request_partner_token(
                self._http, self.config, self.partner_token_url, self.api.base_url
            )
        except EnergyMonitorError as e:
            self._set_state(AuthState.error(f"Failed to generate partner token: {e.message}"))
            return False

        if epoch != self._session_epoch:
            logger.info("Discarding partner token: session ended during sign-in")
            return False
        self._store_tokens(tokens, keep_refresh_token=False)
        return await self._complete_sign_in(epoch, PARTNER_IDENTITY)

    # Shared sign-in completion

    def _store_tokens(self, tokens: TokenResponse, keep_refresh_token: bool = True):
        self.vault.set(ACCESS_TOKEN, tokens.access_token)
        self.vault.set(REFRESH_TOKEN, tokens.refresh_token if keep_refresh_token else None)
        self.vault.set_token_expiry(self.clock() + tokens.expires_in)

    async def _complete_sign_in(self, epoch: int, identity: Optional[UserIdentity] = None) -> bool:
        """Fetch identity and sites, publish Authenticated and start the refresh loop

        Args:
            epoch: Session counter read when the sign-in began; if a sign-out
                happened since, nothing is published
            identity: Known identity (partner tokens), else fetched
        """
        try:
            if identity is None:
                identity = await self._fetch_identity()
                if epoch != self._session_epoch:
                    return self._abandon_sign_in()
            await self.fetch_energy_sites()
        except AuthenticationRequired:
            # The API rejected the fresh token; the 401 already signed us out
            logger.error("Access token rejected while completing sign-in")
            return False

        if epoch != self._session_epoch:
            return self._abandon_sign_in()

        self.user_info = identity
        self._set_state(AuthState.authenticated(identity))
        self._start_refresh_loop()
        return True

    def _abandon_sign_in(self) -> bool:
        logger.info("Sign-in abandoned: session ended while it was in progress")
        self._clear_session_data()
        return False

    def _clear_session_data(self):
        self.user_info = None
        self.energy_sites = []
        self.current_reading = None
        self.current_menu_bar_display = None
        self.current_battery_status = None
        self.current_energy_flow = None
        self.next_refresh_in = self.refresh_interval

    async def _fetch_identity(self) -> UserIdentity:
        payload = None
        try:
            payload = await self.api.fetch_user_info()
        except AuthenticationRequired:
            raise
        except EnergyMonitorError as e:
            logger.warning(f"Failed to fetch user info: {e.message}")
        return resolve_identity(payload, self.vault.get(ACCESS_TOKEN) or "")

    async def restore_session(self) -> bool:
        """Resume a stored session at launch

        With ``clear_session_on_launch`` the stored tokens are wiped instead and
        the user has to sign in again.

        Returns:
            True if the stored session was resumed
        """
        if self.clear_session_on_launch:
            self._clear_session_entries()
            logger.info("Cleared stored session at launch")
            return False

        if self.vault.get(ACCESS_TOKEN) is None:
            return False

        expiry = self.vault.get_token_expiry()
        if self.vault.get(REFRESH_TOKEN) is None and (expiry is None or expiry <= self.clock()):
            logger.info("Stored access token expired and cannot be refreshed")
            self._clear_session_entries()
            return False

        epoch = self._session_epoch
        self._set_state(AuthState.authenticating())
        if not await self.refresh_token_if_needed():
            return False
        if epoch != self._session_epoch:
            return self._abandon_sign_in()
        return await self._complete_sign_in(epoch)

    def _clear_session_entries(self):
        for key in (ACCESS_TOKEN, REFRESH_TOKEN, TOKEN_EXPIRY, CODE_VERIFIER, STATE):
            self.vault.delete(key)

    # Energy data

    async def fetch_energy_sites(self):
        """Refresh the battery site list, pin the first one and fetch its live data

        Having no battery site is not an error. Only AuthenticationRequired
        propagates; other API failures are logged.
        """
        epoch = self._session_epoch
        try:
            sites = await self.api.list_energy_sites()
        except AuthenticationRequired:
            raise
        except EnergyMonitorError as e:
            logger.warning(f"Failed to fetch energy sites: {e.message}")
            return

        if epoch != self._session_epoch:
            logger.info("Ignoring site list: session ended while it was fetched")
            return

        self.energy_sites = sites
        if not sites:
            logger.info("No battery energy sites found for this account")
            return

        site = sites[0]
        self.config_store.site_id = str(site.energy_site_id)
        logger.debug(f"Active energy site: {site.energy_site_id} ({site.site_name})")
        await self.fetch_live_data(str(site.energy_site_id))

    async def fetch_live_data(self, site_id: Optional[str] = None) -> Optional[LiveReading]:
        """Fetch live status for a site and record it

        Args:
            site_id: Site to poll (defaults to the active site)

        Returns:
            The new reading, or None if nothing could be fetched
        """
        site_id = site_id or self.active_site_id
        if not site_id:
            return None

        try:
            reading = await self.api.fetch_live_status(site_id)
        except AuthenticationRequired:
            raise
        except EnergyMonitorError as e:
            logger.warning(f"Failed to fetch live status for site {site_id}: {e.message}")
            return None

        self._record_reading(reading)
        return reading

    def _record_reading(self, reading: LiveReading):
        self.sample_store.append(reading, self.retention_seconds)
        self.current_reading = reading
        self.current_menu_bar_display = MenuBarDisplay.from_reading(reading)
        self.current_battery_status = BatteryStatus.from_reading(reading)
        self.current_energy_flow = EnergyFlow.from_reading(reading)
        logger.debug(
            f"Live: solar={reading.solar_power}W home={reading.load_power}W "
            f"grid={reading.grid_power}W battery={reading.battery_power}W soc={reading.battery_soc}%"
        )

    async def refresh_energy_data(self):
        """Refresh the token if needed and refetch sites and live data"""
        if not self._state.is_authenticated:
            return

        self.last_refresh_time = datetime.now(timezone.utc)
        if not await self.refresh_token_if_needed():
            return

        try:
            await self.fetch_energy_sites()
        except AuthenticationRequired:
            logger.warning("Session ended while refreshing energy data")

    # Token refresh

    def _refresh_due(self) -> bool:
        if self.vault.get(REFRESH_TOKEN) is None:
            return False
        expiry = self.vault.get_token_expiry()
        if expiry is None:
            return False
        return expiry - self.clock() <= self.refresh_margin

    async def refresh_token_if_needed(self) -> bool:
        """Refresh the access token when it expires within the margin

        Returns True without any network call when no refresh is due or there
        is no refresh token. A failed refresh signs the session out and
        returns False. Concurrent callers wait on one lock and re-check, so a
        refresh is never applied twice.
        """
        if not self._refresh_due():
            return True

        async with self._refresh_lock:
            if not self._refresh_due():
                return True

            epoch = self._session_epoch
            refresh_token = self.vault.get(REFRESH_TOKEN)
            logger.info("Access token expiring soon, refreshing...")
            try:
                tokens = await refresh_access_token(self._http, self.config, refresh_token, self.token_url)
            except EnergyMonitorError as e:
                logger.error(f"Token refresh failed, signing out: {e.message}")
                await self.sign_out()
                return False

            if epoch != self._session_epoch:
                logger.info("Discarding refreshed tokens: session ended during refresh")
                return False

            self.vault.set(ACCESS_TOKEN, tokens.access_token)
            self.vault.set(REFRESH_TOKEN, tokens.refresh_token or refresh_token)
            self.vault.set_token_expiry(self.clock() + tokens.expires_in)
            return True

    # Refresh loop

    def _start_refresh_loop(self):
        self._stop_refresh_loop()
        self.next_refresh_in = self.refresh_interval
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    def _stop_refresh_loop(self) -> Optional[asyncio.Task]:
        task = self._refresh_task
        self._refresh_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def _refresh_loop(self):
        while self._state.is_authenticated:
            await asyncio.sleep(self.tick_seconds)
            if not self._state.is_authenticated:
                break

            self.next_refresh_in -= 1
            if self.next_refresh_in > 0:
                continue

            try:
                await self.refresh_energy_data()
            except Exception:
                logger.exception("Scheduled energy refresh failed")
            self.next_refresh_in = self.refresh_interval

    # Sign-out and teardown

    async def sign_out(self):
        """End the session: stop the loop, wipe the vault and reset state

        Safe to call repeatedly.
        """
        self._session_epoch += 1
        self._stop_refresh_loop()
        await self._abort_pending_authorization()
        self.vault.clear_all()

        self._clear_session_data()
        self._set_state(AuthState.not_authenticated())

    async def close(self):
        """Tear down: cancel background tasks and release the HTTP client"""
        # nothing started before teardown may publish or schedule afterwards
        self._session_epoch += 1
        refresh_task = self._stop_refresh_loop()
        await self._abort_pending_authorization()
        if refresh_task is not None:
            await asyncio.gather(refresh_task, return_exceptions=True)

        if self._owns_http:
            await self._http.aclose()
