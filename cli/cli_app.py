"""Main CLI application class for Energy Monitor"""

import asyncio
import logging
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.prompt import Prompt

from energy.client import OPERATION_MODES
from errors import AuthenticationRequired, EnergyMonitorError
from tesla_oauth import AuthConfig, AuthSessionManager, AuthState
from utils.storage import CLIENT_SECRET, ConfigStore, CredentialVault
from utils.sample_store import SampleStore
from cli.status_display import (
    format_auth_state,
    show_history,
    show_live_reading,
    show_token_status,
)

logger = logging.getLogger(__name__)


class EnergyMonitorCLI:
    """Command handlers for the energy-monitor CLI

    Each async command builds a session manager, restores any stored session,
    does its work and closes the manager again.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.vault = CredentialVault()
        self.config_store = ConfigStore()
        self.sample_store = SampleStore()

    def _create_manager(self) -> AuthSessionManager:
        config = AuthConfig.from_settings(self.vault, self.config_store)
        manager = AuthSessionManager(config, self.vault, self.sample_store, self.config_store)
        manager.subscribe(self._print_state)
        return manager

    def _print_state(self, state: AuthState):
        self.console.print(format_auth_state(state))

    def configure(self, client_id: Optional[str] = None, client_secret: Optional[str] = None):
        """Store the application client ID (config) and secret (vault)"""
        if client_id is None:
            client_id = Prompt.ask("Tesla client ID", default=self.config_store.client_id or "")
        if client_secret is None:
            client_secret = Prompt.ask("Tesla client secret (blank to keep)", password=True, default="")

        client_id = client_id.strip()
        if not client_id:
            self.console.print("[red]ERROR:[/red] Client ID cannot be empty")
            return

        self.config_store.client_id = client_id
        if client_secret.strip():
            self.vault.set(CLIENT_SECRET, client_secret.strip())
        self.console.print("[green]✓ Configuration saved[/green]")

    async def login(self, partner: bool = False) -> bool:
        manager = self._create_manager()
        try:
            if partner:
                ok = await manager.authenticate_with_partner_token()
            else:
                auth_url = await manager.start_authentication()
                if auth_url is None:
                    return False
                self.console.print("\nIf the browser did not open, visit:")
                self.console.print(f"[blue]{auth_url}[/blue]\n")
                self.console.print("[dim]Waiting for the Tesla sign-in to complete...[/dim]")
                ok = (await manager.wait_for_authentication()).is_authenticated

            if ok and manager.current_reading:
                show_live_reading(
                    manager.current_reading,
                    self.console,
                    manager.current_battery_status,
                    manager.current_energy_flow,
                    manager.current_menu_bar_display,
                )
            return ok
        finally:
            await manager.close()

    async def status(self) -> bool:
        show_token_status(self.vault, self.console)
        manager = self._create_manager()
        try:
            if not await manager.restore_session():
                return False
            if manager.current_reading is None:
                self.console.print("[yellow]No battery energy site data available[/yellow]")
                return True
            show_live_reading(
                manager.current_reading,
                self.console,
                manager.current_battery_status,
                manager.current_energy_flow,
                manager.current_menu_bar_display,
            )
            return True
        finally:
            await manager.close()

    async def watch(self):
        """Keep the session alive and print each new reading until interrupted"""
        manager = self._create_manager()
        try:
            if not await manager.restore_session():
                self.console.print("[yellow]Not signed in. Run `energy-monitor login` first.[/yellow]")
                return

            last_seen = None
            with Live(console=self.console, auto_refresh=False) as live:
                while manager.state.is_authenticated:
                    reading = manager.current_reading
                    display = manager.current_menu_bar_display
                    if reading is not None and reading is not last_seen and display is not None:
                        last_seen = reading
                        live.update(display.tooltip_text, refresh=True)
                    await asyncio.sleep(1)
        finally:
            await manager.close()

    def history(self, limit: int = 20):
        show_history(self.sample_store.load(), self.console, limit)

    async def logout(self):
        manager = self._create_manager()
        try:
            await manager.sign_out()
        finally:
            await manager.close()

    async def _site_command(self, action) -> bool:
        manager = self._create_manager()
        try:
            if not await manager.restore_session():
                self.console.print("[yellow]Not signed in. Run `energy-monitor login` first.[/yellow]")
                return False
            site_id = manager.active_site_id
            if not site_id:
                self.console.print("[red]ERROR:[/red] No battery energy site found for this account")
                return False
            try:
                await action(manager, site_id)
            except AuthenticationRequired as e:
                self.console.print(f"[red]ERROR:[/red] {e.message}")
                return False
            except EnergyMonitorError as e:
                logger.error(f"Site command failed: {e.message}")
                self.console.print(f"[red]ERROR:[/red] {e.message}")
                return False
            return True
        finally:
            await manager.close()

    async def set_backup_reserve(self, percent: float) -> bool:
        async def action(manager: AuthSessionManager, site_id: str):
            await manager.api.set_backup_reserve(site_id, percent)
            self.console.print(f"[green]✓ Backup reserve set to {percent:.0f}%[/green]")

        return await self._site_command(action)

    async def set_operation_mode(self, mode: str) -> bool:
        if mode not in OPERATION_MODES:
            self.console.print(f"[red]ERROR:[/red] Mode must be one of: {', '.join(OPERATION_MODES)}")
            return False

        async def action(manager: AuthSessionManager, site_id: str):
            await manager.api.set_operation_mode(site_id, mode)
            self.console.print(f"[green]✓ Operation mode set to {mode}[/green]")

        return await self._site_command(action)
