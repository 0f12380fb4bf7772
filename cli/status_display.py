"""Status display functionality for CLI"""

from typing import List, Optional

from rich.table import Table

from energy.models import LiveReading, SamplePoint
from energy.projections import BatteryStatus, EnergyFlow, MenuBarDisplay, format_watts
from tesla_oauth.models import AuthState, AuthStatus
from utils.storage import CredentialVault

STATUS_STYLES = {
    AuthStatus.NOT_AUTHENTICATED: "yellow",
    AuthStatus.AUTHENTICATING: "cyan",
    AuthStatus.AUTHENTICATED: "green",
    AuthStatus.ERROR: "red",
}


def format_auth_state(state: AuthState) -> str:
    """Render an AuthState as one line of rich markup"""
    style = STATUS_STYLES[state.status]
    if state.status is AuthStatus.AUTHENTICATED and state.identity:
        return f"[{style}]Signed in[/{style}] as {state.identity.display_name}"
    if state.status is AuthStatus.ERROR:
        return f"[{style}]Error:[/{style}] {state.message}"
    if state.status is AuthStatus.AUTHENTICATING:
        return f"[{style}]Signing in...[/{style}]"
    return f"[{style}]Not signed in[/{style}]"


def get_auth_status(vault: CredentialVault) -> tuple[str, str]:
    """
    Get authentication status and expiry info

    Args:
        vault: CredentialVault instance

    Returns:
        Tuple of (status, detail_message)
    """
    status = vault.get_status()

    if not status["has_tokens"]:
        return "NO AUTH", "No tokens available"

    if status["is_expired"]:
        if status["has_refresh_token"]:
            return "EXPIRED", "Token expired, will refresh on next use"
        return "EXPIRED", "Token expired"

    seconds = status["expires_in_seconds"]
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    time_str = f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"
    return "VALID", f"Expires in {time_str}"


def show_token_status(vault: CredentialVault, console):
    """
    Display token status without revealing any secret

    Args:
        vault: CredentialVault instance
        console: Rich console for output
    """
    status = vault.get_status()
    label, detail = get_auth_status(vault)

    table = Table(title="Token Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Status", label)
    table.add_row("Detail", detail)
    table.add_row("Refresh Token", "Yes" if status["has_refresh_token"] else "No")
    table.add_row("Vault File", str(vault.vault_file))

    console.print(table)


def show_live_reading(
    reading: LiveReading,
    console,
    battery: Optional[BatteryStatus] = None,
    flow: Optional[EnergyFlow] = None,
    display: Optional[MenuBarDisplay] = None,
):
    """Display the latest reading with its battery, flow and summary projections"""
    battery = battery or BatteryStatus.from_reading(reading)
    flow = flow or EnergyFlow.from_reading(reading)
    display = display or MenuBarDisplay.from_reading(reading)

    table = Table(title=f"Live Status ({reading.timestamp.astimezone():%H:%M:%S})")
    table.add_column("Source", style="cyan")
    table.add_column("Power", justify="right")

    grid_label = "Grid (export)" if reading.grid_power < 0 else "Grid (import)"
    table.add_row("Solar", format_watts(reading.solar_power))
    table.add_row("Home", format_watts(reading.load_power))
    table.add_row(grid_label, format_watts(abs(reading.grid_power)))
    table.add_row(
        f"Battery ({battery.state.value})",
        f"{format_watts(abs(battery.power))} @ {battery.soc:.0f}%",
    )
    console.print(table)

    flows = Table(title="Energy Flow")
    flows.add_column("Path", style="cyan")
    flows.add_column("Power", justify="right")
    for label, watts in (
        ("Solar → Home", flow.solar_to_home),
        ("Solar → Battery", flow.solar_to_battery),
        ("Solar → Grid", flow.solar_to_grid),
        ("Battery → Home", flow.battery_to_home),
        ("Grid → Home", flow.grid_to_home),
        ("Grid → Battery", flow.grid_to_battery),
    ):
        if watts > 0:
            flows.add_row(label, format_watts(watts))
    console.print(flows)

    console.print(f"[dim]{display.tooltip_text}[/dim]")


def show_history(points: List[SamplePoint], console, limit: int = 20):
    """
    Display the most recent samples, newest last

    Args:
        points: Samples sorted by time
        console: Rich console for output
        limit: Maximum number of rows to show
    """
    if not points:
        console.print("[yellow]No samples recorded yet[/yellow]")
        return

    table = Table(title=f"Sample History ({len(points)} samples)")
    table.add_column("Time", style="cyan")
    table.add_column("Solar", justify="right")
    table.add_column("Home", justify="right")
    table.add_column("Grid", justify="right")
    table.add_column("Battery", justify="right")
    table.add_column("SoC", justify="right")

    for point in points[-limit:]:
        table.add_row(
            f"{point.t.astimezone():%H:%M:%S}",
            format_watts(point.solar),
            format_watts(point.home),
            format_watts(point.grid),
            format_watts(point.battery),
            f"{point.soc:.0f}%",
        )

    console.print(table)
