"""Display projections derived from a single LiveReading

All of these are pure functions of the reading; nothing is measured per flow.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .models import LiveReading

# Powers below this magnitude (W) count as zero
IDLE_THRESHOLD = 0.1


def format_watts(watts: float) -> str:
    """Format a power value: '1.2 kW' at or above 1000 W, else '850 W'"""
    if abs(watts) >= 1000:
        return f"{watts / 1000.0:0.1f} kW"
    return f"{watts:0.0f} W"


class BatteryState(str, Enum):
    CHARGING = "charging"
    DISCHARGING = "discharging"
    IDLE = "idle"


@dataclass(frozen=True)
class BatteryStatus:
    """Battery state of charge and direction

    Attributes:
        state: charging, discharging or idle
        power: Battery power in W (positive = discharging, negative = charging)
        soc: State of charge percentage
        eta_to_full: Seconds until full, when known
        eta_to_empty: Seconds until empty, when known
    """
    state: BatteryState
    power: float
    soc: float
    eta_to_full: Optional[float] = None
    eta_to_empty: Optional[float] = None

    @classmethod
    def from_values(cls, soc: float, power: float) -> "BatteryStatus":
        if abs(power) < IDLE_THRESHOLD:
            state = BatteryState.IDLE
        elif power < 0:
            state = BatteryState.CHARGING
        else:
            state = BatteryState.DISCHARGING
        return cls(state=state, power=power, soc=soc)

    @classmethod
    def from_reading(cls, reading: LiveReading) -> "BatteryStatus":
        return cls.from_values(reading.battery_soc, reading.battery_power)


@dataclass(frozen=True)
class EnergyFlow:
    """Deterministic split of power between solar, home, battery and grid (W)"""
    solar_to_home: float
    solar_to_battery: float
    solar_to_grid: float
    battery_to_home: float
    grid_to_home: float
    grid_to_battery: float

    @classmethod
    def from_reading(cls, reading: LiveReading) -> "EnergyFlow":
        return cls.allocate(
            solar_power=reading.solar_power,
            load_power=reading.load_power,
            battery_power=reading.battery_power,
        )

    @classmethod
    def allocate(cls, solar_power: float, load_power: float, battery_power: float) -> "EnergyFlow":
        """Apportion solar to home first, then to the battery or export

        Grid power is not an input: the split only depends on which way the
        battery is flowing.
        """
        solar = max(0.0, solar_power)
        home = max(0.0, load_power)
        solar_to_home = min(solar, home)
        solar_excess = max(0.0, solar - home)

        if battery_power < 0:
            charge = abs(battery_power)
            return cls(
                solar_to_home=solar_to_home,
                solar_to_battery=min(solar_excess, charge),
                solar_to_grid=max(0.0, solar_excess - charge),
                battery_to_home=0.0,
                grid_to_home=max(0.0, home - solar),
                grid_to_battery=max(0.0, charge - solar_excess),
            )

        return cls(
            solar_to_home=solar_to_home,
            solar_to_battery=0.0,
            solar_to_grid=solar_excess,
            battery_to_home=min(battery_power, max(0.0, home - solar)),
            grid_to_home=max(0.0, home - solar - battery_power),
            grid_to_battery=0.0,
        )


class IndicatorType(str, Enum):
    SOLAR = "solar"
    BATTERY_CHARGING = "batteryCharging"
    BATTERY_DISCHARGING = "batteryDischarging"
    GRID_IMPORT = "gridImport"
    GRID_EXPORT = "gridExport"


class ColorState(str, Enum):
    NORMAL = "normal"
    EXPORTING = "exporting"
    IMPORTING = "importing"


@dataclass(frozen=True)
class MenuBarDisplay:
    """Compact summary for a menu bar or status line"""
    home_load: float
    indicators: List[IndicatorType] = field(default_factory=list)
    color_state: ColorState = ColorState.NORMAL
    tooltip_text: str = ""

    @classmethod
    def from_reading(cls, reading: LiveReading) -> "MenuBarDisplay":
        indicators = []
        if reading.solar_power > IDLE_THRESHOLD:
            indicators.append(IndicatorType.SOLAR)

        if abs(reading.battery_power) > IDLE_THRESHOLD:
            if reading.battery_power < 0:
                indicators.append(IndicatorType.BATTERY_CHARGING)
            else:
                indicators.append(IndicatorType.BATTERY_DISCHARGING)

        if abs(reading.grid_power) > IDLE_THRESHOLD:
            if reading.grid_power > 0:
                indicators.append(IndicatorType.GRID_IMPORT)
            else:
                indicators.append(IndicatorType.GRID_EXPORT)

        if reading.grid_power < -IDLE_THRESHOLD:
            color_state = ColorState.EXPORTING
        elif reading.grid_power > IDLE_THRESHOLD:
            color_state = ColorState.IMPORTING
        else:
            color_state = ColorState.NORMAL

        grid_direction = "export" if reading.grid_power < 0 else "import"
        battery_direction = "charging" if reading.battery_power < 0 else "discharging"
        tooltip = (
            f"Solar {format_watts(reading.solar_power)} · "
            f"Home {format_watts(reading.load_power)} · "
            f"Grid {format_watts(abs(reading.grid_power))} ({grid_direction}) · "
            f"Battery {reading.battery_soc:.0f}% "
            f"({battery_direction} {format_watts(abs(reading.battery_power))})"
        )

        return cls(
            home_load=reading.load_power,
            indicators=indicators,
            color_state=color_state,
            tooltip_text=tooltip,
        )
