"""
Pydantic models for Fleet API energy data and the cached sample history.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC so history comparisons never mix kinds
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LiveReading(BaseModel):
    """One point-in-time measurement from an energy site (all powers in W)"""
    model_config = ConfigDict(frozen=True)

    solar_power: float
    load_power: float
    grid_power: float  # + import, - export
    battery_power: float  # + discharging, - charging
    battery_soc: float  # 0..100
    timestamp: datetime = Field(default_factory=utc_now)

    normalize_timestamp = field_validator("timestamp")(_as_utc)


class SamplePoint(BaseModel):
    """Persisted projection of a LiveReading used for charts"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    t: datetime
    solar: float
    home: float
    grid: float
    battery: float
    soc: float

    normalize_t = field_validator("t")(_as_utc)

    @classmethod
    def from_reading(cls, reading: LiveReading) -> "SamplePoint":
        return cls(
            t=reading.timestamp,
            solar=reading.solar_power,
            home=reading.load_power,
            grid=reading.grid_power,
            battery=reading.battery_power,
            soc=reading.battery_soc,
        )


class EnergySite(BaseModel):
    """Product entry from /api/1/products that describes an energy site"""
    model_config = ConfigDict(extra="ignore")

    energy_site_id: int
    resource_type: str
    site_name: str = ""
    id: Optional[str] = None
    energy_left: Optional[float] = None
    total_pack_energy: Optional[float] = None
    percentage_charged: Optional[float] = None
    battery_type: Optional[str] = None
    backup_capable: Optional[bool] = None
    battery_power: Optional[float] = None

    @property
    def is_battery(self) -> bool:
        return self.resource_type == "battery"


class LiveStatusPayload(BaseModel):
    """``response`` object of /live_status; every field may be missing"""
    model_config = ConfigDict(extra="ignore")

    solar_power: Optional[float] = None
    load_power: Optional[float] = None
    battery_power: Optional[float] = None
    percentage_charged: Optional[float] = None
    grid_power: Optional[float] = None
    grid_status: Optional[str] = None

    def to_reading(self, timestamp: Optional[datetime] = None) -> LiveReading:
        """Build a LiveReading, deriving grid power when the API omits it"""
        solar = self.solar_power or 0.0
        load = self.load_power or 0.0
        battery = self.battery_power or 0.0
        grid = self.grid_power if self.grid_power is not None else load - solar - battery

        return LiveReading(
            solar_power=solar,
            load_power=load,
            grid_power=grid,
            battery_power=battery,
            battery_soc=self.percentage_charged or 0.0,
            timestamp=timestamp or utc_now(),
        )
