"""Energy site data: Fleet API client, readings and display projections"""

from .models import EnergySite, LiveReading, SamplePoint
from .client import EnergyApiClient, OPERATION_MODES

__all__ = [
    "EnergySite",
    "LiveReading",
    "SamplePoint",
    "EnergyApiClient",
    "OPERATION_MODES",
]
