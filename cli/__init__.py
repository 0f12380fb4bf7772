"""CLI package for Energy Monitor

This package provides the command-line interface for signing in to Tesla and
watching a Powerwall energy site.
"""

from cli.cli_app import EnergyMonitorCLI
from cli.main import main

__all__ = [
    "EnergyMonitorCLI",
    "main",
]
