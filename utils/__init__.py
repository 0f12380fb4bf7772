"""Shared utilities package for energy-monitor"""

from .storage import CredentialVault, ConfigStore
from .sample_store import SampleStore

__all__ = [
    "CredentialVault",
    "ConfigStore",
    "SampleStore",
]
