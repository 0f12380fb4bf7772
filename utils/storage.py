import json
import logging
import os
import platform
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

from settings import CONFIG_FILE, VAULT_FILE, VAULT_SERVICE

logger = logging.getLogger(__name__)

# Logical vault keys
ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"
TOKEN_EXPIRY = "token_expiry"
CODE_VERIFIER = "code_verifier"
STATE = "state"
CLIENT_SECRET = "client_secret"

# ConfigStore keys
SITE_ID = "energy_site_id"
CLIENT_ID = "tesla_client_id"


def ensure_secure_directory(directory: Path):
    """Create a directory readable only by the owner (700 on Unix-like systems)"""
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        if platform.system() != "Windows":
            os.chmod(directory, 0o700)


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    """Read a JSON object from disk, returning None when missing or corrupt"""
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable file {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a JSON object")
        return None
    return data


def write_json_atomic(path: Path, data: Dict[str, Any], mode: Optional[int] = None):
    """Write a JSON object by replacing the file in a single rename

    Readers in other processes see either the old or the new content, never a
    partial write.

    Args:
        path: Destination file
        data: JSON-serializable object
        mode: Optional permission bits applied before the rename
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        if mode is not None and platform.system() != "Windows":
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class CredentialVault:
    """Secret storage for tokens, PKCE parameters and the client secret

    Entries live under a fixed service namespace in an owner-only JSON file.
    A missing or unreadable file is an empty vault; nothing here raises for
    an absent key.
    """

    def __init__(self, vault_file: Optional[str] = None, service: str = VAULT_SERVICE):
        self.vault_path = Path(vault_file if vault_file else VAULT_FILE)
        self.service = service
        ensure_secure_directory(self.vault_path.parent)

    def _load_all(self) -> Dict[str, Any]:
        return read_json(self.vault_path) or {}

    def _entries(self) -> Dict[str, str]:
        entries = self._load_all().get(self.service)
        if not isinstance(entries, dict):
            return {}
        return {k: v for k, v in entries.items() if isinstance(v, str)}

    def _store(self, entries: Dict[str, str]):
        data = self._load_all()
        if entries:
            data[self.service] = entries
        else:
            data.pop(self.service, None)
        write_json_atomic(self.vault_path, data, mode=0o600)

    def get(self, key: str) -> Optional[str]:
        """Get a secret by logical key, or None if absent"""
        return self._entries().get(key)

    def set(self, key: str, value: Optional[str]):
        """Replace a secret; ``None`` deletes it

        The existing entry is always removed first so a key never holds more
        than one value.
        """
        entries = self._entries()
        entries.pop(key, None)
        if value is not None:
            entries[key] = value
        self._store(entries)

    def delete(self, key: str):
        """Remove a secret if present"""
        entries = self._entries()
        if key in entries:
            del entries[key]
            self._store(entries)

    def clear_all(self):
        """Remove every entry in this service namespace"""
        if self._entries():
            self._store({})
            logger.info("Cleared credential vault")

    def keys(self) -> list[str]:
        return sorted(self._entries())

    def is_empty(self) -> bool:
        return not self._entries()

    # Typed helpers for the expiry, stored as a numeric string

    def get_token_expiry(self) -> Optional[float]:
        """Get the access-token expiry as a Unix timestamp"""
        raw = self.get(TOKEN_EXPIRY)
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            logger.warning("Ignoring malformed token expiry in vault")
            return None

    def set_token_expiry(self, expires_at: Optional[float]):
        self.set(TOKEN_EXPIRY, None if expires_at is None else str(expires_at))

    def get_status(self) -> Dict[str, Any]:
        """Get token status without exposing secrets"""
        expires_at = self.get_token_expiry()
        has_tokens = self.get(ACCESS_TOKEN) is not None

        if not has_tokens or expires_at is None:
            return {
                "has_tokens": has_tokens,
                "has_refresh_token": self.get(REFRESH_TOKEN) is not None,
                "is_expired": True,
                "expires_in_seconds": None,
            }

        remaining = int(expires_at - time.time())
        return {
            "has_tokens": True,
            "has_refresh_token": self.get(REFRESH_TOKEN) is not None,
            "is_expired": remaining <= 0,
            "expires_in_seconds": max(remaining, 0),
        }

    @property
    def vault_file(self) -> Path:
        return self.vault_path


class ConfigStore:
    """Low-sensitivity configuration (active site id, client id)"""

    def __init__(self, config_file: Optional[str] = None):
        self.config_path = Path(config_file if config_file else CONFIG_FILE)
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        value = (read_json(self.config_path) or {}).get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: Optional[str]):
        """Set a value; ``None`` deletes it"""
        data = read_json(self.config_path) or {}
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        write_json_atomic(self.config_path, data)

    @property
    def site_id(self) -> Optional[str]:
        return self.get(SITE_ID)

    @site_id.setter
    def site_id(self, value: Optional[str]):
        self.set(SITE_ID, value)

    @property
    def client_id(self) -> Optional[str]:
        return self.get(CLIENT_ID)

    @client_id.setter
    def client_id(self, value: Optional[str]):
        self.set(CLIENT_ID, value)
