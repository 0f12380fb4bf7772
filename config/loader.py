"""Environment-backed settings for Energy Monitor

Values come from the process environment, then a ``.env`` file, then the
default written in ``settings.py``. The default also fixes the type: numbers
and flags given as strings in the environment are converted to match it, and
home-relative paths are expanded.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
FALSE_VALUES = frozenset({"false", "0", "no", "off", ""})


def _parse_flag(name: str, raw: str, default: bool) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    logger.warning(f"{name}={raw!r} is not a recognised flag, keeping {default}")
    return default


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of ``default``"""
    # bool is a subclass of int
    if isinstance(default, bool):
        return _parse_flag(name, raw, default)
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw.strip())
        except ValueError:
            logger.warning(f"{name}={raw!r} is not a valid {type(default).__name__}, keeping {default}")
            return default
    return _expand_home(raw)


def _expand_home(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("~"):
        return str(Path(value).expanduser())
    return value


class ConfigLoader:
    """Typed lookups over the environment and an optional .env file"""

    def __init__(self, env_path: Optional[str] = None):
        self.env_path = Path(env_path) if env_path else Path(".env")
        if self.env_path.exists():
            # existing environment variables take precedence
            load_dotenv(dotenv_path=self.env_path, override=False)
            logger.debug(f"Loaded settings from {self.env_path}")

    def get(self, env_var: str, default: Any) -> Any:
        """Look up ``env_var``, falling back to ``default``

        Args:
            env_var: Environment variable name
            default: Value used when the variable is unset; its type decides
                how the environment string is converted

        Returns:
            The converted environment value or the default
        """
        raw = os.getenv(env_var)
        if raw is None:
            return _expand_home(default)
        return _coerce(env_var, raw, default)


_config_loader = None


def get_config_loader() -> ConfigLoader:
    """Get or create the shared ConfigLoader"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader
