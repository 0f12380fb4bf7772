"""
Unit tests for the environment-backed configuration loader.

Tests verify:
- Environment values win over defaults and are coerced to the default's type.
- Unparseable numbers and flags fall back to the default.
- Home-relative paths are expanded; the process environment beats .env.
- A .env file is loaded when present.
- AuthConfig resolves credentials from settings, then the stores.
"""

from __future__ import annotations

import pytest

import settings
from config.loader import ConfigLoader
from errors import ConfigurationError
from tesla_oauth.models import AuthConfig


@pytest.fixture()
def loader(tmp_path) -> ConfigLoader:
    return ConfigLoader(str(tmp_path / "missing.env"))


class TestConfigLoaderGet:
    """Typed lookups."""

    def test_default_when_unset(self, loader, monkeypatch) -> None:
        monkeypatch.delenv("EM_TEST_VALUE", raising=False)
        assert loader.get("EM_TEST_VALUE", 30) == 30

    @pytest.mark.parametrize(
        "raw, default, expected",
        [("45", 30, 45), ("2.5", 1.0, 2.5), ("true", False, True), ("0", True, False), ("abc", "x", "abc")],
    )
    def test_coercion(self, loader, monkeypatch, raw, default, expected) -> None:
        monkeypatch.setenv("EM_TEST_VALUE", raw)
        assert loader.get("EM_TEST_VALUE", default) == expected

    def test_bad_int_uses_default(self, loader, monkeypatch) -> None:
        monkeypatch.setenv("EM_TEST_VALUE", "soon")
        assert loader.get("EM_TEST_VALUE", 30) == 30

    @pytest.mark.parametrize("raw, expected", [("on", True), (" YES ", True), ("off", False), ("", False)])
    def test_flag_spellings(self, loader, monkeypatch, raw, expected) -> None:
        monkeypatch.setenv("EM_TEST_FLAG", raw)
        assert loader.get("EM_TEST_FLAG", not expected) is expected

    def test_unknown_flag_keeps_default(self, loader, monkeypatch) -> None:
        monkeypatch.setenv("EM_TEST_FLAG", "sometimes")
        assert loader.get("EM_TEST_FLAG", True) is True

    def test_home_relative_paths_expanded(self, loader, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("EM_TEST_PATH", "~/data/vault.json")
        monkeypatch.delenv("EM_TEST_UNSET", raising=False)

        assert loader.get("EM_TEST_PATH", "") == str(tmp_path / "data" / "vault.json")
        assert loader.get("EM_TEST_UNSET", "~/samples.json") == str(tmp_path / "samples.json")

    def test_environment_wins_over_env_file(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("EM_FROM_BOTH", "process")
        env_file = tmp_path / ".env"
        env_file.write_text("EM_FROM_BOTH=file\n")

        assert ConfigLoader(str(env_file)).get("EM_FROM_BOTH", "") == "process"

    def test_env_file_is_loaded(self, tmp_path, monkeypatch) -> None:
        # registers the variable so monkeypatch removes it afterwards
        monkeypatch.setenv("EM_FROM_DOTENV", "")
        monkeypatch.delenv("EM_FROM_DOTENV")
        env_file = tmp_path / ".env"
        env_file.write_text("EM_FROM_DOTENV=hello\n")

        loader = ConfigLoader(str(env_file))

        assert loader.get("EM_FROM_DOTENV", "") == "hello"


class TestAuthConfigFromSettings:
    """Credential resolution order."""

    def test_settings_win(self, vault, config_store, monkeypatch) -> None:
        monkeypatch.setattr(settings, "TESLA_CLIENT_ID", "from-env")
        monkeypatch.setattr(settings, "TESLA_CLIENT_SECRET", "")
        config_store.client_id = "from-store"
        vault.set("client_secret", " stored-secret ")

        config = AuthConfig.from_settings(vault, config_store)

        assert config.client_id == "from-env"
        assert config.client_secret == "stored-secret"

    def test_falls_back_to_stores(self, vault, config_store, monkeypatch) -> None:
        monkeypatch.setattr(settings, "TESLA_CLIENT_ID", "")
        config_store.client_id = "from-store"

        assert AuthConfig.from_settings(vault, config_store).client_id == "from-store"

    def test_validate_rejects_blank_client_id(self) -> None:
        with pytest.raises(ConfigurationError):
            AuthConfig(client_id="   ").validate()
