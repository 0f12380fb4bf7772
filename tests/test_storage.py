"""
Unit tests for the credential vault and config store.

Tests verify:
- Set/get/delete semantics, including None as delete.
- clear_all() empties only this service namespace.
- The vault file is owner-only.
- Corrupt files read as empty instead of raising.
"""

from __future__ import annotations

import json
import os
import stat

from utils.storage import ACCESS_TOKEN, REFRESH_TOKEN, ConfigStore, CredentialVault


class TestCredentialVault:
    """CredentialVault key/value behaviour."""

    def test_missing_key_is_none(self, vault) -> None:
        assert vault.get(ACCESS_TOKEN) is None
        assert vault.is_empty()

    def test_set_replaces_existing_value(self, vault) -> None:
        vault.set(ACCESS_TOKEN, "a")
        vault.set(ACCESS_TOKEN, "b")
        assert vault.get(ACCESS_TOKEN) == "b"
        assert vault.keys() == [ACCESS_TOKEN]

    def test_set_none_deletes(self, vault) -> None:
        vault.set(REFRESH_TOKEN, "r")
        vault.set(REFRESH_TOKEN, None)
        assert vault.get(REFRESH_TOKEN) is None

    def test_delete_absent_key_is_noop(self, vault) -> None:
        vault.delete("nope")
        assert vault.is_empty()

    def test_values_persist_across_instances(self, vault) -> None:
        vault.set(ACCESS_TOKEN, "persisted")
        again = CredentialVault(str(vault.vault_file))
        assert again.get(ACCESS_TOKEN) == "persisted"

    def test_clear_all_keeps_other_namespaces(self, vault) -> None:
        other = CredentialVault(str(vault.vault_file), service="other.service")
        other.set("k", "v")
        vault.set(ACCESS_TOKEN, "a")

        vault.clear_all()

        assert vault.is_empty()
        assert other.get("k") == "v"

    def test_vault_file_is_owner_only(self, vault) -> None:
        vault.set(ACCESS_TOKEN, "secret")
        mode = stat.S_IMODE(os.stat(vault.vault_file).st_mode)
        assert mode == 0o600

    def test_corrupt_file_reads_as_empty(self, vault) -> None:
        vault.vault_file.write_text("{not json")
        assert vault.get(ACCESS_TOKEN) is None
        vault.set(ACCESS_TOKEN, "recovered")
        assert vault.get(ACCESS_TOKEN) == "recovered"

    def test_token_expiry_round_trip(self, vault) -> None:
        vault.set_token_expiry(1234.5)
        assert vault.get_token_expiry() == 1234.5

    def test_malformed_expiry_is_none(self, vault) -> None:
        vault.set("token_expiry", "soon")
        assert vault.get_token_expiry() is None

    def test_status_never_contains_token_values(self, vault) -> None:
        vault.set(ACCESS_TOKEN, "super-secret")
        vault.set_token_expiry(0)
        status = vault.get_status()
        assert status["has_tokens"] is True
        assert status["is_expired"] is True
        assert "super-secret" not in json.dumps(status)


class TestConfigStore:
    """ConfigStore settings."""

    def test_site_id_property(self, config_store) -> None:
        assert config_store.site_id is None
        config_store.site_id = "12345"
        assert ConfigStore(str(config_store.config_path)).site_id == "12345"

    def test_setting_none_removes_value(self, config_store) -> None:
        config_store.client_id = "abc"
        config_store.client_id = None
        assert config_store.client_id is None
