"""Tests for ethr_did.core.config - IdentitySettings and global config management.

Tests cover:
- Settings loading with defaults
- Environment variable overrides
- Singleton behavior (get_config / clear_config_cache)
"""

from __future__ import annotations

from ethr_did.core.config import (
    DEFAULT_REGISTRY_ADDRESS,
    IdentitySettings,
    clear_config_cache,
    get_config,
)

# ============================================================================
# IdentitySettings - Default Values
# ============================================================================


class TestIdentitySettingsDefaults:
    """Test that IdentitySettings loads with correct default values."""

    def test_network_defaults(self, clean_env):
        settings = IdentitySettings()

        assert settings.rpc_url is None
        assert settings.registry_address == DEFAULT_REGISTRY_ADDRESS
        assert settings.chain == "mainnet"

    def test_mutation_defaults(self, clean_env):
        settings = IdentitySettings()

        assert settings.default_expires_in == 86400
        assert settings.max_attribute_length == 4096
        assert settings.legacy_nonce is True

    def test_token_defaults(self, clean_env):
        settings = IdentitySettings()

        assert settings.jwt_leeway_seconds == 300
        assert settings.callback_url is None

    def test_logging_defaults(self, clean_env):
        settings = IdentitySettings()

        assert settings.log_level == "INFO"
        assert settings.log_format == ""
        assert settings.log_file is None


# ============================================================================
# Environment Overrides
# ============================================================================


class TestEnvironmentOverrides:
    def test_network_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("ETHR_DID_RPC_URL", "http://localhost:8545")
        monkeypatch.setenv("ETHR_DID_REGISTRY", "0x1111111111111111111111111111111111111111")
        monkeypatch.setenv("ETHR_DID_CHAIN", "dev")

        settings = IdentitySettings()

        assert settings.rpc_url == "http://localhost:8545"
        assert settings.registry_address == "0x1111111111111111111111111111111111111111"
        assert settings.chain == "dev"

    def test_numeric_settings_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("ETHR_DID_DEFAULT_EXPIRES_IN", "3600")
        monkeypatch.setenv("ETHR_DID_MAX_ATTRIBUTE_LENGTH", "64")
        monkeypatch.setenv("ETHR_DID_JWT_LEEWAY", "0")

        settings = IdentitySettings()

        assert settings.default_expires_in == 3600
        assert settings.max_attribute_length == 64
        assert settings.jwt_leeway_seconds == 0

    def test_legacy_nonce_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("ETHR_DID_LEGACY_NONCE", "false")

        assert IdentitySettings().legacy_nonce is False

    def test_field_names_accepted_as_kwargs(self, clean_env):
        settings = IdentitySettings(chain="sepolia", callback_url="https://example.com/cb")

        assert settings.chain == "sepolia"
        assert settings.callback_url == "https://example.com/cb"


# ============================================================================
# Global Config
# ============================================================================


class TestGlobalConfig:
    def test_get_config_is_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_clear_config_cache_reloads(self, clean_env, monkeypatch):
        first = get_config()
        monkeypatch.setenv("ETHR_DID_CHAIN", "goerli")
        clear_config_cache()

        second = get_config()

        assert second is not first
        assert second.chain == "goerli"
