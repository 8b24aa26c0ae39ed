# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized config for the ethr_did package.

All environment-based configuration should flow through this module.
Constructor arguments on the controller and resolver always win over these
values; the settings only supply defaults.

Usage:
    from ethr_did.core.config import get_config
    config = get_config()

    registry = config.registry_address
    expires_in = config.default_expires_in
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ERC-1056 registry deployed at the same address on mainnet and most testnets.
DEFAULT_REGISTRY_ADDRESS = "0xdca7ef03e98e0dc2b855be647c39abe984fcf21b"


class IdentitySettings(BaseSettings):
    """Configuration settings for ethr-did.

    Settings can be configured via environment variables with the
    ETHR_DID_ prefix, or a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # NETWORK SETTINGS
    # ==========================================================================

    rpc_url: str | None = Field(
        default=None,
        description="JSON-RPC endpoint used by the web3 registry adapter",
        validation_alias="ETHR_DID_RPC_URL",
    )
    registry_address: str = Field(
        default=DEFAULT_REGISTRY_ADDRESS,
        description="Address of the identity registry contract",
        validation_alias="ETHR_DID_REGISTRY",
    )
    chain: str = Field(
        default="mainnet",
        description="Network name or numeric chain id",
        validation_alias="ETHR_DID_CHAIN",
    )

    # ==========================================================================
    # MUTATION SETTINGS
    # ==========================================================================

    default_expires_in: int = Field(
        default=86400,
        description="Validity in seconds for delegates and attributes when none is given",
        validation_alias="ETHR_DID_DEFAULT_EXPIRES_IN",
    )
    max_attribute_length: int = Field(
        default=4096,
        description="Largest attribute value in bytes accepted for hashing",
        validation_alias="ETHR_DID_MAX_ATTRIBUTE_LENGTH",
    )
    legacy_nonce: bool = Field(
        default=True,
        description="Hash attribute mutations with the identity's nonce instead of the owner's (deployed registry quirk)",
        validation_alias="ETHR_DID_LEGACY_NONCE",
    )

    # ==========================================================================
    # TOKEN SETTINGS
    # ==========================================================================

    jwt_leeway_seconds: int = Field(
        default=300,
        description="Clock skew tolerated when checking exp and nbf",
        validation_alias="ETHR_DID_JWT_LEEWAY",
    )
    callback_url: str | None = Field(
        default=None,
        description="Callback URL accepted as a JWT audience besides the verifier's DID",
        validation_alias="ETHR_DID_CALLBACK_URL",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="ETHR_DID_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="ETHR_DID_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="ETHR_DID_LOG_FILE",
    )


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: IdentitySettings | None = None


def get_config() -> IdentitySettings:
    """Get the global configuration instance.

    Returns:
        The singleton IdentitySettings instance.
    """
    global _config
    if _config is None:
        _config = IdentitySettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
