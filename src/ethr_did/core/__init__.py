# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""ethr-did core - configuration, logging and exceptions shared by every module."""

from .config import IdentitySettings, clear_config_cache, get_config
from .exceptions import (
    ConfigurationError,
    EncodingError,
    EthrDIDException,
    InvalidAudienceError,
    InvalidInputError,
    InvalidTokenError,
    MalformedSignatureError,
    NoSignerConfiguredError,
    NotOwnerError,
    RegistryError,
    ResolutionError,
    SignatureMismatchError,
    StaleNonceError,
    TokenError,
    UnsupportedNetworkError,
)
from .logging import (
    MutationLogger,
    configure_logging,
    correlation_context,
    get_logger,
    mutation_logger,
)

__all__ = [
    # Config
    "IdentitySettings",
    "get_config",
    "clear_config_cache",
    # Exceptions
    "EthrDIDException",
    "ConfigurationError",
    "NoSignerConfiguredError",
    "EncodingError",
    "InvalidInputError",
    "MalformedSignatureError",
    "RegistryError",
    "StaleNonceError",
    "SignatureMismatchError",
    "NotOwnerError",
    "ResolutionError",
    "UnsupportedNetworkError",
    "TokenError",
    "InvalidAudienceError",
    "InvalidTokenError",
    # Logging
    "configure_logging",
    "correlation_context",
    "get_logger",
    "MutationLogger",
    "mutation_logger",
]
