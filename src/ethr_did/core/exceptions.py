# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for ethr-did.

Every failure surfaced by the controller is a distinct type so callers can
decide whether to retry (nonce races), abort (bad configuration or encoding)
or alert (audience mismatch). Errors raised by the registry provider for
network or chain problems are not wrapped; they propagate unchanged.
"""

from __future__ import annotations

from typing import Any


class EthrDIDException(Exception):  # noqa: N818
    """Base exception for all ethr-did errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigurationError(EthrDIDException):
    """Invalid or conflicting controller configuration.

    Raised when:
    - A meta-transaction is requested without a relayer distinct from the identity
    - The chain or registry address cannot be determined
    - Options contradict each other

    Never retried.
    """


class NoSignerConfiguredError(ConfigurationError):
    """Token signing was requested but neither a private key nor a signer was supplied."""

    def __init__(self, message: str = "No signer configured"):
        super().__init__(message)


# =============================================================================
# ENCODING
# =============================================================================


class EncodingError(EthrDIDException):
    """A mutation field cannot be encoded the way the registry expects."""


class InvalidInputError(EncodingError):
    """Raised by hash construction for unencodable input.

    Raised when:
    - The delegate type is not a recognized value
    - The attribute value exceeds the maximum attribute length
    - An attribute name does not fit in 32 bytes
    - An address is not a valid 20-byte hex address
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class MalformedSignatureError(EncodingError):
    """The v/r/s components of a signature are missing or structurally invalid."""


# =============================================================================
# REGISTRY
# =============================================================================


class RegistryError(EthrDIDException):
    """The registry rejected a mutation."""


class StaleNonceError(RegistryError):
    """The signature was produced over a digest built against an old nonce.

    Retryable: refetch the nonce, rebuild the hash and sign again.
    """

    def __init__(self, message: str, expected_nonce: int | None = None, signed_nonce: int | None = None):
        details = {}
        if expected_nonce is not None:
            details["expected_nonce"] = expected_nonce
        if signed_nonce is not None:
            details["signed_nonce"] = signed_nonce
        super().__init__(message, details)
        self.expected_nonce = expected_nonce
        self.signed_nonce = signed_nonce


class SignatureMismatchError(RegistryError):
    """The recovered signer is not the identity owner (``bad_signature``)."""


class NotOwnerError(RegistryError):
    """A direct call was sent by an account that does not own the identity (``bad_actor``)."""

    def __init__(self, identity: str, sender: str):
        super().__init__(
            f"{sender} is not the owner of {identity}",
            {"identity": identity, "sender": sender},
        )
        self.identity = identity
        self.sender = sender


# =============================================================================
# RESOLUTION
# =============================================================================


class ResolutionError(EthrDIDException):
    """A DID could not be resolved into a document."""


class UnsupportedNetworkError(ResolutionError):
    """The DID names a network the resolver is not configured for."""

    def __init__(self, network: str):
        super().__init__(f"unknownNetwork: no registry configured for network {network!r}", {"network": network})
        self.network = network


# =============================================================================
# TOKENS
# =============================================================================


class TokenError(EthrDIDException):
    """Base class for JWT failures."""


class InvalidAudienceError(TokenError):
    """The token's ``aud`` claim names neither the verifying DID nor the callback URL."""

    def __init__(self, message: str = "invalid_config: JWT audience does not match your DID or callback url"):
        super().__init__(message)


class InvalidTokenError(TokenError):
    """The token is malformed, expired, or signed by a key the issuer document does not list."""
