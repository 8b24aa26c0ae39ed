# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Canonical mutation encoding and meta-transaction digests.

The registry verifies a relayed mutation by recomputing::

    keccak256(abi.encodePacked(
        bytes1(0x19), bytes1(0), registry, nonce, identity, "<tag>", <fields...>))

and recovering the signer from the submitted ``(v, r, s)``. Every width and
position below is fixed by the deployed contract:

==================  ===================  =====================================
mutation            tag                  fields
==================  ===================  =====================================
changeOwner         ``changeOwner``      newOwner (20)
addDelegate         ``addDelegate``      delegateType (32), delegate (20),
                                         validity (uint256)
revokeDelegate      ``revokeDelegate``   delegateType (32), delegate (20)
setAttribute        ``setAttribute``     name (32), value (raw), validity
                                         (uint256)
revokeAttribute     ``revokeAttribute``  name (32), value (raw)
==================  ===================  =====================================

A :class:`Mutation` holds the encoded fields once; the digest, the direct call
and the signed payload are all derived from it.
"""

from __future__ import annotations

import base64
import binascii
import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import base58
from eth_abi.packed import encode_packed
from eth_utils import decode_hex, keccak

from ethr_did.core.exceptions import InvalidInputError
from ethr_did.identity.models import DelegateType, normalize_address

if TYPE_CHECKING:
    from ethr_did.registry.base import RegistryProvider

logger = logging.getLogger(__name__)

MESSAGE_PREFIX = (b"\x19", b"\x00")

# Upper bound on attribute values accepted for hashing. The contract has no
# hard limit, but values this large already cost more gas than a block allows.
DEFAULT_MAX_ATTRIBUTE_LENGTH = 4096

ATTRIBUTE_NAME_RE = re.compile(r"^did/(pub|auth|svc)/(\w+)(/(\w+))?(/(\w+))?$")
_HEX_VALUE_RE = re.compile(r"^0x(?:[0-9a-fA-F]{2})*$")


class MutationKind(enum.StrEnum):
    """Registry mutations; the value doubles as the in-digest domain tag."""

    CHANGE_OWNER = "changeOwner"
    ADD_DELEGATE = "addDelegate"
    REVOKE_DELEGATE = "revokeDelegate"
    SET_ATTRIBUTE = "setAttribute"
    REVOKE_ATTRIBUTE = "revokeAttribute"

    @property
    def is_attribute(self) -> bool:
        return self in (MutationKind.SET_ATTRIBUTE, MutationKind.REVOKE_ATTRIBUTE)


_FIELD_TYPES: dict[MutationKind, tuple[str, ...]] = {
    MutationKind.CHANGE_OWNER: ("address",),
    MutationKind.ADD_DELEGATE: ("bytes32", "address", "uint256"),
    MutationKind.REVOKE_DELEGATE: ("bytes32", "address"),
    MutationKind.SET_ATTRIBUTE: ("bytes32", "bytes", "uint256"),
    MutationKind.REVOKE_ATTRIBUTE: ("bytes32", "bytes"),
}

_FIELD_NAMES: dict[MutationKind, tuple[str, ...]] = {
    MutationKind.CHANGE_OWNER: ("new_owner",),
    MutationKind.ADD_DELEGATE: ("delegate_type", "delegate", "validity"),
    MutationKind.REVOKE_DELEGATE: ("delegate_type", "delegate"),
    MutationKind.SET_ATTRIBUTE: ("name", "value", "validity"),
    MutationKind.REVOKE_ATTRIBUTE: ("name", "value"),
}

_PREFIX_TYPES = ("bytes1", "bytes1", "address", "uint256", "address", "string")


# =============================================================================
# FIELD ENCODING
# =============================================================================


def encode_bytes32(text: str, field: str = "name") -> bytes:
    """UTF-8 encode *text* and right-pad it with zeros to 32 bytes.

    Raises:
        InvalidInputError: If the encoding is longer than 32 bytes.
    """
    raw = text.encode("utf-8")
    if len(raw) > 32:
        raise InvalidInputError(f"{field} does not fit in 32 bytes", field=field, value=text)
    return raw.ljust(32, b"\x00")


def decode_bytes32(raw: bytes) -> str:
    """Inverse of :func:`encode_bytes32`."""
    return raw.rstrip(b"\x00").decode("utf-8", errors="replace")


def encode_attribute_value(name: str, value: str | bytes) -> bytes:
    """Turn an attribute value into the raw bytes stored by the registry.

    - ``bytes`` are used as-is
    - ``0x``-prefixed hex strings are decoded
    - otherwise a ``/base64`` or ``/base58`` encoding suffix on the name selects
      the decoder
    - anything else is UTF-8 encoded

    Raises:
        InvalidInputError: If the value cannot be decoded.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise InvalidInputError("Attribute value must be str or bytes", field="value", value=value)

    if _HEX_VALUE_RE.match(value):
        return decode_hex(value)

    match = ATTRIBUTE_NAME_RE.match(name)
    encoding = match.group(6) if match else None
    try:
        if encoding == "base64":
            return base64.b64decode(value, validate=True)
        if encoding == "base58":
            return base58.b58decode(value)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"Attribute value is not valid {encoding}: {e}", field="value", value=value) from e
    return value.encode("utf-8")


def _validity(seconds: int) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
        raise InvalidInputError("Validity must be a non-negative number of seconds", field="validity", value=seconds)
    return seconds


# =============================================================================
# MUTATIONS
# =============================================================================


@dataclass(frozen=True)
class Mutation:
    """The canonically encoded fields of one registry mutation.

    Attributes:
        kind: Which registry function this is.
        identity: Checksum address of the identity being mutated.
        args: Encoded fields after the identity, in contract order.
    """

    kind: MutationKind
    identity: str
    args: tuple[Any, ...]

    @property
    def field_types(self) -> tuple[str, ...]:
        return _FIELD_TYPES[self.kind]

    def arguments(self) -> dict[str, Any]:
        """Named fields, with bytes32 names decoded, for logging."""
        named = dict(zip(_FIELD_NAMES[self.kind], self.args, strict=True))
        for key in ("delegate_type", "name"):
            if key in named:
                named[key] = decode_bytes32(named[key])
        return named

    def packed(self, registry: str, nonce: int) -> bytes:
        """The exact preimage the registry hashes."""
        return encode_packed(
            [*_PREFIX_TYPES, *self.field_types],
            [*MESSAGE_PREFIX, normalize_address(registry, "registry"), nonce, self.identity, self.kind.value, *self.args],
        )

    def digest(self, registry: str, nonce: int) -> bytes:
        """keccak256 of :meth:`packed`; a pure function of its inputs."""
        return keccak(self.packed(registry, nonce))

    def nonce_key(self, owner: str, legacy_nonce: bool = True) -> str:
        """Address whose nonce the registry puts in this mutation's digest.

        The deployed registry hashes attribute changes with the identity's
        own nonce and everything else with the current owner's.
        """
        if legacy_nonce and self.kind.is_attribute:
            return self.identity
        return owner


def change_owner(identity: str, new_owner: str) -> Mutation:
    return Mutation(
        MutationKind.CHANGE_OWNER,
        normalize_address(identity, "identity"),
        (normalize_address(new_owner, "new_owner"),),
    )


def add_delegate(identity: str, delegate_type: str | DelegateType, delegate: str, validity: int) -> Mutation:
    return Mutation(
        MutationKind.ADD_DELEGATE,
        normalize_address(identity, "identity"),
        (
            encode_bytes32(DelegateType.parse(delegate_type).value, "delegate_type"),
            normalize_address(delegate, "delegate"),
            _validity(validity),
        ),
    )


def revoke_delegate(identity: str, delegate_type: str | DelegateType, delegate: str) -> Mutation:
    return Mutation(
        MutationKind.REVOKE_DELEGATE,
        normalize_address(identity, "identity"),
        (
            encode_bytes32(DelegateType.parse(delegate_type).value, "delegate_type"),
            normalize_address(delegate, "delegate"),
        ),
    )


def _attribute_fields(name: str, value: str | bytes, max_length: int) -> tuple[bytes, bytes]:
    encoded = encode_attribute_value(name, value)
    if len(encoded) > max_length:
        raise InvalidInputError(
            f"Attribute value is {len(encoded)} bytes, maximum is {max_length}",
            field="value",
        )
    return encode_bytes32(name, "name"), encoded


def set_attribute(
    identity: str,
    name: str,
    value: str | bytes,
    validity: int,
    max_length: int = DEFAULT_MAX_ATTRIBUTE_LENGTH,
) -> Mutation:
    name32, encoded = _attribute_fields(name, value, max_length)
    return Mutation(
        MutationKind.SET_ATTRIBUTE,
        normalize_address(identity, "identity"),
        (name32, encoded, _validity(validity)),
    )


def revoke_attribute(
    identity: str,
    name: str,
    value: str | bytes,
    max_length: int = DEFAULT_MAX_ATTRIBUTE_LENGTH,
) -> Mutation:
    name32, encoded = _attribute_fields(name, value, max_length)
    return Mutation(
        MutationKind.REVOKE_ATTRIBUTE,
        normalize_address(identity, "identity"),
        (name32, encoded),
    )


# =============================================================================
# HASH BUILDER
# =============================================================================


class HashBuilder:
    """Builds the digest the registry will require a signature over.

    Stateless apart from its configuration: the nonce is fetched from the
    provider on every call and never cached.

    Args:
        provider: Registry read access (owner and nonce lookups).
        registry_address: Registry contract address; defaults to ``provider.address``.
        legacy_nonce: Use the identity's nonce for attribute mutations.
        max_attribute_length: Largest attribute value accepted, in bytes.
    """

    def __init__(
        self,
        provider: RegistryProvider,
        registry_address: str | None = None,
        legacy_nonce: bool = True,
        max_attribute_length: int = DEFAULT_MAX_ATTRIBUTE_LENGTH,
    ) -> None:
        self._provider = provider
        self.registry_address = normalize_address(registry_address or provider.address, "registry")
        self.legacy_nonce = legacy_nonce
        self.max_attribute_length = max_attribute_length

    async def current_nonce(self, mutation: Mutation) -> int:
        """Fetch the nonce the registry will use for *mutation* right now."""
        if self.legacy_nonce and mutation.kind.is_attribute:
            key = mutation.identity
        else:
            key = await self._provider.get_owner(mutation.identity)
        return await self._provider.get_nonce(key)

    async def digest(self, mutation: Mutation) -> bytes:
        nonce = await self.current_nonce(mutation)
        digest = mutation.digest(self.registry_address, nonce)
        logger.debug(f"{mutation.kind.value} digest for {mutation.identity} at nonce {nonce}: 0x{digest.hex()}")
        return digest

    async def build_change_owner_hash(self, identity: str, new_owner: str) -> bytes:
        return await self.digest(change_owner(identity, new_owner))

    async def build_add_delegate_hash(
        self,
        identity: str,
        delegate_type: str | DelegateType,
        delegate: str,
        validity: int,
    ) -> bytes:
        return await self.digest(add_delegate(identity, delegate_type, delegate, validity))

    async def build_revoke_delegate_hash(
        self,
        identity: str,
        delegate_type: str | DelegateType,
        delegate: str,
    ) -> bytes:
        return await self.digest(revoke_delegate(identity, delegate_type, delegate))

    async def build_set_attribute_hash(self, identity: str, name: str, value: str | bytes, validity: int) -> bytes:
        return await self.digest(set_attribute(identity, name, value, validity, self.max_attribute_length))

    async def build_revoke_attribute_hash(self, identity: str, name: str, value: str | bytes) -> bytes:
        return await self.digest(revoke_attribute(identity, name, value, self.max_attribute_length))
