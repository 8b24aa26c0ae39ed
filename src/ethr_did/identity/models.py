# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""did:ethr identity models.

DID formats:
- Address:    did:ethr[:<network>]:0x<40 hex>
- Public key: did:ethr[:<network>]:0x<66 hex compressed secp256k1 key>

Examples:
- did:ethr:0xb9c5714089478a327f09197987f16f9e5d936e8a
- did:ethr:dev:0x02b97c30de767f084ce3080168ee293053ba33b235d7116a3263d29f1450936b71
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from eth_keys import keys
from eth_utils import decode_hex, is_hex_address, to_checksum_address

from ethr_did.core.exceptions import InvalidInputError
from ethr_did.identity.networks import Network, resolve_network

DID_METHOD = "ethr"
DID_PREFIX = f"did:{DID_METHOD}:"

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

_PUBLIC_KEY_RE = re.compile(r"^0x0[23][0-9a-fA-F]{64}$")


class DelegateType(enum.StrEnum):
    """Delegate types recognised by the registry.

    ``veriKey`` grants assertion (JWT/VC signing) authority, ``sigAuth``
    additionally grants authentication.
    """

    VERI_KEY = "veriKey"
    SIG_AUTH = "sigAuth"

    @classmethod
    def parse(cls, value: str | DelegateType) -> DelegateType:
        """Return the member for *value*.

        Raises:
            InvalidInputError: If *value* is not a recognised delegate type.
        """
        try:
            return cls(value)
        except ValueError:
            raise InvalidInputError(
                f"Unrecognized delegate type: {value}", field="delegate_type", value=value
            ) from None


def normalize_address(address: str, field: str = "address") -> str:
    """Return the EIP-55 checksum form of *address*.

    Raises:
        InvalidInputError: If *address* is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not is_hex_address(address):
        raise InvalidInputError(f"Invalid address: {address}", field=field, value=address)
    return to_checksum_address(address)


def address_from_public_key(public_key: str | bytes) -> str:
    """Derive the checksum address of a compressed or uncompressed secp256k1 key."""
    raw = decode_hex(public_key) if isinstance(public_key, str) else public_key
    if len(raw) == 33:
        key = keys.PublicKey.from_compressed_bytes(raw)
    elif len(raw) == 65 and raw[0] == 4:
        key = keys.PublicKey(raw[1:])
    elif len(raw) == 64:
        key = keys.PublicKey(raw)
    else:
        raise InvalidInputError("Invalid secp256k1 public key", field="public_key", value=public_key)
    return key.to_checksum_address()


@dataclass(frozen=True)
class Identity:
    """An address-anchored identity on a given network.

    Attributes:
        address: Controller address; immutable, the key the registry indexes by.
        network: Network the identity's registry lives on.
        public_key: Compressed public key hex when the DID is in public-key form.
    """

    address: str
    network: Network
    public_key: str | None = None

    @property
    def identifier(self) -> str:
        """The last DID segment: the public key if known in that form, else the address."""
        return self.public_key or self.address

    @property
    def did(self) -> str:
        return f"{DID_PREFIX}{self.network.did_segment}{self.identifier}"

    @property
    def chain_id(self) -> int:
        return self.network.chain_id

    @property
    def blockchain_account_id(self) -> str:
        """CAIP-10 account id of the controller address."""
        return f"eip155:{self.chain_id}:{self.address}"

    def __str__(self) -> str:
        return self.did

    @classmethod
    def from_identifier(cls, identifier: str, chain: str | int | None = None) -> Identity:
        """Build an identity from a DID, an address or a compressed public key.

        A network embedded in a DID takes precedence over *chain*.

        Raises:
            InvalidInputError: If the identifier is neither form.
        """
        if identifier.startswith(DID_PREFIX):
            return parse_did(identifier)

        network = resolve_network(chain)
        if _PUBLIC_KEY_RE.match(identifier):
            return cls(
                address=address_from_public_key(identifier),
                network=network,
                public_key=identifier.lower(),
            )
        return cls(address=normalize_address(identifier, field="identifier"), network=network)


def parse_did(did: str) -> Identity:
    """Parse a did:ethr string.

    Raises:
        InvalidInputError: If the DID is not a did:ethr identifier.
    """
    if not did.startswith(DID_PREFIX):
        raise InvalidInputError(f"Invalid DID: must start with '{DID_PREFIX}'", field="did", value=did)

    # Strip fragment/query, then split off the identifier
    bare = re.split(r"[#?/]", did[len(DID_PREFIX):], maxsplit=1)[0]
    network_part, _, identifier = bare.rpartition(":")
    if not identifier:
        raise InvalidInputError("Invalid DID: missing identifier", field="did", value=did)

    return Identity.from_identifier(identifier, chain=network_part or None)
