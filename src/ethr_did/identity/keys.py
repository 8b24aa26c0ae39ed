# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Key material and signers for did:ethr identities.

A controller holds exactly one :class:`Signer`, chosen at construction time:
:class:`LocalSigner` for a raw secp256k1 private key, or
:class:`CallbackSigner` wrapping an external signing service (hardware
wallet, KMS, remote relayer). Both sign a 32-byte digest and return the
recoverable ``{v, r, s}`` form the registry's ``ecrecover`` expects.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex, encode_hex

from ethr_did.core.exceptions import MalformedSignatureError
from ethr_did.identity.networks import resolve_network

# =============================================================================
# SIGNATURES
# =============================================================================


@dataclass(frozen=True)
class Signature:
    """A secp256k1 signature split into its canonical components.

    Attributes:
        v: Recovery id in Ethereum form (27 or 28).
        r: 32-byte big-endian r value.
        s: 32-byte big-endian s value.
    """

    v: int
    r: bytes
    s: bytes

    @property
    def recovery(self) -> int:
        """Recovery id in {0, 1}."""
        return self.v - 27

    def to_bytes(self) -> bytes:
        """Serialize as ``r || s || recovery`` (65 bytes, the ES256K-R layout)."""
        return self.r + self.s + bytes([self.recovery])

    def to_dict(self) -> dict[str, Any]:
        return {"sigV": self.v, "sigR": encode_hex(self.r), "sigS": encode_hex(self.s)}

    @classmethod
    def from_bytes(cls, raw: bytes) -> Signature:
        """Parse a 65-byte ``r || s || v`` signature (v as 0/1 or 27/28)."""
        if len(raw) != 65:
            raise MalformedSignatureError(f"Expected a 65-byte signature, got {len(raw)} bytes")
        return cls.coerce({"v": raw[64], "r": raw[:32], "s": raw[32:64]})

    @classmethod
    def coerce(cls, value: Any) -> Signature:
        """Normalise the signature shapes callers hand us into a :class:`Signature`.

        Accepts a :class:`Signature`, a mapping with ``v/r/s`` or
        ``sigV/sigR/sigS`` keys (``r``/``s`` as bytes or 0x-hex), or 65 raw bytes.

        Raises:
            MalformedSignatureError: If a component is missing, ``v`` is not a
                valid recovery id, or ``r``/``s`` are not exactly 32 bytes.
        """
        if isinstance(value, Signature):
            v, r, s = value.v, value.r, value.s
        elif isinstance(value, (bytes, bytearray)):
            return cls.from_bytes(bytes(value))
        elif isinstance(value, Mapping):
            v = value.get("v", value.get("sigV"))
            r = value.get("r", value.get("sigR"))
            s = value.get("s", value.get("sigS"))
        else:
            raise MalformedSignatureError(f"Unsupported signature type: {type(value).__name__}")

        if v is None or r is None or s is None:
            raise MalformedSignatureError("Signature must provide v, r and s")
        if isinstance(v, bool) or not isinstance(v, int) or v not in (0, 1, 27, 28):
            raise MalformedSignatureError(f"Invalid recovery id v={v!r}", {"v": str(v)})

        return cls(v=v if v >= 27 else v + 27, r=_component(r, "r"), s=_component(s, "s"))


def _component(value: Any, name: str) -> bytes:
    if isinstance(value, str):
        try:
            value = decode_hex(value)
        except ValueError:
            raise MalformedSignatureError(f"Signature component {name} is not hex") from None
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise MalformedSignatureError(f"Signature component {name} must be exactly 32 bytes")
    return bytes(value)


def recover_address(digest: bytes, signature: Signature) -> str:
    """Return the checksum address that produced *signature* over *digest*.

    Raises:
        MalformedSignatureError: If no public key can be recovered.
    """
    return recover_public_key(digest, signature).to_checksum_address()


def recover_public_key(digest: bytes, signature: Signature) -> keys.PublicKey:
    """Like :func:`recover_address` but returns the full public key."""
    try:
        eth_sig = keys.Signature(
            vrs=(signature.recovery, int.from_bytes(signature.r, "big"), int.from_bytes(signature.s, "big"))
        )
        return eth_sig.recover_public_key_from_msg_hash(digest)
    except (BadSignature, ValidationError, ValueError) as e:
        raise MalformedSignatureError(f"Cannot recover signer: {e}") from e


# =============================================================================
# SIGNERS
# =============================================================================


@runtime_checkable
class Signer(Protocol):
    """Anything that can sign a 32-byte digest."""

    async def sign(self, digest: bytes) -> Signature: ...


class LocalSigner:
    """Signs with a secp256k1 private key held in memory."""

    def __init__(self, private_key: str | bytes) -> None:
        raw = decode_hex(private_key) if isinstance(private_key, str) else bytes(private_key)
        self._key = keys.PrivateKey(raw)

    @property
    def address(self) -> str:
        return self._key.public_key.to_checksum_address()

    @property
    def public_key(self) -> str:
        """Compressed public key as 0x-hex."""
        return encode_hex(self._key.public_key.to_compressed_bytes())

    async def sign(self, digest: bytes) -> Signature:
        return self.sign_digest(digest)

    def sign_digest(self, digest: bytes) -> Signature:
        """Synchronous signing, for callers outside an event loop."""
        sig = self._key.sign_msg_hash(digest)
        return Signature(v=sig.v + 27, r=sig.r.to_bytes(32, "big"), s=sig.s.to_bytes(32, "big"))

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"


SignFunction = Callable[[bytes], Awaitable[Any] | Any]


class CallbackSigner:
    """Delegates signing to an external service.

    The callback receives the digest and may return (or resolve to) a
    :class:`Signature`, a ``{v, r, s}`` mapping or 65 raw bytes.

    Args:
        sign_fn: Sync or async callable performing the signature.
        address: Address of the remote key, when known.
    """

    def __init__(self, sign_fn: SignFunction, address: str | None = None) -> None:
        self._sign_fn = sign_fn
        self.address = address

    async def sign(self, digest: bytes) -> Signature:
        result = self._sign_fn(digest)
        if inspect.isawaitable(result):
            result = await result
        return Signature.coerce(result)


# =============================================================================
# KEY PAIRS
# =============================================================================


@dataclass(frozen=True)
class KeyPair:
    """A freshly generated identity key pair.

    Attributes:
        address: Checksum address of the key.
        private_key: 0x-hex private key.
        public_key: 0x-hex compressed public key.
        identifier: DID identifier segment (the compressed public key).
        did: Full did:ethr DID for the key on the chosen network.
    """

    address: str
    private_key: str
    public_key: str
    identifier: str
    did: str

    def signer(self) -> LocalSigner:
        return LocalSigner(self.private_key)

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address}, did={self.did})"


def create_key_pair(chain: str | int | None = None) -> KeyPair:
    """Generate a random secp256k1 key pair and its DID on *chain*."""
    account = Account.create()
    raw = bytes(account.key)
    public_key = encode_hex(keys.PrivateKey(raw).public_key.to_compressed_bytes())
    network = resolve_network(chain)
    return KeyPair(
        address=account.address,
        private_key=encode_hex(raw),
        public_key=public_key,
        identifier=public_key,
        did=f"did:ethr:{network.did_segment}{public_key}",
    )
