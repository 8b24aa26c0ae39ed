# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Registry collaborator interfaces.

The controller never talks to a chain directly. It hands a
:class:`DirectCall` or a :class:`SignedPayload` to a :class:`RegistryProvider`
and reads history through an :class:`EventSource`. Both wrap the same
:class:`~ethr_did.identity.hashing.Mutation`, so the arguments submitted are
always the fields the digest was computed over.

Implementations:
- :class:`~ethr_did.registry.memory.InMemoryRegistry` (tests, local demos)
- :class:`~ethr_did.registry.web3.Web3Registry` (JSON-RPC via ``AsyncWeb3``)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ethr_did.identity.hashing import Mutation
from ethr_did.identity.keys import Signature

# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectCall:
    """A mutation sent by the identity owner itself.

    Attributes:
        mutation: The encoded mutation.
        gas_limit: Optional gas limit override (large attributes need more).
    """

    mutation: Mutation
    gas_limit: int | None = None

    @property
    def function(self) -> str:
        return self.mutation.kind.value

    @property
    def args(self) -> tuple[Any, ...]:
        return (self.mutation.identity, *self.mutation.args)


@dataclass(frozen=True)
class SignedPayload:
    """A relayable mutation: the encoded fields plus the owner's signature.

    Attributes:
        mutation: The encoded mutation the signature covers.
        signature: Owner signature over the mutation digest.
        gas_limit: Optional gas limit override.
    """

    mutation: Mutation
    signature: Signature
    gas_limit: int | None = None

    @property
    def function(self) -> str:
        return f"{self.mutation.kind.value}Signed"

    @property
    def args(self) -> tuple[Any, ...]:
        sig = self.signature
        return (self.mutation.identity, sig.v, sig.r, sig.s, *self.mutation.args)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistryEvent:
    """Common fields of every registry event.

    Attributes:
        identity: Identity address the event belongs to.
        timestamp: Block timestamp (seconds).
        block_number: Block the event was emitted in.
        tx_hash: Transaction that emitted it.
    """

    identity: str
    timestamp: int
    block_number: int
    tx_hash: str


@dataclass(frozen=True)
class OwnerChanged(RegistryEvent):
    owner: str


@dataclass(frozen=True)
class DelegateChanged(RegistryEvent):
    delegate_type: str
    delegate: str
    valid_to: int


@dataclass(frozen=True)
class AttributeChanged(RegistryEvent):
    name: str
    value: bytes
    valid_to: int


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class RegistryProvider(Protocol):
    """Read/write access to the identity registry.

    Errors for network or chain failures propagate to the caller unchanged.
    """

    @property
    def address(self) -> str:
        """Address of the registry contract (part of every digest)."""
        ...

    async def get_owner(self, identity: str) -> str: ...

    async def get_nonce(self, address: str) -> int: ...

    async def send_signed(self, payload: SignedPayload, sender: str) -> str: ...

    async def send_direct(self, call: DirectCall, sender: str) -> str: ...


@runtime_checkable
class EventSource(Protocol):
    """Ordered access to an identity's registry history."""

    async def get_events(self, identity: str) -> list[RegistryEvent]:
        """Return the identity's events in emission order."""
        ...

    async def current_timestamp(self) -> int:
        """Return the latest block timestamp, the "now" used for expiry."""
        ...
