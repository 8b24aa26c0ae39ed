# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""In-memory identity registry.

Behaves like the ERC-1056 contract for the purposes of this library:

- owners default to the identity itself
- direct calls must come from the current owner (``bad_actor`` otherwise)
- signed calls recompute the digest at the current nonce and recover the
  signer; a signature that only matches an earlier nonce is reported as
  :class:`StaleNonceError`, anything else as :class:`SignatureMismatchError`
- every accepted mutation bumps the acting owner's nonce and is appended to
  an event log stamped with the (injectable) clock
- a signed attribute change hashed with the identity's nonce also consumes
  that nonce, so the signature cannot be replayed after an owner change

Suitable for tests and local demos; persistent deployments use
:class:`~ethr_did.registry.web3.Web3Registry`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from eth_utils import encode_hex, keccak

from ethr_did.core.config import DEFAULT_REGISTRY_ADDRESS
from ethr_did.core.exceptions import (
    MalformedSignatureError,
    NotOwnerError,
    SignatureMismatchError,
    StaleNonceError,
)
from ethr_did.identity.hashing import Mutation, MutationKind, decode_bytes32
from ethr_did.identity.keys import Signature, recover_address
from ethr_did.identity.models import normalize_address
from ethr_did.registry.base import (
    AttributeChanged,
    DelegateChanged,
    DirectCall,
    OwnerChanged,
    RegistryEvent,
    SignedPayload,
)

logger = logging.getLogger(__name__)


class InMemoryRegistry:
    """Simple in-memory implementation of the registry collaborators.

    Implements both :class:`~ethr_did.registry.base.RegistryProvider` and
    :class:`~ethr_did.registry.base.EventSource`.

    Args:
        address: Address the registry pretends to be deployed at.
        clock: Returns the current time in seconds; tests pass a fake.
        legacy_nonce: Hash attribute mutations with the identity's nonce, like
            the deployed contract.
    """

    def __init__(
        self,
        address: str = DEFAULT_REGISTRY_ADDRESS,
        clock: Callable[[], float] = time.time,
        legacy_nonce: bool = True,
    ) -> None:
        self._address = normalize_address(address, "registry")
        self._clock = clock
        self.legacy_nonce = legacy_nonce
        self._owners: dict[str, str] = {}
        self._nonces: dict[str, int] = {}
        self._delegates: dict[tuple[str, str, str], int] = {}
        self._events: list[RegistryEvent] = []
        self._block_number = 0
        self._last_timestamp = 0

    @property
    def address(self) -> str:
        return self._address

    # -- reads --------------------------------------------------------------

    async def get_owner(self, identity: str) -> str:
        return self._owner_of(normalize_address(identity, "identity"))

    async def get_nonce(self, address: str) -> int:
        return self._nonces.get(normalize_address(address), 0)

    async def valid_delegate(self, identity: str, delegate_type: str, delegate: str) -> bool:
        """Mirror of the contract's ``validDelegate`` view."""
        key = (normalize_address(identity, "identity"), delegate_type, normalize_address(delegate, "delegate"))
        return self._delegates.get(key, 0) > self._now()

    async def get_events(self, identity: str) -> list[RegistryEvent]:
        identity = normalize_address(identity, "identity")
        return [e for e in self._events if e.identity == identity]

    async def current_timestamp(self) -> int:
        return self._now()

    # -- writes -------------------------------------------------------------

    async def send_direct(self, call: DirectCall, sender: str) -> str:
        mutation = call.mutation
        owner = self._owner_of(mutation.identity)
        if normalize_address(sender, "sender") != owner:
            raise NotOwnerError(mutation.identity, sender)
        return self._apply(mutation, actor=owner)

    async def send_signed(self, payload: SignedPayload, sender: str) -> str:
        mutation = payload.mutation
        owner = self._owner_of(mutation.identity)
        nonce_key = mutation.nonce_key(owner, self.legacy_nonce)
        nonce = self._nonces.get(nonce_key, 0)

        if self._signer_at(mutation, payload.signature, nonce) != owner:
            for earlier in range(nonce - 1, -1, -1):
                if self._signer_at(mutation, payload.signature, earlier) == owner:
                    raise StaleNonceError(
                        f"{payload.function} for {mutation.identity} was signed at nonce {earlier}, current is {nonce}",
                        expected_nonce=nonce,
                        signed_nonce=earlier,
                    )
            raise SignatureMismatchError(
                f"bad_signature: {payload.function} for {mutation.identity} is not signed by the owner",
                {"identity": mutation.identity, "owner": owner},
            )

        logger.debug(f"Relayed {payload.function} for {mutation.identity} from {sender}")
        tx_hash = self._apply(mutation, actor=owner)
        if nonce_key != owner:
            self._nonces[nonce_key] = nonce + 1
        return tx_hash

    # -- internals ----------------------------------------------------------

    def _owner_of(self, identity: str) -> str:
        return self._owners.get(identity, identity)

    def _now(self) -> int:
        # Block timestamps never go backwards
        self._last_timestamp = max(self._last_timestamp, int(self._clock()))
        return self._last_timestamp

    def _signer_at(self, mutation: Mutation, signature: Signature, nonce: int) -> str | None:
        try:
            return recover_address(mutation.digest(self._address, nonce), signature)
        except MalformedSignatureError:
            return None

    def _apply(self, mutation: Mutation, actor: str) -> str:
        now = self._now()
        self._block_number += 1
        nonce = self._nonces.get(actor, 0)
        self._nonces[actor] = nonce + 1
        tx_hash = encode_hex(keccak(self._block_number.to_bytes(32, "big") + mutation.packed(self._address, nonce)))

        common = {
            "identity": mutation.identity,
            "timestamp": now,
            "block_number": self._block_number,
            "tx_hash": tx_hash,
        }
        kind = mutation.kind
        event: RegistryEvent
        if kind is MutationKind.CHANGE_OWNER:
            (new_owner,) = mutation.args
            self._owners[mutation.identity] = new_owner
            event = OwnerChanged(**common, owner=new_owner)
        elif kind in (MutationKind.ADD_DELEGATE, MutationKind.REVOKE_DELEGATE):
            delegate_type, delegate = decode_bytes32(mutation.args[0]), mutation.args[1]
            valid_to = now + mutation.args[2] if kind is MutationKind.ADD_DELEGATE else now
            self._delegates[(mutation.identity, delegate_type, delegate)] = valid_to
            event = DelegateChanged(**common, delegate_type=delegate_type, delegate=delegate, valid_to=valid_to)
        else:
            name, value = decode_bytes32(mutation.args[0]), mutation.args[1]
            valid_to = now + mutation.args[2] if kind is MutationKind.SET_ATTRIBUTE else now
            event = AttributeChanged(**common, name=name, value=value, valid_to=valid_to)

        self._events.append(event)
        logger.debug(f"Block {self._block_number}: {kind.value} for {mutation.identity} ({tx_hash})")
        return tx_hash
