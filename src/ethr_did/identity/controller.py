# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Identity controller: the caller-facing surface for one did:ethr identity.

Every registry mutation has two forms:

- direct: sent by the identity's current owner
- signed: the owner signs the digest from one of the ``create_*_hash``
  methods off-chain and a relayer (``tx_sender``) submits it with the
  signature attached

Both forms build the same :class:`~ethr_did.identity.hashing.Mutation`, so the
fields submitted are always the fields that were hashed. Nonce and owner are
read from the registry on every call; nothing is cached, and a signature made
against a nonce that has since moved on is rejected by the registry with
:class:`~ethr_did.core.exceptions.StaleNonceError`.
"""

from __future__ import annotations

import logging
from typing import Any

from ethr_did.core.config import IdentitySettings, get_config
from ethr_did.core.exceptions import ConfigurationError, NoSignerConfiguredError
from ethr_did.core.logging import correlation_context, mutation_logger
from ethr_did.identity import hashing
from ethr_did.identity.hashing import HashBuilder, Mutation
from ethr_did.identity.keys import KeyPair, LocalSigner, Signer, create_key_pair
from ethr_did.identity.models import DelegateType, Identity, normalize_address
from ethr_did.identity.signing import apply_signature
from ethr_did.registry.base import DirectCall, RegistryProvider
from ethr_did.resolution.resolver import Resolver
from ethr_did.tokens import JWTVerified, create_jwt, verify_jwt

logger = logging.getLogger(__name__)


class IdentityController:
    """Manages a did:ethr identity through a registry provider.

    Args:
        identifier: DID, address or compressed public key of the identity.
        provider: Registry read/write access.
        chain: Network name or chain id; a network in a DID takes precedence.
        registry_address: Registry contract address; defaults to the provider's.
        private_key: Hex private key used to sign JWTs.
        signer: External signer used to sign JWTs (instead of *private_key*).
        tx_sender: Relayer account submitting signed mutations.
        legacy_nonce: Hash attribute mutations with the identity's nonce.
        callback_url: Accepted as a JWT audience besides this DID.
        settings: Overrides the global settings.

    Raises:
        ConfigurationError: If both *private_key* and *signer* are given.
    """

    def __init__(
        self,
        identifier: str,
        provider: RegistryProvider,
        chain: str | int | None = None,
        registry_address: str | None = None,
        private_key: str | bytes | None = None,
        signer: Signer | None = None,
        tx_sender: str | None = None,
        legacy_nonce: bool | None = None,
        callback_url: str | None = None,
        settings: IdentitySettings | None = None,
    ) -> None:
        self.settings = settings or get_config()
        if private_key is not None and signer is not None:
            raise ConfigurationError("Pass either private_key or signer, not both")

        self.identity = Identity.from_identifier(identifier, chain if chain is not None else self.settings.chain)
        self.provider = provider
        self.hashes = HashBuilder(
            provider,
            registry_address=registry_address,
            legacy_nonce=self.settings.legacy_nonce if legacy_nonce is None else legacy_nonce,
            max_attribute_length=self.settings.max_attribute_length,
        )
        self.signer: Signer | None = LocalSigner(private_key) if private_key is not None else signer
        self.tx_sender = normalize_address(tx_sender, "tx_sender") if tx_sender else None
        self.callback_url = callback_url if callback_url is not None else self.settings.callback_url

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def did(self) -> str:
        return self.identity.did

    @property
    def registry_address(self) -> str:
        return self.hashes.registry_address

    def __repr__(self) -> str:
        return f"IdentityController(did={self.did})"

    @staticmethod
    def create_key_pair(chain: str | int | None = None) -> KeyPair:
        return create_key_pair(chain)

    async def lookup_owner(self) -> str:
        """Current owner of the identity according to the registry."""
        return await self.provider.get_owner(self.address)

    def _expiry(self, expires_in: int | None) -> int:
        return self.settings.default_expires_in if expires_in is None else expires_in

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def _send_direct(self, mutation: Mutation, gas_limit: int | None = None) -> str:
        call = DirectCall(mutation, gas_limit=gas_limit)
        with correlation_context():
            owner = await self.lookup_owner()
            mutation_logger.log_submission(call.function, mutation.identity, {"from": owner, **mutation.arguments()})
            try:
                tx_hash = await self.provider.send_direct(call, owner)
            except Exception:
                mutation_logger.log_result(call.function, None, success=False)
                raise
            mutation_logger.log_result(call.function, tx_hash, success=True)
            return tx_hash

    def _relayer(self) -> str:
        if self.tx_sender is None or self.tx_sender == self.address:
            raise ConfigurationError(
                "Signed mutations must be submitted by a tx_sender distinct from the identity",
                {"identity": self.address, "tx_sender": self.tx_sender},
            )
        return self.tx_sender

    async def _send_signed(self, mutation: Mutation, signature: Any, gas_limit: int | None = None) -> str:
        relayer = self._relayer()
        payload = apply_signature(mutation, signature, gas_limit=gas_limit)
        with correlation_context():
            mutation_logger.log_submission(
                payload.function,
                mutation.identity,
                {"relayer": relayer, "signature": payload.signature.to_dict(), **mutation.arguments()},
            )
            try:
                tx_hash = await self.provider.send_signed(payload, relayer)
            except Exception:
                mutation_logger.log_result(payload.function, None, success=False)
                raise
            mutation_logger.log_result(payload.function, tx_hash, success=True)
            return tx_hash

    # -------------------------------------------------------------------------
    # Owner
    # -------------------------------------------------------------------------

    async def change_owner(self, new_owner: str) -> str:
        return await self._send_direct(hashing.change_owner(self.address, new_owner))

    async def change_owner_signed(self, new_owner: str, signature: Any) -> str:
        return await self._send_signed(hashing.change_owner(self.address, new_owner), signature)

    async def create_change_owner_hash(self, new_owner: str) -> bytes:
        return await self.hashes.build_change_owner_hash(self.address, new_owner)

    # -------------------------------------------------------------------------
    # Delegates
    # -------------------------------------------------------------------------

    async def add_delegate(
        self,
        delegate: str,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
        expires_in: int | None = None,
    ) -> str:
        """Grant *delegate* authority of *delegate_type* for *expires_in* seconds."""
        mutation = hashing.add_delegate(self.address, delegate_type, delegate, self._expiry(expires_in))
        return await self._send_direct(mutation)

    async def add_delegate_signed(
        self,
        delegate: str,
        signature: Any,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
        expires_in: int | None = None,
    ) -> str:
        mutation = hashing.add_delegate(self.address, delegate_type, delegate, self._expiry(expires_in))
        return await self._send_signed(mutation, signature)

    async def create_add_delegate_hash(
        self,
        delegate: str,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
        expires_in: int | None = None,
    ) -> bytes:
        return await self.hashes.build_add_delegate_hash(
            self.address, delegate_type, delegate, self._expiry(expires_in)
        )

    async def revoke_delegate(self, delegate: str, delegate_type: str | DelegateType = DelegateType.VERI_KEY) -> str:
        return await self._send_direct(hashing.revoke_delegate(self.address, delegate_type, delegate))

    async def revoke_delegate_signed(
        self,
        delegate: str,
        signature: Any,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
    ) -> str:
        return await self._send_signed(hashing.revoke_delegate(self.address, delegate_type, delegate), signature)

    async def create_revoke_delegate_hash(
        self,
        delegate: str,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
    ) -> bytes:
        return await self.hashes.build_revoke_delegate_hash(self.address, delegate_type, delegate)

    async def create_signing_delegate(
        self,
        delegate_type: str | DelegateType = DelegateType.VERI_KEY,
        expires_in: int | None = None,
    ) -> tuple[KeyPair, str]:
        """Generate a key, register it as a delegate and sign future JWTs with it.

        Returns:
            The new key pair and the hash of the ``addDelegate`` transaction.
        """
        key_pair = create_key_pair(self.identity.network.name or None)
        tx_hash = await self.add_delegate(key_pair.address, delegate_type, expires_in)
        self.signer = key_pair.signer()
        logger.info(f"Signing delegate {key_pair.address} added to {self.did}")
        return key_pair, tx_hash

    # -------------------------------------------------------------------------
    # Attributes
    # -------------------------------------------------------------------------

    def _set_attribute(self, name: str, value: str | bytes, expires_in: int | None) -> Mutation:
        return hashing.set_attribute(
            self.address, name, value, self._expiry(expires_in), self.hashes.max_attribute_length
        )

    def _revoke_attribute(self, name: str, value: str | bytes) -> Mutation:
        return hashing.revoke_attribute(self.address, name, value, self.hashes.max_attribute_length)

    async def set_attribute(
        self,
        name: str,
        value: str | bytes,
        expires_in: int | None = None,
        gas_limit: int | None = None,
    ) -> str:
        """Publish attribute *name* = *value* for *expires_in* seconds.

        Names follow ``did/pub/<algorithm>/<purpose>/<encoding>`` for keys and
        ``did/svc/<type>`` for service endpoints.
        """
        return await self._send_direct(self._set_attribute(name, value, expires_in), gas_limit=gas_limit)

    async def set_attribute_signed(
        self,
        name: str,
        value: str | bytes,
        signature: Any,
        expires_in: int | None = None,
        gas_limit: int | None = None,
    ) -> str:
        return await self._send_signed(self._set_attribute(name, value, expires_in), signature, gas_limit=gas_limit)

    async def create_set_attribute_hash(self, name: str, value: str | bytes, expires_in: int | None = None) -> bytes:
        return await self.hashes.digest(self._set_attribute(name, value, expires_in))

    async def revoke_attribute(self, name: str, value: str | bytes, gas_limit: int | None = None) -> str:
        return await self._send_direct(self._revoke_attribute(name, value), gas_limit=gas_limit)

    async def revoke_attribute_signed(
        self,
        name: str,
        value: str | bytes,
        signature: Any,
        gas_limit: int | None = None,
    ) -> str:
        return await self._send_signed(self._revoke_attribute(name, value), signature, gas_limit=gas_limit)

    async def create_revoke_attribute_hash(self, name: str, value: str | bytes) -> bytes:
        return await self.hashes.digest(self._revoke_attribute(name, value))

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    async def sign_jwt(self, payload: dict[str, Any], expires_in: int | None = None) -> str:
        """Sign *payload* as this DID.

        Raises:
            NoSignerConfiguredError: If the controller has no signer.
        """
        if self.signer is None:
            raise NoSignerConfiguredError()
        return await create_jwt(payload, self.did, self.signer, expires_in=expires_in)

    async def verify_jwt(self, token: str, resolver: Resolver, audience: str | None = None) -> JWTVerified:
        """Verify *token*, accepting it only if addressed to this DID or the callback URL."""
        return await verify_jwt(
            token,
            resolver,
            audience=audience or self.did,
            callback_url=self.callback_url,
            leeway=self.settings.jwt_leeway_seconds,
        )
