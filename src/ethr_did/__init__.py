# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""ethr-did - client-side controller for did:ethr identities.

An identity is an Ethereum address registered in an ERC-1056 registry. Its
owner (and the delegates it appoints) change ownership, delegates and
attributes either directly or through meta-transactions a relayer submits,
and sign JWTs that anyone can verify against the identity's DID document.

Layout:
  identity/    key material, DID parsing, mutation hashing, the controller
  registry/    registry collaborator protocol, in-memory and web3 registries
  resolution/  event log -> delegate ledger -> DID document
  tokens       ES256K-R JWT signing and verification
  core/        configuration, logging and exceptions
"""

__version__ = "0.3.0"

from . import (
    core as core,
)
from .identity.controller import IdentityController
from .identity.keys import CallbackSigner, KeyPair, LocalSigner, Signature, create_key_pair
from .identity.models import DelegateType, Identity, parse_did
from .registry.memory import InMemoryRegistry
from .resolution.resolver import DIDResolution, EventLogResolver
from .tokens import JWTVerified, create_jwt, verify_jwt

__all__ = [
    "CallbackSigner",
    "DIDResolution",
    "DelegateType",
    "EventLogResolver",
    "Identity",
    "IdentityController",
    "InMemoryRegistry",
    "JWTVerified",
    "KeyPair",
    "LocalSigner",
    "Signature",
    "create_jwt",
    "create_key_pair",
    "parse_did",
    "verify_jwt",
]
