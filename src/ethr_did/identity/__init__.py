# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""did:ethr identities: DIDs, keys and registry mutation hashing.

Key concepts:
- **Identity**: an address (optionally known by its public key) on a network.
- **Mutation**: the canonical encoding of one registry change; its digest is
  what the owner signs for a relayed submission.
- **HashBuilder**: fetches the current nonce and builds that digest.
- **IdentityController** (``ethr_did.identity.controller``): the operations a
  caller performs on one identity.
"""

from ethr_did.identity.networks import KNOWN_NETWORKS, Network, resolve_network
from ethr_did.identity.models import DelegateType, Identity, normalize_address, parse_did
from ethr_did.identity.keys import CallbackSigner, KeyPair, LocalSigner, Signature, Signer, create_key_pair
from ethr_did.identity.hashing import HashBuilder, Mutation, MutationKind
from ethr_did.identity.signing import apply_signature

__all__ = [
    "KNOWN_NETWORKS",
    "Network",
    "resolve_network",
    "DelegateType",
    "Identity",
    "normalize_address",
    "parse_did",
    "CallbackSigner",
    "KeyPair",
    "LocalSigner",
    "Signature",
    "Signer",
    "create_key_pair",
    "HashBuilder",
    "Mutation",
    "MutationKind",
    "apply_signature",
]
