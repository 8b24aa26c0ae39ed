# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Packaging off-chain signatures into relayable registry submissions.

The applier never re-encodes anything: the :class:`SignedPayload` carries the
same :class:`~ethr_did.identity.hashing.Mutation` the digest was built from.
It also does not verify the signature; the registry does that when it
recomputes the digest at its current nonce.
"""

from __future__ import annotations

from typing import Any

from ethr_did.identity.hashing import Mutation
from ethr_did.identity.keys import Signature
from ethr_did.registry.base import SignedPayload


def apply_signature(mutation: Mutation, signature: Any, gas_limit: int | None = None) -> SignedPayload:
    """Wrap *mutation* and the owner's *signature* for submission by a relayer.

    Args:
        mutation: Encoded mutation the signature was produced over.
        signature: A :class:`Signature`, a ``{v, r, s}`` / ``{sigV, sigR, sigS}``
            mapping, or 65 raw bytes.
        gas_limit: Optional gas limit for the relayed transaction.

    Returns:
        The ``<mutation>Signed`` payload.

    Raises:
        MalformedSignatureError: If the signature is missing components or
            ``r``/``s`` are not 32 bytes wide.
    """
    return SignedPayload(mutation=mutation, signature=Signature.coerce(signature), gas_limit=gas_limit)
