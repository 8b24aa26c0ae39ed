# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DID document construction from a folded delegate ledger.

Verification method ids:
- ``<did>#controller``      current owner, as a recoverable secp256k1 account
- ``<did>#controllerKey``   the public key in a public-key DID, while the
                            owner has not changed
- ``<did>#delegate-N``      delegates and ``did/pub/...`` attributes
- ``<did>#service-N``       ``did/svc/...`` attributes
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import base58

from ethr_did.identity.hashing import ATTRIBUTE_NAME_RE
from ethr_did.identity.models import NULL_ADDRESS, DelegateType, Identity
from ethr_did.registry.base import AttributeChanged, DelegateChanged
from ethr_did.resolution.ledger import DelegateLedger, IndexSpace, LedgerRecord

logger = logging.getLogger(__name__)

DID_CONTEXT = [
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/suites/secp256k1recovery-2020/v2",
]

RECOVERY_METHOD_TYPE = "EcdsaSecp256k1RecoveryMethod2020"
SECP256K1_KEY_TYPE = "EcdsaSecp256k1VerificationKey2019"

# Purpose segment of a did/pub attribute name -> legacy key type suffix
LEGACY_ATTRIBUTE_TYPES = {
    "sigAuth": "SignatureAuthentication2018",
    "veriKey": "VerificationKey2018",
    "enc": "KeyAgreementKey2019",
}

# Legacy "<algorithm><suffix>" names -> current verification method types
LEGACY_ALGORITHMS = {
    "Secp256k1VerificationKey2018": SECP256K1_KEY_TYPE,
    "Secp256k1SignatureAuthentication2018": SECP256K1_KEY_TYPE,
    "Ed25519SignatureAuthentication2018": "Ed25519VerificationKey2018",
    "Ed25519VerificationKey2018": "Ed25519VerificationKey2018",
    "X25519KeyAgreementKey2019": "X25519KeyAgreementKey2019",
}


def attribute_key_type(algorithm: str, purpose: str | None) -> str:
    """Map a ``did/pub/<algorithm>/<purpose>`` pair to a verification method type."""
    if not purpose:
        return LEGACY_ALGORITHMS.get(algorithm, algorithm)
    legacy = f"{algorithm}{LEGACY_ATTRIBUTE_TYPES.get(purpose, purpose)}"
    return LEGACY_ALGORITHMS.get(legacy, legacy)


def encode_key_value(value: bytes, encoding: str | None) -> tuple[str, str]:
    """Pick the ``publicKey*`` property and its rendering for an attribute value."""
    if encoding in (None, "hex"):
        return "publicKeyHex", value.hex()
    if encoding == "base64":
        return "publicKeyBase64", base64.b64encode(value).decode("ascii")
    if encoding == "base58":
        return "publicKeyBase58", base58.b58encode(value).decode("ascii")
    if encoding == "pem":
        return "publicKeyPem", value.decode("utf-8", errors="replace")
    return "value", value.hex()


def _service_endpoint(value: bytes) -> Any:
    text = value.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def _delegate_method(did: str, chain_id: int, record: LedgerRecord) -> dict[str, Any]:
    event = record.event
    assert isinstance(event, DelegateChanged)
    return {
        "id": f"{did}#{record.fragment}",
        "type": RECOVERY_METHOD_TYPE,
        "controller": did,
        "blockchainAccountId": f"eip155:{chain_id}:{event.delegate}",
    }


def _attribute_method(did: str, record: LedgerRecord) -> tuple[dict[str, Any], str | None]:
    event = record.event
    assert isinstance(event, AttributeChanged)
    match = ATTRIBUTE_NAME_RE.match(event.name)
    assert match is not None
    algorithm, purpose, encoding = match.group(2), match.group(4), match.group(6)
    prop, rendered = encode_key_value(event.value, encoding)
    method = {
        "id": f"{did}#{record.fragment}",
        "type": attribute_key_type(algorithm, purpose),
        "controller": did,
        prop: rendered,
    }
    return method, purpose


def deactivated_document(did: str) -> dict[str, Any]:
    """Document for an identity whose owner was set to the null address."""
    return {
        "@context": list(DID_CONTEXT),
        "id": did,
        "verificationMethod": [],
        "authentication": [],
        "assertionMethod": [],
    }


def build_document(
    identity: Identity,
    owner: str,
    ledger: DelegateLedger,
    now: int,
    did: str | None = None,
) -> dict[str, Any]:
    """Assemble the DID document for *identity* as of *now*.

    Args:
        identity: The identity being resolved.
        owner: Current owner address.
        ledger: Folded event history of the identity.
        now: Reference time for expiry, usually the latest block timestamp.
        did: Document id to use; defaults to ``identity.did``.

    Returns:
        The DID document as a JSON-compatible dict.
    """
    did = did or identity.did
    if owner.lower() == NULL_ADDRESS:
        return deactivated_document(did)

    controller_id = f"{did}#controller"
    verification_methods: list[dict[str, Any]] = [
        {
            "id": controller_id,
            "type": RECOVERY_METHOD_TYPE,
            "controller": did,
            "blockchainAccountId": f"eip155:{identity.chain_id}:{owner}",
        }
    ]
    authentication = [controller_id]
    assertion_method = [controller_id]

    if identity.public_key and owner.lower() == identity.address.lower():
        controller_key_id = f"{did}#controllerKey"
        verification_methods.append(
            {
                "id": controller_key_id,
                "type": SECP256K1_KEY_TYPE,
                "controller": did,
                "publicKeyHex": identity.public_key.removeprefix("0x"),
            }
        )
        authentication.append(controller_key_id)
        assertion_method.append(controller_key_id)

    key_agreement: list[str] = []
    for record in ledger.active(now, IndexSpace.KEY):
        if isinstance(record.event, DelegateChanged):
            method = _delegate_method(did, identity.chain_id, record)
            purpose: str | None = record.event.delegate_type
        else:
            method, purpose = _attribute_method(did, record)
        verification_methods.append(method)

        if purpose == DelegateType.SIG_AUTH:
            authentication.append(method["id"])
            assertion_method.append(method["id"])
        elif purpose == DelegateType.VERI_KEY:
            assertion_method.append(method["id"])
        elif purpose == "enc":
            key_agreement.append(method["id"])

    services = []
    for record in ledger.active(now, IndexSpace.SERVICE):
        event = record.event
        assert isinstance(event, AttributeChanged)
        match = ATTRIBUTE_NAME_RE.match(event.name)
        assert match is not None
        services.append(
            {
                "id": f"{did}#{record.fragment}",
                "type": match.group(2),
                "serviceEndpoint": _service_endpoint(event.value),
            }
        )

    document: dict[str, Any] = {
        "@context": list(DID_CONTEXT),
        "id": did,
        "verificationMethod": verification_methods,
        "authentication": authentication,
        "assertionMethod": assertion_method,
    }
    if key_agreement:
        document["keyAgreement"] = key_agreement
    if services:
        document["service"] = services

    logger.debug(f"Built document for {did}: {len(verification_methods)} methods, {len(services)} services")
    return document
