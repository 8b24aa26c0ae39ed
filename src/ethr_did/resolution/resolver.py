# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Event-log DID resolution.

Resolution reads the identity's full registry history from an
:class:`~ethr_did.registry.base.EventSource`, folds it into a
:class:`~ethr_did.resolution.ledger.DelegateLedger` and renders the document
as of the source's current block timestamp. Nothing is cached; each call
sees the latest state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from ethr_did.core.exceptions import ConfigurationError, UnsupportedNetworkError
from ethr_did.identity.models import NULL_ADDRESS, parse_did
from ethr_did.identity.networks import resolve_network
from ethr_did.registry.base import EventSource
from ethr_did.resolution.document import build_document
from ethr_did.resolution.ledger import DelegateLedger

logger = logging.getLogger(__name__)

DID_JSON_CONTENT_TYPE = "application/did+ld+json"


@dataclass
class DIDResolution:
    """Result of resolving a DID.

    Attributes:
        did_document: The DID document.
        did_document_metadata: ``versionId``/``updated`` of the latest change and
            ``deactivated`` when the owner was set to the null address.
        did_resolution_metadata: Content type of the document.
    """

    did_document: dict[str, Any]
    did_document_metadata: dict[str, Any] = field(default_factory=dict)
    did_resolution_metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "didDocument": self.did_document,
            "didDocumentMetadata": self.did_document_metadata,
            "didResolutionMetadata": self.did_resolution_metadata,
        }


@runtime_checkable
class Resolver(Protocol):
    """Anything that can turn a DID into a :class:`DIDResolution`."""

    async def resolve(self, did: str) -> DIDResolution: ...


class EventLogResolver:
    """Resolves did:ethr DIDs on one network from its registry event log.

    Args:
        source: Event history of the registry.
        chain: Network name or chain id the source belongs to.
    """

    def __init__(self, source: EventSource, chain: str | int | None = None) -> None:
        self._source = source
        self.network = resolve_network(chain)

    async def resolve(self, did: str) -> DIDResolution:
        """Resolve *did* into its current document.

        Raises:
            InvalidInputError: If *did* is not a did:ethr DID.
            UnsupportedNetworkError: If the DID names a different or unknown network.
        """
        try:
            identity = parse_did(did)
        except ConfigurationError as e:
            raise UnsupportedNetworkError(str(e.details.get("chain"))) from e
        if identity.chain_id != self.network.chain_id:
            raise UnsupportedNetworkError(identity.network.name or "mainnet")

        events = await self._source.get_events(identity.address)
        now = await self._source.current_timestamp()
        ledger = DelegateLedger.from_events(events)
        owner = ledger.owner or identity.address

        doc_id = did.split("#", 1)[0]
        document = build_document(identity, owner, ledger, now, did=doc_id)

        metadata: dict[str, Any] = {}
        if events:
            latest = events[-1]
            metadata["versionId"] = str(latest.block_number)
            metadata["updated"] = datetime.fromtimestamp(latest.timestamp, tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        if owner.lower() == NULL_ADDRESS:
            metadata["deactivated"] = True

        logger.debug(f"Resolved {doc_id} from {len(events)} events at {now}")
        return DIDResolution(
            did_document=document,
            did_document_metadata=metadata,
            did_resolution_metadata={"contentType": DID_JSON_CONTENT_TYPE},
        )
