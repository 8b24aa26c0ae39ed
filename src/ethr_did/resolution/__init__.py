# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""DID resolution from the registry event log."""

from ethr_did.resolution.document import build_document
from ethr_did.resolution.ledger import DelegateLedger, IndexSpace, LedgerRecord
from ethr_did.resolution.resolver import DIDResolution, EventLogResolver, Resolver

__all__ = [
    "DIDResolution",
    "DelegateLedger",
    "EventLogResolver",
    "IndexSpace",
    "LedgerRecord",
    "Resolver",
    "build_document",
]
