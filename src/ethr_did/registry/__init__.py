# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Registry collaborators: the provider protocol and its implementations."""

from ethr_did.registry.base import (
    AttributeChanged,
    DelegateChanged,
    DirectCall,
    EventSource,
    OwnerChanged,
    RegistryEvent,
    RegistryProvider,
    SignedPayload,
)
from ethr_did.registry.memory import InMemoryRegistry

__all__ = [
    "AttributeChanged",
    "DelegateChanged",
    "DirectCall",
    "EventSource",
    "InMemoryRegistry",
    "OwnerChanged",
    "RegistryEvent",
    "RegistryProvider",
    "SignedPayload",
]
