# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Delegate ledger: folding registry history into indexed, expiring records.

The ledger is derived state. Nothing here is persisted; it is recomputed from
the ordered event log on every resolution.

Indexing rules:

- A delegate record is keyed by ``(delegate_type, delegate)``; an attribute
  record by ``(name, value)``.
- An event whose ``valid_to`` is after its block time is an *add*. If a
  record with that key exists and the event happens before the record's
  granted expiry (the latest expiry any add gave it), the record keeps its
  index and takes the new ``valid_to``. Otherwise a new record with the next
  index is created.
- An event whose ``valid_to`` is at or before its block time is a
  *revocation*: the record's ``valid_to`` drops to that value. The record,
  and its history, stay in the ledger.
- Delegates and ``did/pub/...`` attributes share the key index space
  (``#delegate-N``); ``did/svc/...`` attributes have their own
  (``#service-N``). Attributes matching neither are ignored.
- Indices start at 1, only ever increase, and are never reassigned.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field

from ethr_did.identity.hashing import ATTRIBUTE_NAME_RE
from ethr_did.registry.base import AttributeChanged, DelegateChanged, OwnerChanged, RegistryEvent


class IndexSpace(enum.StrEnum):
    KEY = "delegate"
    SERVICE = "service"


@dataclass
class ValidityWindow:
    """One add or revoke applied to a record, kept for inspection."""

    timestamp: int
    valid_to: int


@dataclass
class LedgerRecord:
    """A logical delegate or attribute record.

    Attributes:
        index: Position in its index space (1-based).
        space: Which index space the record lives in.
        event: The most recent event that added or extended the record.
        valid_to: Current expiry; lowered to the block time on revocation.
        granted_until: Largest expiry granted by an add.
        history: Every add/revoke applied to the record, in order.
    """

    index: int
    space: IndexSpace
    event: DelegateChanged | AttributeChanged
    valid_to: int
    granted_until: int
    history: list[ValidityWindow] = field(default_factory=list)

    @property
    def fragment(self) -> str:
        return f"{self.space.value}-{self.index}"

    def is_active(self, now: int) -> bool:
        return self.valid_to > now


@dataclass
class DelegateLedger:
    """Ordered fold of an identity's registry events.

    Use :meth:`from_events`; records are available through :meth:`active`
    and, including expired and revoked ones, :attr:`records`.
    """

    owner: str | None = None
    records: list[LedgerRecord] = field(default_factory=list)
    _current: dict[tuple, LedgerRecord] = field(default_factory=dict, repr=False)
    _counters: dict[IndexSpace, int] = field(default_factory=lambda: {s: 0 for s in IndexSpace}, repr=False)

    @classmethod
    def from_events(cls, events: Iterable[RegistryEvent]) -> DelegateLedger:
        ledger = cls()
        for event in events:
            ledger.apply(event)
        return ledger

    def apply(self, event: RegistryEvent) -> None:
        """Fold one event into the ledger. Events must arrive in emission order."""
        if isinstance(event, OwnerChanged):
            self.owner = event.owner
            return

        if isinstance(event, DelegateChanged):
            key: tuple = ("delegate", event.delegate_type, event.delegate)
            space = IndexSpace.KEY
        elif isinstance(event, AttributeChanged):
            match = ATTRIBUTE_NAME_RE.match(event.name)
            if not match or match.group(1) == "auth":
                return
            key = ("attribute", event.name, event.value)
            space = IndexSpace.SERVICE if match.group(1) == "svc" else IndexSpace.KEY
        else:
            return

        window = ValidityWindow(timestamp=event.timestamp, valid_to=event.valid_to)
        record = self._current.get(key)

        if event.valid_to <= event.timestamp:
            # Revocation: keep the record, close its window
            if record is not None:
                record.valid_to = event.valid_to
                record.history.append(window)
            return

        if record is not None and event.timestamp < record.granted_until:
            record.valid_to = event.valid_to
            record.granted_until = max(record.granted_until, event.valid_to)
            record.event = event
            record.history.append(window)
            return

        self._counters[space] += 1
        record = LedgerRecord(
            index=self._counters[space],
            space=space,
            event=event,
            valid_to=event.valid_to,
            granted_until=event.valid_to,
            history=[window],
        )
        self._current[key] = record
        self.records.append(record)

    def active(self, now: int, space: IndexSpace | None = None) -> list[LedgerRecord]:
        """Records with ``valid_to > now``, in index order."""
        found = [r for r in self.records if r.is_active(now) and (space is None or r.space is space)]
        return sorted(found, key=lambda r: (r.space.value, r.index))
