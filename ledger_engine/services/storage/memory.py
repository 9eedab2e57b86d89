"""
In-Memory Storage Implementation

Keeps entries in a dict keyed by id, in insertion order. Used by the
test suite and for running the engine without a hosted backend.
Like the hosted store it offers no transaction across writes.
"""

import asyncio
from typing import Optional
from uuid import UUID, uuid4

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.entry import LedgerEntry
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    LedgerGateway,
    NotFoundError,
)


class InMemoryLedgerGateway(LedgerGateway):
    """Dict-backed ledger gateway."""

    def __init__(self):
        self._entries: dict[UUID, LedgerEntry] = {}
        self._lock = asyncio.Lock()
        self.insert_one_calls = 0
        self.insert_many_calls = 0

    @property
    def entries(self) -> list[LedgerEntry]:
        return list(self._entries.values())

    def _assign_id(self, entry: LedgerEntry) -> LedgerEntry:
        return entry.model_copy(update={"id": entry.id or uuid4()})

    async def insert_one(self, entry: LedgerEntry) -> LedgerEntry:
        async with self._lock:
            self.insert_one_calls += 1
            persisted = self._assign_id(entry)
            self._entries[persisted.id] = persisted
            return persisted

    async def insert_many(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        async with self._lock:
            self.insert_many_calls += 1
            persisted = [self._assign_id(entry) for entry in entries]
            for entry in persisted:
                self._entries[entry.id] = entry
            return persisted

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        return self._entries.get(entry_id)

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        async with self._lock:
            if entry.id not in self._entries:
                raise NotFoundError(f"Entry not found: {entry.id}")
            self._entries[entry.id] = entry
            return entry

    async def delete_entry(self, entry_id: UUID) -> bool:
        async with self._lock:
            return self._entries.pop(entry_id, None) is not None

    async def find_by_group(self, group_id: UUID) -> list[LedgerEntry]:
        return [
            entry for entry in self._entries.values()
            if entry.id == group_id or entry.parent_ref == group_id
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events
