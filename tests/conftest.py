"""
Shared fixtures for the Ledger Engine tests.

No real backend is ever contacted: every test runs against the
in-memory gateway or one of the misbehaving gateways below.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.audit import AuditLogger
from ledger_engine.config import ExpansionSettings
from ledger_engine.models.entry import CandidateEntry
from ledger_engine.orchestrator import ExpansionOrchestrator
from ledger_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerGateway,
    StorageError,
)


class FailingFirstWriteGateway(InMemoryLedgerGateway):
    """Rejects every single-entry insert."""

    async def insert_one(self, entry):
        self.insert_one_calls += 1
        raise StorageError("backend unreachable")


class FlakyBatchGateway(InMemoryLedgerGateway):
    """Fails the first `failures` batch inserts, then behaves."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self._failures = failures

    async def insert_many(self, entries):
        if self._failures > 0:
            self._failures -= 1
            self.insert_many_calls += 1
            raise StorageError("batch rejected")
        return await super().insert_many(entries)


class SlowFirstWriteGateway(InMemoryLedgerGateway):
    """The single-entry insert hangs long enough to hit the gateway timeout."""

    async def insert_one(self, entry):
        self.insert_one_calls += 1
        await asyncio.sleep(5)
        return await super().insert_one(entry)


class SlowBatchGateway(InMemoryLedgerGateway):
    """Batch inserts hang long enough to hit the gateway timeout."""

    async def insert_many(self, entries):
        self.insert_many_calls += 1
        await asyncio.sleep(5)
        return await super().insert_many(entries)


@pytest.fixture
def settings() -> ExpansionSettings:
    return ExpansionSettings(
        max_installments=60,
        recurrence_lookahead=12,
        gateway_timeout_seconds=0.05,
        recurrence_marker=" (Recurring)",
        duplicate_marker=" (Copy)",
    )


@pytest.fixture
def gateway() -> InMemoryLedgerGateway:
    return InMemoryLedgerGateway()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def orchestrator(gateway, audit_storage, settings) -> ExpansionOrchestrator:
    return ExpansionOrchestrator(
        gateway=gateway,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
    )


@pytest.fixture
def sofa_purchase() -> CandidateEntry:
    """300.00 paid in three monthly installments."""
    return CandidateEntry(
        description="Sofa",
        amount=Decimal("300.00"),
        date=date(2024, 3, 15),
        category_ref="home",
        installments=3,
    )
