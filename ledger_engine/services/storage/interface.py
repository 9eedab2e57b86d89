"""
Abstract Storage Interface

DESIGN DECISION: The expansion engine never talks to a database client
directly. It is handed a LedgerGateway. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the expansion algorithm free of ambient I/O

The gateway is an ordered-write, no-transaction append service.
A group is written as one insert_one followed by one insert_many; there
is no multi-row transaction between the two.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditEvent
from ledger_engine.models.entry import LedgerEntry


class LedgerGateway(ABC):
    """
    Abstract interface for ledger entry storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. IDs are assigned by the gateway.
    """

    @abstractmethod
    async def insert_one(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Persist a single entry.

        Args:
            entry: Entry without an id

        Returns:
            The persisted entry with its id assigned

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def insert_many(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        """
        Persist a batch of entries in order.

        Returns:
            The persisted entries, in the same order, with ids assigned

        Raises:
            StorageError: If the batch write fails
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """
        Retrieve an entry by its ID.

        Returns:
            The entry if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Replace a stored entry with `entry` (matched by id).

        Raises:
            StorageError: If update fails
            NotFoundError: If entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """
        Delete an entry by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def find_by_group(self, group_id: UUID) -> list[LedgerEntry]:
        """
        All entries whose id or parent_ref equals `group_id`.

        Returns:
            Matching entries in storage order
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one submission).

        Returns:
            List of related events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
