"""Services package."""

from ledger_engine.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerGateway,
    InMemoryAuditStorage,
    InMemoryLedgerGateway,
    LedgerGateway,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerGateway",
    "InMemoryAuditStorage",
    "InMemoryLedgerGateway",
    "LedgerGateway",
    "NotFoundError",
    "StorageError",
]
