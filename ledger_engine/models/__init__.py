"""
Data Models Package

This package contains all Pydantic models used by the Ledger Engine.
All data flowing through the engine must conform to these schemas.
"""

from ledger_engine.models.entry import (
    CandidateEntry,
    EntryKind,
    ExpansionIntent,
    ExpansionPath,
    Frequency,
    InstallmentExpansion,
    InstallmentPlan,
    LedgerEntry,
    NoExpansion,
    RecurrenceExpansion,
    RecurrenceRule,
    ValidationIssue,
    ValidationResult,
)
from ledger_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entry models
    "CandidateEntry",
    "EntryKind",
    "ExpansionIntent",
    "ExpansionPath",
    "Frequency",
    "InstallmentExpansion",
    "InstallmentPlan",
    "LedgerEntry",
    "NoExpansion",
    "RecurrenceExpansion",
    "RecurrenceRule",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
