"""Entry expansion: installments, recurrences and group linkage."""

from ledger_engine.expansion.errors import (
    ExpansionError,
    ExpansionValidationError,
    GatewayUnavailable,
    PartialWriteFailure,
)
from ledger_engine.expansion.installments import InstallmentSplitter, allocate
from ledger_engine.expansion.linkage import LinkageManager
from ledger_engine.expansion.recurrence import RecurrenceExpander

__all__ = [
    "ExpansionError",
    "ExpansionValidationError",
    "GatewayUnavailable",
    "InstallmentSplitter",
    "LinkageManager",
    "PartialWriteFailure",
    "RecurrenceExpander",
    "allocate",
]
