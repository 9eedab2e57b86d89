"""
Expansion Errors

Every failure of an expansion tells the caller how many entries were
committed before it happened, because that decides whether a retry
would create duplicates:

- ExpansionValidationError: nothing written
- GatewayUnavailable:       nothing written, safe to retry from scratch
- PartialWriteFailure:      the parent was written, the rest was not
"""

from typing import Optional

from ledger_engine.models.entry import LedgerEntry, ValidationIssue


class ExpansionError(Exception):
    """Base exception for entry expansion."""

    code = "expansion_error"
    committed_count = 0


class ExpansionValidationError(ExpansionError):
    """The submission was rejected before any write."""

    code = "validation_error"

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class GatewayUnavailable(ExpansionError):
    """The first write failed or timed out. Nothing was persisted."""

    code = "gateway_unavailable"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class PartialWriteFailure(ExpansionError):
    """
    The parent entry was written but the batch of remaining entries
    failed or timed out.

    The engine never deletes the orphaned parent. The caller decides
    whether to resume with `pending` or delete the group.
    """

    code = "partial_write"
    committed_count = 1

    def __init__(
        self,
        message: str,
        parent: LedgerEntry,
        pending: list[LedgerEntry],
        cause: Optional[BaseException] = None,
    ):
        self.parent = parent
        self.pending = pending
        self.cause = cause
        super().__init__(message)

    @property
    def group_id(self):
        return self.parent.id
