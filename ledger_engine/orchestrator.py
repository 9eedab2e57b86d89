"""
Expansion Orchestrator for the Ledger Engine

This module ties together validation, expansion, linkage and storage
and defines the end-to-end flow for one submission:

    received -> classified -> {single | split | recurrence} write
             -> committed | failed

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written until the whole group has been planned
- The first entry is written alone to establish the group identity
- The remaining entries are written as one batch
- A failure between the two writes is reported, never rolled back

There is no multi-row transaction between the two writes. Until the
batch lands, a reader can see a parent without its children.
"""

import asyncio
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.audit import AuditLogger, create_correlation_id
from ledger_engine.config import ExpansionSettings, get_settings
from ledger_engine.expansion import (
    ExpansionError,
    ExpansionValidationError,
    GatewayUnavailable,
    InstallmentSplitter,
    LinkageManager,
    PartialWriteFailure,
    RecurrenceExpander,
)
from ledger_engine.models.entry import (
    CandidateEntry,
    ExpansionPath,
    InstallmentExpansion,
    LedgerEntry,
    RecurrenceExpansion,
    ValidationIssue,
    ValidationResult,
    with_suffix,
)
from ledger_engine.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerGateway,
    InMemoryLedgerGateway,
    LedgerGateway,
    NotFoundError,
)
from ledger_engine.validation import CandidateValidator


# Fields a caller may cascade across a whole group. Amounts and dates
# are per-entry and never recomputed.
CASCADE_FIELDS = frozenset({
    "category_ref",
    "kind",
    "observations",
    "payment_method",
    "tags",
})


class ExpansionState(str, Enum):
    """States of one submission's trip through the engine."""
    RECEIVED = "received"
    CLASSIFIED = "classified"
    SINGLE_WRITE = "single_write"
    SPLIT_WRITE = "split_write"
    RECURRENCE_WRITE = "recurrence_write"
    COMMITTED = "committed"
    FAILED = "failed"


WRITE_STATES = {
    ExpansionPath.SINGLE: ExpansionState.SINGLE_WRITE,
    ExpansionPath.SPLIT: ExpansionState.SPLIT_WRITE,
    ExpansionPath.RECURRENCE: ExpansionState.RECURRENCE_WRITE,
}


class ExpansionResult(BaseModel):
    """
    Outcome of one expansion.

    `entries` holds exactly what was committed: nothing after a
    validation error or an unavailable gateway, only the parent after a
    partial write, the whole group on success.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    correlation_id: UUID
    path: Optional[ExpansionPath] = None
    states: list[ExpansionState] = Field(default_factory=list)
    entries: list[LedgerEntry] = Field(default_factory=list)
    error: Optional[ExpansionError] = None
    validation: Optional[ValidationResult] = None

    @property
    def state(self) -> Optional[ExpansionState]:
        return self.states[-1] if self.states else None

    @property
    def ok(self) -> bool:
        return self.error is None and self.state == ExpansionState.COMMITTED

    @property
    def committed_count(self) -> int:
        return len(self.entries)

    @property
    def group_id(self) -> Optional[UUID]:
        return self.entries[0].id if self.entries else None

    def unwrap(self) -> list[LedgerEntry]:
        """Return the committed entries, or raise the error."""
        if self.error is not None:
            raise self.error
        return self.entries


def path_of(entry: LedgerEntry) -> ExpansionPath:
    """Expansion path that produced a persisted group parent."""
    if entry.installment_plan is not None:
        return ExpansionPath.SPLIT
    if entry.recurrence_rule is not None:
        return ExpansionPath.RECURRENCE
    return ExpansionPath.SINGLE


def _describe(error: BaseException, timeout: float) -> str:
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return f"timed out after {timeout}s"
    return str(error) or type(error).__name__


class ExpansionOrchestrator:
    """
    Orchestrates the expansion of one submitted entry.

    Flow:
    1. Validate   -> two-stage validation, rejects before any write
    2. Classify   -> single, split or recurrence (mutually exclusive)
    3. Plan       -> splitter or expander builds the ordered group
    4. Write #1   -> insert_one, the persisted id becomes the group id
    5. Link       -> stamp parent_ref on the remaining entries
    6. Write #2   -> insert_many for the remaining entries
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        splitter: Optional[InstallmentSplitter] = None,
        expander: Optional[RecurrenceExpander] = None,
        validator: Optional[CandidateValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[ExpansionSettings] = None,
    ):
        self._settings = settings or get_settings().expansion
        self._gateway = gateway
        self._splitter = splitter or InstallmentSplitter(self._settings.max_installments)
        self._expander = expander or RecurrenceExpander(
            lookahead=self._settings.recurrence_lookahead,
            marker=self._settings.recurrence_marker,
        )
        self._validator = validator or CandidateValidator(self._settings)
        self._linkage = LinkageManager(gateway)
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

    @property
    def linkage(self) -> LinkageManager:
        return self._linkage

    # -------------------------------------------------------------------------
    # Pure steps
    # -------------------------------------------------------------------------

    def classify(self, candidate: CandidateEntry) -> ExpansionPath:
        """
        Pick the single expansion path for a candidate.

        Raises:
            ExpansionValidationError: If installments and recurrence are both set.
        """
        return ExpansionPath(candidate.intent.path)

    def plan(
        self,
        payload: Union[CandidateEntry, dict[str, Any]],
    ) -> tuple[ExpansionPath, list[LedgerEntry]]:
        """
        Validate, classify and build the ordered, unpersisted group.

        No I/O. Form handlers can use this to preview a submission.

        Raises:
            ExpansionValidationError: If the submission is rejected.
        """
        candidate, validation = self._validator.validate(payload)
        _reject_invalid(validation)
        return self._build(candidate)

    def _build(self, candidate: CandidateEntry) -> tuple[ExpansionPath, list[LedgerEntry]]:
        intent = candidate.intent
        base = candidate.to_entry()

        if isinstance(intent, InstallmentExpansion):
            entries = self._splitter.split(base, intent.count)
        elif isinstance(intent, RecurrenceExpansion):
            entries = self._expander.expand(base, intent.rule)
        else:
            entries = [base]

        return ExpansionPath(intent.path), entries

    # -------------------------------------------------------------------------
    # Expansion
    # -------------------------------------------------------------------------

    async def expand(
        self,
        payload: Union[CandidateEntry, dict[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> ExpansionResult:
        """
        Expand and persist one submission.

        Errors are returned inside the result, never raised, so the
        caller always learns how many entries were committed.
        Call `unwrap()` on the result to raise instead.
        """
        correlation_id = correlation_id or create_correlation_id()
        log = self._logger.bind(correlation_id=str(correlation_id))
        result = ExpansionResult(correlation_id=correlation_id)

        self._advance(result, ExpansionState.RECEIVED, log)

        candidate, validation = self._validator.validate(payload)
        result.validation = validation

        if self._audit_logger and candidate is not None:
            await self._audit_logger.log_entry_received(
                description=candidate.description,
                amount=str(candidate.amount),
                correlation_id=correlation_id,
            )

        try:
            _reject_invalid(validation)
            path, planned = self._build(candidate)
        except ExpansionValidationError as e:
            result.error = e
            if validation.is_valid:
                # Rejected while building, e.g. a date past the calendar range
                result.validation = ValidationResult(
                    schema_valid=True,
                    rules_valid=False,
                    issues=validation.issues + e.issues,
                )
            self._advance(result, ExpansionState.FAILED, log, error=e.code)
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[i.model_dump() for i in e.issues],
                    correlation_id=correlation_id,
                )
            return result

        result.path = path
        self._advance(result, ExpansionState.CLASSIFIED, log, path=path.value)
        if self._audit_logger:
            await self._audit_logger.log_path_classified(
                path=path.value,
                planned_count=len(planned),
                correlation_id=correlation_id,
            )

        self._advance(result, WRITE_STATES[path], log, planned_count=len(planned))
        await self._write_group(result, planned, log)
        return result

    async def _write_group(
        self,
        result: ExpansionResult,
        planned: list[LedgerEntry],
        log,
    ) -> None:
        correlation_id = result.correlation_id
        timeout = self._settings.gateway_timeout_seconds

        # Write #1: establishes the group identity
        try:
            parent = await asyncio.wait_for(
                self._gateway.insert_one(planned[0]),
                timeout=timeout,
            )
        except Exception as e:
            message = _describe(e, timeout)
            result.error = GatewayUnavailable(f"First write failed: {message}", cause=e)
            self._advance(result, ExpansionState.FAILED, log, error=result.error.code)
            if self._audit_logger:
                await self._audit_logger.log_gateway_unavailable(
                    error_message=message,
                    correlation_id=correlation_id,
                )
            return

        result.entries = [parent]
        children = self._linkage.link(parent, planned[1:])

        if children:
            if self._audit_logger:
                await self._audit_logger.log_parent_written(
                    group_id=parent.id,
                    pending_count=len(children),
                    correlation_id=correlation_id,
                )
            await self._write_remainder(result, parent, children, log)
            return

        self._advance(result, ExpansionState.COMMITTED, log, group_id=str(parent.id))
        if self._audit_logger:
            await self._audit_logger.log_group_committed(
                group_id=parent.id,
                entry_count=1,
                correlation_id=correlation_id,
            )

    async def _write_remainder(
        self,
        result: ExpansionResult,
        parent: LedgerEntry,
        children: list[LedgerEntry],
        log,
    ) -> None:
        correlation_id = result.correlation_id
        timeout = self._settings.gateway_timeout_seconds

        # Write #2: no transaction with write #1
        try:
            written = await asyncio.wait_for(
                self._gateway.insert_many(children),
                timeout=timeout,
            )
        except Exception as e:
            message = _describe(e, timeout)
            result.error = PartialWriteFailure(
                f"Group {parent.id} partially written: {message}",
                parent=parent,
                pending=children,
                cause=e,
            )
            self._advance(
                result,
                ExpansionState.FAILED,
                log,
                error=result.error.code,
                group_id=str(parent.id),
                pending_count=len(children),
            )
            if self._audit_logger:
                await self._audit_logger.log_partial_write(
                    group_id=parent.id,
                    pending_count=len(children),
                    error_message=message,
                    correlation_id=correlation_id,
                )
            return

        result.entries = [parent, *written]
        self._advance(
            result,
            ExpansionState.COMMITTED,
            log,
            group_id=str(parent.id),
            entry_count=len(result.entries),
        )
        if self._audit_logger:
            await self._audit_logger.log_group_committed(
                group_id=parent.id,
                entry_count=len(result.entries),
                correlation_id=correlation_id,
            )

    def _advance(self, result: ExpansionResult, state: ExpansionState, log, **fields) -> None:
        result.states.append(state)
        if state == ExpansionState.FAILED:
            log.warning("expansion_state", state=state.value, **fields)
        else:
            log.info("expansion_state", state=state.value, **fields)

    # -------------------------------------------------------------------------
    # Caller-level group operations
    # -------------------------------------------------------------------------

    async def resume(
        self,
        failure: PartialWriteFailure,
        correlation_id: Optional[UUID] = None,
    ) -> ExpansionResult:
        """
        Retry the batch write of a partially written group.

        The parent is not written again. On success the result holds
        the whole group; on failure it carries a fresh PartialWriteFailure.
        """
        correlation_id = correlation_id or create_correlation_id()
        log = self._logger.bind(correlation_id=str(correlation_id))
        path = path_of(failure.parent)
        result = ExpansionResult(
            correlation_id=correlation_id,
            path=path,
            entries=[failure.parent],
        )

        self._advance(result, ExpansionState.RECEIVED, log, resumed_group=str(failure.group_id))
        self._advance(result, ExpansionState.CLASSIFIED, log, path=path.value)
        self._advance(result, WRITE_STATES[path], log, pending_count=len(failure.pending))

        await self._write_remainder(result, failure.parent, failure.pending, log)

        if result.ok and self._audit_logger:
            await self._audit_logger.log_remainder_resumed(
                group_id=failure.group_id,
                entry_count=len(failure.pending),
                correlation_id=correlation_id,
            )
        return result

    async def delete_group(
        self,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete every entry of a group, children first and parent last.

        Returns:
            Number of entries deleted
        """
        correlation_id = correlation_id or create_correlation_id()
        members = await self._linkage.find_group(group_id)

        deleted = 0
        for entry in reversed(members):
            if await self._gateway.delete_entry(entry.id):
                deleted += 1

        self._logger.info(
            "group_deleted",
            group_id=str(group_id),
            entry_count=deleted,
            correlation_id=str(correlation_id),
        )
        if self._audit_logger:
            await self._audit_logger.log_group_deleted(
                group_id=group_id,
                entry_count=deleted,
                correlation_id=correlation_id,
            )
        return deleted

    async def update_group(
        self,
        group_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        """
        Apply the same change to every entry of a group.

        Only shared fields can be cascaded (see CASCADE_FIELDS).
        Amounts, dates and descriptions stay per entry.

        Raises:
            ExpansionValidationError: If a field can't be cascaded.
            NotFoundError: If the group has no entries.
        """
        rejected = sorted(set(changes) - CASCADE_FIELDS)
        if rejected:
            raise ExpansionValidationError(
                f"Fields cannot be changed across a group: {', '.join(rejected)}",
                issues=[
                    ValidationIssue(
                        field=name,
                        issue_type="not_cascadable",
                        message=f"{name} is set per entry and can't be changed for a whole group",
                        severity="error",
                    )
                    for name in rejected
                ],
            )

        correlation_id = correlation_id or create_correlation_id()
        members = await self._linkage.find_group(group_id)
        if not members:
            raise NotFoundError(f"Group not found: {group_id}")

        now = datetime.now(timezone.utc)
        updated = []
        for entry in members:
            revised = LedgerEntry.model_validate({
                **entry.model_dump(),
                **changes,
                "updated_at": now,
            })
            updated.append(await self._gateway.update_entry(revised))

        if self._audit_logger:
            await self._audit_logger.log_group_updated(
                group_id=group_id,
                fields=sorted(changes),
                entry_count=len(updated),
                correlation_id=correlation_id,
            )
        return updated

    async def duplicate(
        self,
        entry_id: UUID,
        on: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpansionResult:
        """
        Copy a persisted entry as a new single submission.

        The copy is dated `on` (today by default) and drops the
        installment plan, recurrence rule and group linkage.

        Raises:
            NotFoundError: If the source entry doesn't exist.
        """
        source = await self._gateway.get_entry(entry_id)
        if source is None:
            raise NotFoundError(f"Entry not found: {entry_id}")

        candidate = CandidateEntry(
            description=with_suffix(source.description, self._settings.duplicate_marker),
            amount=source.amount,
            kind=source.kind,
            date=on or date.today(),
            category_ref=source.category_ref,
            payment_method=source.payment_method,
            observations=source.observations,
            tags=list(source.tags),
        )

        result = await self.expand(candidate, correlation_id=correlation_id)

        if result.ok and self._audit_logger:
            await self._audit_logger.log_entry_duplicated(
                source_id=entry_id,
                new_id=result.group_id,
                correlation_id=result.correlation_id,
            )
        return result


def _reject_invalid(validation: ValidationResult) -> None:
    """
    Raises:
        ExpansionValidationError: If validation found any error.
    """
    if not validation.is_valid:
        raise ExpansionValidationError(
            "Submission failed validation",
            issues=[i for i in validation.issues if i.severity == "error"],
        )


def create_orchestrator(
    use_storage: bool = True,
) -> ExpansionOrchestrator:
    """
    Factory function to create a ready-to-use orchestrator.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False to run against in-memory storage.
    """
    logger = structlog.get_logger(__name__)
    gateway: LedgerGateway
    audit_logger: AuditLogger

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            gateway = GoogleSheetsLedgerGateway(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            gateway = InMemoryLedgerGateway()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        gateway = InMemoryLedgerGateway()
        audit_logger = AuditLogger()  # Local-only logging

    return ExpansionOrchestrator(gateway=gateway, audit_logger=audit_logger)
