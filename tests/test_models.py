"""
Tests for the Ledger Engine models

Test strategy:
1. Unit tests for individual components (models, splitter, expander)
2. Flow tests for the orchestrator against in-memory storage
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledger_engine.expansion import ExpansionValidationError
from ledger_engine.models.entry import (
    CandidateEntry,
    EntryKind,
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


class TestLedgerEntry:
    """Tests for the LedgerEntry model."""

    def test_entry_creation_defaults(self):
        """Test LedgerEntry creation with defaults."""
        entry = LedgerEntry(
            description="Groceries",
            amount=Decimal("54.20"),
            date=date(2024, 5, 2),
        )
        assert entry.id is None
        assert entry.kind == EntryKind.EXPENSE
        assert entry.parent_ref is None
        assert entry.installment_plan is None
        assert entry.tags == []

    def test_entry_strips_whitespace(self):
        """Test that whitespace is stripped from the description."""
        entry = LedgerEntry(description="  Rent  ", amount=Decimal("1"), date=date(2024, 1, 1))
        assert entry.description == "Rent"

    def test_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            LedgerEntry(description="Test", amount=Decimal("-1.00"), date=date(2024, 1, 1))

    def test_entry_rejects_sub_cent_amount(self):
        """Test that more than two decimal places are rejected."""
        with pytest.raises(ValueError):
            LedgerEntry(description="Test", amount=Decimal("1.005"), date=date(2024, 1, 1))

    def test_entry_rejects_plan_and_rule(self):
        """Test an entry can't be both an installment and a recurrence template."""
        with pytest.raises(ValueError, match="both an installment plan and a recurrence rule"):
            LedgerEntry(
                description="Test",
                amount=Decimal("10"),
                date=date(2024, 1, 1),
                installment_plan=InstallmentPlan(count=2, index=1),
                recurrence_rule=RecurrenceRule(frequency=Frequency.MONTHLY),
            )

    def test_entry_rejects_self_reference(self):
        """Test an entry can't be its own parent."""
        entry_id = uuid4()
        with pytest.raises(ValueError, match="itself as parent"):
            LedgerEntry(
                id=entry_id,
                parent_ref=entry_id,
                description="Test",
                amount=Decimal("10"),
                date=date(2024, 1, 1),
            )

    def test_group_id(self):
        """Test group_id resolves to parent_ref, else to the entry's own id."""
        parent_id = uuid4()
        parent = LedgerEntry(id=parent_id, description="A", amount=Decimal("1"), date=date(2024, 1, 1))
        child = LedgerEntry(
            id=uuid4(),
            parent_ref=parent_id,
            description="A",
            amount=Decimal("1"),
            date=date(2024, 2, 1),
        )
        assert parent.group_id == parent_id
        assert parent.is_group_parent is True
        assert child.group_id == parent_id
        assert child.is_group_parent is False

    def test_installment_index_cannot_exceed_count(self):
        """Test InstallmentPlan bounds."""
        with pytest.raises(ValueError, match="cannot exceed"):
            InstallmentPlan(count=3, index=4)


class TestCandidateIntent:
    """Tests for resolving the expansion intent of a submission."""

    def _candidate(self, **kwargs) -> CandidateEntry:
        return CandidateEntry(
            description="Test",
            amount=Decimal("90.00"),
            date=date(2024, 1, 10),
            **kwargs,
        )

    def test_plain_entry(self):
        intent = self._candidate().intent
        assert isinstance(intent, NoExpansion)
        assert ExpansionPath(intent.path) == ExpansionPath.SINGLE

    def test_single_installment_is_plain(self):
        assert isinstance(self._candidate(installments=1).intent, NoExpansion)

    def test_installments(self):
        intent = self._candidate(installments=3).intent
        assert isinstance(intent, InstallmentExpansion)
        assert intent.count == 3

    def test_recurrence(self):
        rule = RecurrenceRule(frequency=Frequency.WEEKLY, interval=2)
        intent = self._candidate(is_recurring=True, recurrence_rule=rule).intent
        assert isinstance(intent, RecurrenceExpansion)
        assert intent.rule == rule

    def test_rule_without_recurring_flag_is_plain(self):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY)
        assert isinstance(self._candidate(recurrence_rule=rule).intent, NoExpansion)

    def test_both_set_is_rejected(self):
        """Test installments and recurrence are mutually exclusive."""
        candidate = self._candidate(
            installments=3,
            is_recurring=True,
            recurrence_rule=RecurrenceRule(frequency=Frequency.MONTHLY),
        )
        with pytest.raises(ExpansionValidationError) as exc_info:
            candidate.intent
        assert exc_info.value.issues[0].issue_type == "mutually_exclusive"

    def test_to_entry_drops_expansion_flags(self):
        entry = self._candidate(installments=3, tags=["tech"]).to_entry()
        assert entry.installment_plan is None
        assert entry.recurrence_rule is None
        assert entry.tags == ["tech"]


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_RECEIVED,
            description="Entry received",
        )
        assert event.event_type == AuditEventType.ENTRY_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.GROUP_COMMITTED,
            description="Group committed",
            details={"entry_count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "group_committed"
        assert log_dict["details"]["entry_count"] == 3

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.gateway_unavailable(
            error_message="timed out after 10.0s",
            correlation_id=uuid4(),
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "gateway_unavailable"
        assert row[9] == "gateway_unavailable"
        assert row[10] == "timed out after 10.0s"

    def test_partial_write_event_is_an_error(self):
        """Test AuditEventBuilder.partial_write_failed."""
        group_id = uuid4()
        event = AuditEventBuilder.partial_write_failed(
            group_id=group_id,
            pending_count=2,
            error_message="batch rejected",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == group_id
        assert event.details["pending_count"] == 2


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=True,
            rules_valid=False,
            issues=[
                ValidationIssue(
                    field="installments",
                    issue_type="out_of_range",
                    message="Installment count 61 is outside 1..60",
                    severity="error",
                ),
            ],
        )
        assert result.is_valid is False
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_info_only(self):
        """Test that info issues don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            rules_valid=True,
            issues=[
                ValidationIssue(
                    field="recurrence_rule.occurrence_count",
                    issue_type="capped",
                    message="Only the next 12 of 50 occurrences will be created",
                    severity="info",
                ),
            ],
        )
        assert result.is_valid is True
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
