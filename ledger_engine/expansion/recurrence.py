"""
Recurrence Expander

Seeds a bounded run of future occurrences from a recurrence template.

DESIGN DECISION: Occurrences are generated ahead of time, not lazily.
The lookahead cap (12 by default) bounds how many rows one submission
can create, whatever occurrence_count the caller asked for.
"""

from typing import Optional

from ledger_engine.config import get_settings
from ledger_engine.expansion.dates import shift
from ledger_engine.expansion.errors import ExpansionValidationError
from ledger_engine.models.entry import (
    Frequency,
    LedgerEntry,
    RecurrenceRule,
    ValidationIssue,
    with_suffix,
)


def rule_issues(rule: RecurrenceRule) -> list[ValidationIssue]:
    """Range problems with a recurrence rule, empty if it is usable."""
    issues = []

    if not isinstance(rule.frequency, Frequency):
        try:
            Frequency(rule.frequency)
        except ValueError:
            issues.append(ValidationIssue(
                field="recurrence_rule.frequency",
                issue_type="unknown_value",
                message=f"Unknown frequency: {rule.frequency}",
                severity="error",
                suggested_fix="Use daily, weekly, monthly or yearly",
            ))

    if rule.interval is None or rule.interval <= 0:
        issues.append(ValidationIssue(
            field="recurrence_rule.interval",
            issue_type="out_of_range",
            message=f"Interval must be at least 1, got {rule.interval}",
            severity="error",
        ))

    if rule.occurrence_count is not None and rule.occurrence_count <= 0:
        issues.append(ValidationIssue(
            field="recurrence_rule.occurrence_count",
            issue_type="out_of_range",
            message=f"Occurrence count must be at least 1, got {rule.occurrence_count}",
            severity="error",
        ))

    return issues


class RecurrenceExpander:
    """Expands a recurrence template into dated occurrences."""

    def __init__(
        self,
        lookahead: Optional[int] = None,
        marker: Optional[str] = None,
    ):
        settings = get_settings().expansion
        self._lookahead = lookahead or settings.recurrence_lookahead
        self._marker = marker if marker is not None else settings.recurrence_marker

    def bound(self, rule: RecurrenceRule) -> int:
        """Number of occurrences that will be generated for `rule`."""
        requested = rule.occurrence_count or self._lookahead
        return min(requested, self._lookahead)

    def occurrence_dates(self, base: LedgerEntry, rule: RecurrenceRule) -> list:
        """
        Dates of every occurrence, first one included.

        Raises:
            ExpansionValidationError: Bad rule, or a date falls outside
                the calendar range.
        """
        issues = rule_issues(rule)
        if issues:
            raise ExpansionValidationError("Invalid recurrence rule", issues=issues)

        frequency = Frequency(rule.frequency)
        try:
            return [
                shift(base.date, frequency, rule.interval * i)
                for i in range(self.bound(rule))
            ]
        except ValueError as e:
            raise ExpansionValidationError(
                str(e),
                issues=[ValidationIssue(
                    field="recurrence_rule",
                    issue_type="out_of_range",
                    message=str(e),
                    severity="error",
                    suggested_fix="Use a smaller interval",
                )],
            ) from e

    def expand(self, base: LedgerEntry, rule: RecurrenceRule) -> list[LedgerEntry]:
        """
        Expand `base` into occurrences following `rule`.

        Occurrence 0 is the template: unchanged amount and description,
        carries the rule. Later occurrences are annotated as generated
        and drop the rule.
        """
        dates = self.occurrence_dates(base, rule)

        template = base.model_copy(update={
            "id": None,
            "parent_ref": None,
            "installment_plan": None,
            "recurrence_rule": rule,
            "is_recurring": True,
            "recurrence_generated": False,
        }, deep=True)
        entries = [template]

        for occurrence_date in dates[1:]:
            entries.append(base.model_copy(update={
                "id": None,
                "parent_ref": None,
                "date": occurrence_date,
                "description": with_suffix(base.description, self._marker),
                "installment_plan": None,
                "recurrence_rule": None,
                "is_recurring": True,
                "recurrence_generated": True,
            }, deep=True))

        return entries
