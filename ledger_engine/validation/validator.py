"""
Two-Stage Candidate Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Parse raw submission data into a CandidateEntry
- Type checking, required fields, amount precision
- Pydantic errors are turned into ValidationIssues

STAGE 2 - RULE VALIDATION:
- Installments and recurrence are mutually exclusive
- Installment count within 1..max_installments
- Recurrence interval and occurrence count are positive
- Recurrence frequency is known

Both stages run before the first write. A submission that fails either
stage is rejected whole; nothing is persisted.

IMPORTANT: Validation NEVER silently fixes issues.
An occurrence count above the lookahead is reported as info, since the
cap is part of the engine's contract rather than a correction.
"""

from typing import Any, Optional, Union

from pydantic import ValidationError

from ledger_engine.config import ExpansionSettings, get_settings
from ledger_engine.expansion.recurrence import rule_issues
from ledger_engine.models.entry import (
    CandidateEntry,
    ValidationIssue,
    ValidationResult,
)


class CandidateValidator:
    """
    Validates submissions through a two-stage pipeline.

    Stage 1: Schema validation (only for raw dict submissions)
    Stage 2: Rule validation
    """

    def __init__(self, settings: Optional[ExpansionSettings] = None):
        self._settings = settings or get_settings().expansion

    def parse(
        self,
        payload: Union[CandidateEntry, dict[str, Any]],
    ) -> tuple[Optional[CandidateEntry], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (candidate_or_none, list_of_issues)
        """
        if isinstance(payload, CandidateEntry):
            return payload, []

        try:
            return CandidateEntry.model_validate(payload), []
        except ValidationError as e:
            issues = []
            for error in e.errors():
                issues.append(ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "entry",
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                ))
            return None, issues

    def check_rules(self, candidate: CandidateEntry) -> list[ValidationIssue]:
        """
        Stage 2: Rule validation.

        Returns: list_of_issues (errors block the submission)
        """
        issues = []

        if candidate.installments is not None and candidate.recurrence_rule is not None:
            issues.append(ValidationIssue(
                field="installments",
                issue_type="mutually_exclusive",
                message="Installments and a recurrence rule are both set",
                severity="error",
                suggested_fix="Submit either an installment purchase or a recurring entry",
            ))

        if candidate.installments is not None:
            count = candidate.installments
            if count < 1 or count > self._settings.max_installments:
                issues.append(ValidationIssue(
                    field="installments",
                    issue_type="out_of_range",
                    message=(
                        f"Installment count {count} is outside "
                        f"1..{self._settings.max_installments}"
                    ),
                    severity="error",
                ))

        rule = candidate.recurrence_rule
        if rule is not None:
            issues.extend(rule_issues(rule))

            if (
                rule.occurrence_count is not None
                and rule.occurrence_count > self._settings.recurrence_lookahead
            ):
                issues.append(ValidationIssue(
                    field="recurrence_rule.occurrence_count",
                    issue_type="capped",
                    message=(
                        f"Only the next {self._settings.recurrence_lookahead} of "
                        f"{rule.occurrence_count} occurrences will be created"
                    ),
                    severity="info",
                ))

            if not candidate.is_recurring:
                issues.append(ValidationIssue(
                    field="is_recurring",
                    issue_type="ignored_rule",
                    message="A recurrence rule was sent but the entry is not marked recurring",
                    severity="warning",
                    suggested_fix="Mark the entry as recurring to generate occurrences",
                ))

        if candidate.is_recurring and rule is None:
            issues.append(ValidationIssue(
                field="recurrence_rule",
                issue_type="missing",
                message="Entry is marked recurring but has no recurrence rule",
                severity="warning",
                suggested_fix="Only a single entry will be created",
            ))

        return issues

    def validate(
        self,
        payload: Union[CandidateEntry, dict[str, Any]],
    ) -> tuple[Optional[CandidateEntry], ValidationResult]:
        """
        Run full two-stage validation pipeline.

        Returns:
            (candidate, result). candidate is None when stage 1 failed.
        """
        candidate, schema_issues = self.parse(payload)
        schema_valid = candidate is not None

        # Only run stage 2 if stage 1 passes
        rule_issue_list = []
        if schema_valid:
            rule_issue_list = self.check_rules(candidate)

        rules_valid = schema_valid and not any(
            issue.severity == "error" for issue in rule_issue_list
        )

        return candidate, ValidationResult(
            schema_valid=schema_valid,
            rules_valid=rules_valid,
            issues=schema_issues + rule_issue_list,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what a form handler can show next to the submit button.
        """
        if result.is_valid and not result.issues:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("This entry can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   - {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        notes = [i for i in result.issues if i.severity != "error"]
        if notes:
            if lines:
                lines.append("")
            lines.append("Please note:")
            for issue in notes:
                lines.append(f"   - {issue.message}")

        return "\n".join(lines)
