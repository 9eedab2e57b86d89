"""
Core Data Models for the Ledger Engine

These models define the strict schemas for every entry flowing through
the expansion engine. They are designed to:
1. Keep money in Decimal, never float
2. Make the expansion intent of a submission explicit
3. Be serializable for storage and logging
4. Carry the linkage needed for cascade edits and deletes

DESIGN DECISION: A submission (CandidateEntry) and a stored row
(LedgerEntry) are separate models. The candidate carries the raw form
flags; the ledger entry only carries what was actually generated.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


DESCRIPTION_MAX_LENGTH = 200


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def with_suffix(description: str, suffix: str) -> str:
    """Append `suffix`, shortening the description so the result still fits."""
    return description[:DESCRIPTION_MAX_LENGTH - len(suffix)].rstrip() + suffix


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryKind(str, Enum):
    """Direction of money. Amounts are always stored as magnitudes."""
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, Enum):
    """
    Supported recurrence frequencies.

    DESIGN DECISION: No day-of-week rules or exception dates.
    A recurrence is a fixed step from the first date.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ExpansionPath(str, Enum):
    """The three mutually exclusive ways a submission can be written."""
    SINGLE = "single"
    SPLIT = "split"
    RECURRENCE = "recurrence"


# =============================================================================
# EXPANSION RULES
# =============================================================================

class InstallmentPlan(BaseModel):
    """Position of one entry inside an installment group."""

    count: int = Field(
        ...,
        ge=1,
        description="Total number of installments in the group"
    )
    index: int = Field(
        ...,
        ge=1,
        description="1-based position of this installment"
    )

    @model_validator(mode='after')
    def validate_index(self) -> 'InstallmentPlan':
        if self.index > self.count:
            raise ValueError("Installment index cannot exceed installment count")
        return self


class RecurrenceRule(BaseModel):
    """
    Recurrence rule carried by the template entry of a series.

    Range checks on interval and occurrence_count are done by the
    CandidateValidator so they surface as structured issues.
    """

    frequency: Frequency = Field(
        ...,
        description="Step unit between occurrences"
    )
    interval: int = Field(
        default=1,
        description="Number of frequency units between occurrences"
    )
    occurrence_count: Optional[int] = Field(
        default=None,
        description="Requested number of occurrences (capped by the engine)"
    )


# =============================================================================
# EXPANSION INTENT - one tagged choice per submission
# =============================================================================

class NoExpansion(BaseModel):
    path: Literal["single"] = "single"


class InstallmentExpansion(BaseModel):
    path: Literal["split"] = "split"
    count: int


class RecurrenceExpansion(BaseModel):
    path: Literal["recurrence"] = "recurrence"
    rule: RecurrenceRule


ExpansionIntent = Annotated[
    Union[NoExpansion, InstallmentExpansion, RecurrenceExpansion],
    Field(discriminator="path"),
]


# =============================================================================
# LEDGER ENTRY
# =============================================================================

class LedgerEntry(BaseModel):
    """
    A single stored financial entry.

    `id` is empty until the persistence gateway assigns one.
    `parent_ref` points at the first entry of a generated group and is
    absent on that first entry itself.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: Optional[UUID] = Field(
        default=None,
        description="Assigned by the persistence gateway"
    )

    # Timestamps
    created_at: dt.datetime = Field(default_factory=_utcnow)
    updated_at: dt.datetime = Field(default_factory=_utcnow)

    # What happened
    description: str = Field(
        ...,
        min_length=1,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="Free text description"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Magnitude of the entry")
    ]
    kind: EntryKind = Field(
        default=EntryKind.EXPENSE,
        description="Whether money came in or went out"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the entry"
    )
    category_ref: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Reference to an externally owned category"
    )

    # Details carried through from the submission form
    payment_method: Optional[str] = Field(default=None, max_length=50)
    observations: Optional[str] = Field(default=None, max_length=1000)
    tags: list[str] = Field(default_factory=list)

    # Expansion metadata
    installment_plan: Optional[InstallmentPlan] = None
    recurrence_rule: Optional[RecurrenceRule] = None
    is_recurring: bool = False
    recurrence_generated: bool = Field(
        default=False,
        description="True on occurrences generated from a recurrence template"
    )

    # Linkage
    parent_ref: Optional[UUID] = Field(
        default=None,
        description="ID of the first entry of the group this entry belongs to"
    )

    @model_validator(mode='after')
    def validate_linkage(self) -> 'LedgerEntry':
        """An entry can't be both an installment and a recurrence template."""
        if self.installment_plan and self.recurrence_rule:
            raise ValueError("An entry cannot carry both an installment plan and a recurrence rule")

        if self.id is not None and self.parent_ref == self.id:
            raise ValueError("An entry cannot reference itself as parent")

        return self

    @property
    def group_id(self) -> Optional[UUID]:
        """Identity of the group this entry belongs to."""
        return self.parent_ref or self.id

    @property
    def is_group_parent(self) -> bool:
        return self.id is not None and self.parent_ref is None


class CandidateEntry(BaseModel):
    """
    An entry as submitted by a caller, before expansion.

    CRITICAL: installments and a recurrence rule are mutually exclusive.
    Use `intent` to get the single expansion choice; it refuses to
    classify a submission that sets both.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    amount: Annotated[Decimal, Field(ge=0, decimal_places=2)]
    kind: EntryKind = EntryKind.EXPENSE
    date: dt.date
    category_ref: Optional[str] = Field(default=None, max_length=100)
    payment_method: Optional[str] = Field(default=None, max_length=50)
    observations: Optional[str] = Field(default=None, max_length=1000)
    tags: list[str] = Field(default_factory=list)

    # Raw expansion flags as the form sends them
    installments: Optional[int] = Field(
        default=None,
        description="Number of monthly installments (>1 splits the entry)"
    )
    is_recurring: bool = False
    recurrence_rule: Optional[RecurrenceRule] = None

    @property
    def intent(self) -> ExpansionIntent:
        """
        Resolve the raw flags into exactly one expansion choice.

        Raises:
            ExpansionValidationError: If both installments and a
                recurrence rule are set.
        """
        from ledger_engine.expansion.errors import ExpansionValidationError

        if self.installments is not None and self.recurrence_rule is not None:
            raise ExpansionValidationError(
                "Installments and recurrence cannot be combined on one entry",
                issues=[ValidationIssue(
                    field="installments",
                    issue_type="mutually_exclusive",
                    message="Installments and a recurrence rule are both set",
                    severity="error",
                    suggested_fix="Submit either an installment purchase or a recurring entry",
                )],
            )

        if self.installments is not None and self.installments > 1:
            return InstallmentExpansion(count=self.installments)

        if self.is_recurring and self.recurrence_rule is not None:
            return RecurrenceExpansion(rule=self.recurrence_rule)

        return NoExpansion()

    def to_entry(self) -> LedgerEntry:
        """Build the unexpanded ledger entry for this submission."""
        return LedgerEntry(
            description=self.description,
            amount=self.amount,
            kind=self.kind,
            date=self.date,
            category_ref=self.category_ref,
            payment_method=self.payment_method,
            observations=self.observations,
            tags=list(self.tags),
            is_recurring=self.is_recurring,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'out_of_range', 'mutually_exclusive')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage candidate validation.

    Stage 1: Schema validation (parsing into a CandidateEntry)
    Stage 2: Rule validation (ranges, exclusivity, calendar bounds)
    """

    validated_at: dt.datetime = Field(default_factory=_utcnow)

    schema_valid: bool
    rules_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.rules_valid

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
