"""
Installment Splitter

Partitions one purchase into N monthly entries.

DESIGN DECISION: Every installment but the last is A / N truncated to
the cent. The last one absorbs the remainder, so the group always sums
to the original amount exactly and no installment can go negative.

    300.00 / 3 -> 100.00, 100.00, 100.00
    100.00 / 3 ->  33.33,  33.33,  33.34
"""

from decimal import ROUND_DOWN, Decimal
from typing import Optional

from ledger_engine.config import get_settings
from ledger_engine.expansion.dates import add_months
from ledger_engine.expansion.errors import ExpansionValidationError
from ledger_engine.models.entry import (
    InstallmentPlan,
    LedgerEntry,
    ValidationIssue,
    with_suffix,
)

CENT = Decimal("0.01")


def allocate(total: Decimal, count: int) -> list[Decimal]:
    """Split `total` into `count` cent amounts that sum to `total`."""
    total = total.quantize(CENT)
    share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    last = total - share * (count - 1)
    return [share] * (count - 1) + [last]


def installment_description(description: str, index: int, count: int) -> str:
    return with_suffix(description, f" ({index}/{count})")


class InstallmentSplitter:
    """
    Expands a base entry into consecutive monthly installments.

    The output is unpersisted and unlinked. Installment 1 becomes the
    group parent once it is written; LinkageManager stamps the rest.
    """

    def __init__(self, max_installments: Optional[int] = None):
        self._max_installments = (
            max_installments or get_settings().expansion.max_installments
        )

    @property
    def max_installments(self) -> int:
        return self._max_installments

    def check_count(self, count: int) -> None:
        """
        Raises:
            ExpansionValidationError: If count is outside 1..max_installments.
        """
        if count < 1 or count > self._max_installments:
            raise ExpansionValidationError(
                f"Installment count must be between 1 and {self._max_installments}, got {count}",
                issues=[ValidationIssue(
                    field="installments",
                    issue_type="out_of_range",
                    message=f"Installment count {count} is outside 1..{self._max_installments}",
                    severity="error",
                )],
            )

    def installment_dates(self, base: LedgerEntry, count: int) -> list:
        """
        Due date of every installment, one month apart.

        Raises:
            ExpansionValidationError: A date falls outside the calendar range.
        """
        try:
            return [add_months(base.date, i) for i in range(count)]
        except (ValueError, OverflowError) as e:
            message = f"Installment dates run past the calendar range: {e}"
            raise ExpansionValidationError(
                message,
                issues=[ValidationIssue(
                    field="date",
                    issue_type="out_of_range",
                    message=message,
                    severity="error",
                    suggested_fix="Use fewer installments or an earlier date",
                )],
            ) from e

    def split(self, base: LedgerEntry, count: int) -> list[LedgerEntry]:
        """
        Split `base` into `count` installments.

        Args:
            base: The submitted entry; its amount is the purchase total
            count: Number of installments

        Returns:
            Entries ordered by installment index (and therefore by date)
        """
        self.check_count(count)

        amounts = allocate(base.amount, count)
        dates = self.installment_dates(base, count)
        entries = []

        for index, (amount, due) in enumerate(zip(amounts, dates), start=1):
            entries.append(base.model_copy(update={
                "id": None,
                "parent_ref": None,
                "amount": amount,
                "date": due,
                "description": installment_description(base.description, index, count),
                "installment_plan": InstallmentPlan(count=count, index=index),
                "recurrence_rule": None,
                "is_recurring": False,
                "recurrence_generated": False,
            }, deep=True))

        return entries
