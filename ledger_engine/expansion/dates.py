"""
Calendar arithmetic for expansion.

Month and year steps are always taken from the original date, never
chained from the previous result, and clamp to the last valid day of
the target month. So 2024-01-31 stepped 1, 2 and 3 months gives
2024-02-29, 2024-03-31 and 2024-04-30.
"""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from ledger_engine.models.entry import Frequency


def add_months(start: date, months: int) -> date:
    """Shift `start` by whole months, clamping to the month end."""
    return start + relativedelta(months=months)


def add_years(start: date, years: int) -> date:
    """Shift `start` by whole years. Feb 29 lands on Feb 28 in common years."""
    return start + relativedelta(years=years)


def shift(start: date, frequency: Frequency, steps: int) -> date:
    """
    Date that lies `steps` frequency units after `start`.

    Raises:
        ValueError: Unknown frequency, or the result is outside the
            supported calendar range.
    """
    try:
        if frequency == Frequency.DAILY:
            return start + timedelta(days=steps)
        if frequency == Frequency.WEEKLY:
            return start + timedelta(weeks=steps)
        if frequency == Frequency.MONTHLY:
            return add_months(start, steps)
        if frequency == Frequency.YEARLY:
            return add_years(start, steps)
    except OverflowError as e:
        raise ValueError(f"Date out of range: {start} shifted {steps} x {frequency}") from e

    raise ValueError(f"Unknown frequency: {frequency!r}")
