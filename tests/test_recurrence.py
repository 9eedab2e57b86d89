"""Tests for the recurrence expander."""

import pytest
from datetime import date
from decimal import Decimal

from ledger_engine.expansion import ExpansionValidationError, RecurrenceExpander
from ledger_engine.models.entry import Frequency, LedgerEntry, RecurrenceRule


def _base(on: date = date(2024, 1, 31)) -> LedgerEntry:
    return LedgerEntry(
        description="Gym",
        amount=Decimal("49.90"),
        date=on,
        is_recurring=True,
    )


@pytest.fixture
def expander() -> RecurrenceExpander:
    return RecurrenceExpander(lookahead=12, marker=" (Recurring)")


class TestOccurrenceDates:
    """Tests for dates generated per frequency."""

    def test_daily(self, expander):
        rule = RecurrenceRule(frequency=Frequency.DAILY, interval=3, occurrence_count=3)
        dates = expander.occurrence_dates(_base(date(2024, 12, 30)), rule)
        assert dates == [date(2024, 12, 30), date(2025, 1, 2), date(2025, 1, 5)]

    def test_weekly(self, expander):
        rule = RecurrenceRule(frequency=Frequency.WEEKLY, interval=2, occurrence_count=3)
        dates = expander.occurrence_dates(_base(date(2024, 1, 1)), rule)
        assert dates == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]

    def test_monthly_clamps_month_end(self, expander):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY, occurrence_count=4)
        dates = expander.occurrence_dates(_base(date(2024, 1, 31)), rule)
        assert dates == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_monthly_interval(self, expander):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY, interval=3, occurrence_count=3)
        dates = expander.occurrence_dates(_base(date(2024, 11, 30)), rule)
        assert dates == [date(2024, 11, 30), date(2025, 2, 28), date(2025, 5, 30)]

    def test_yearly_leap_day(self, expander):
        rule = RecurrenceRule(frequency=Frequency.YEARLY, occurrence_count=3)
        dates = expander.occurrence_dates(_base(date(2024, 2, 29)), rule)
        assert dates == [date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28)]

    @pytest.mark.parametrize("frequency", list(Frequency))
    def test_dates_strictly_increase(self, expander, frequency):
        rule = RecurrenceRule(frequency=frequency, interval=1)
        dates = expander.occurrence_dates(_base(date(2024, 1, 31)), rule)
        assert all(a < b for a, b in zip(dates, dates[1:]))


class TestRecurrenceBound:
    """Tests for the lookahead cap."""

    def test_default_is_lookahead(self, expander):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY)
        assert len(expander.expand(_base(), rule)) == 12

    def test_large_count_is_capped(self, expander):
        """Test occurrence_count 50 still yields 12 entries."""
        rule = RecurrenceRule(frequency=Frequency.MONTHLY, occurrence_count=50)
        assert len(expander.expand(_base(), rule)) == 12

    def test_small_count_is_honoured(self, expander):
        rule = RecurrenceRule(frequency=Frequency.WEEKLY, occurrence_count=4)
        assert len(expander.expand(_base(), rule)) == 4

    def test_single_occurrence(self, expander):
        rule = RecurrenceRule(frequency=Frequency.DAILY, occurrence_count=1)
        entries = expander.expand(_base(), rule)
        assert len(entries) == 1
        assert entries[0].recurrence_rule == rule


class TestRecurrenceEntries:
    """Tests for the entries built from a rule."""

    def test_template_is_unchanged(self, expander):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY, occurrence_count=3)
        template = expander.expand(_base(), rule)[0]

        assert template.description == "Gym"
        assert template.amount == Decimal("49.90")
        assert template.recurrence_rule == rule
        assert template.recurrence_generated is False

    def test_generated_occurrences_are_annotated(self, expander):
        rule = RecurrenceRule(frequency=Frequency.MONTHLY, occurrence_count=3)
        generated = expander.expand(_base(), rule)[1:]

        assert all(e.description == "Gym (Recurring)" for e in generated)
        assert all(e.recurrence_generated for e in generated)
        assert all(e.recurrence_rule is None for e in generated)
        assert all(e.amount == Decimal("49.90") for e in generated)
        assert all(e.is_recurring for e in generated)

    def test_output_is_unpersisted(self, expander):
        rule = RecurrenceRule(frequency=Frequency.DAILY, occurrence_count=3)
        entries = expander.expand(_base(), rule)
        assert all(e.id is None and e.parent_ref is None for e in entries)


class TestRecurrenceRejection:
    """Tests for invalid rules."""

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_non_positive_interval(self, expander, interval):
        rule = RecurrenceRule(frequency=Frequency.DAILY, interval=interval)
        with pytest.raises(ExpansionValidationError) as exc_info:
            expander.expand(_base(), rule)
        assert exc_info.value.issues[0].field == "recurrence_rule.interval"

    @pytest.mark.parametrize("count", [0, -5])
    def test_rejects_non_positive_count(self, expander, count):
        rule = RecurrenceRule(frequency=Frequency.DAILY, occurrence_count=count)
        with pytest.raises(ExpansionValidationError) as exc_info:
            expander.expand(_base(), rule)
        assert exc_info.value.issues[0].field == "recurrence_rule.occurrence_count"

    def test_rejects_unknown_frequency(self, expander):
        rule = RecurrenceRule.model_construct(
            frequency="fortnightly",
            interval=1,
            occurrence_count=None,
        )
        with pytest.raises(ExpansionValidationError) as exc_info:
            expander.expand(_base(), rule)
        assert exc_info.value.issues[0].issue_type == "unknown_value"

    def test_rejects_dates_past_calendar_range(self, expander):
        rule = RecurrenceRule(frequency=Frequency.YEARLY, occurrence_count=3)
        with pytest.raises(ExpansionValidationError):
            expander.expand(_base(date(9998, 6, 1)), rule)
