"""
Tests for US and Canadian filing deadlines.
"""

from datetime import date

import pytest

from crosstax.core.exceptions import InvalidInput
from crosstax.models import Country, DeadlineKind
from crosstax.services.deadlines import filing_deadlines


def by_kind(deadlines, country):
    return {deadline.kind: deadline for deadline in deadlines.for_country(country)}


class TestFilingDeadlines:

    def test_due_dates_fall_in_following_year(self):
        deadlines = filing_deadlines(2025, as_of=date(2026, 1, 1))

        us = by_kind(deadlines, Country.US)
        ca = by_kind(deadlines, Country.CA)
        assert us[DeadlineKind.STANDARD].due_date == date(2026, 4, 15)
        assert us[DeadlineKind.EXTENDED].due_date == date(2026, 10, 15)
        assert ca[DeadlineKind.STANDARD].due_date == date(2026, 4, 30)
        assert DeadlineKind.EXTENDED not in ca

    def test_days_remaining(self):
        deadlines = filing_deadlines(2025, as_of=date(2026, 4, 1))

        us = by_kind(deadlines, Country.US)[DeadlineKind.STANDARD]
        ca = by_kind(deadlines, Country.CA)[DeadlineKind.STANDARD]
        assert us.days_remaining == 14
        assert ca.days_remaining == 29
        assert not us.is_passed

    def test_deadline_day_is_not_passed(self):
        deadlines = filing_deadlines(2025, as_of=date(2026, 4, 15))

        us = by_kind(deadlines, Country.US)[DeadlineKind.STANDARD]
        assert us.days_remaining == 0
        assert not us.is_passed

    def test_passed_deadlines(self):
        deadlines = filing_deadlines(2025, as_of=date(2026, 5, 1))

        us = by_kind(deadlines, Country.US)
        assert us[DeadlineKind.STANDARD].is_passed
        assert us[DeadlineKind.STANDARD].days_remaining == -16
        assert by_kind(deadlines, Country.CA)[DeadlineKind.STANDARD].is_passed
        assert not us[DeadlineKind.EXTENDED].is_passed

    def test_defaults_to_today(self):
        deadlines = filing_deadlines(2025)

        assert deadlines.as_of == date.today()
        assert deadlines.tax_year == 2025
        assert len(deadlines.deadlines) == 3

    @pytest.mark.parametrize("tax_year", [0, -1, 9999])
    def test_invalid_tax_year(self, tax_year):
        with pytest.raises(InvalidInput):
            filing_deadlines(tax_year, as_of=date(2026, 1, 1))
