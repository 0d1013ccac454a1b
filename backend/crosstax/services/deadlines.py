"""
Filing Deadlines - return due dates for a tax year
"""

from datetime import date
from typing import Optional

import structlog

from crosstax.core.exceptions import InvalidInput
from crosstax.models.deadlines import DeadlineKind, FilingDeadline, FilingDeadlines
from crosstax.models.money import Country

logger = structlog.get_logger()

# (country, kind, month, day) in the year after the tax year
DEADLINE_CALENDAR = (
    (Country.US, DeadlineKind.STANDARD, 4, 15),
    (Country.US, DeadlineKind.EXTENDED, 10, 15),
    (Country.CA, DeadlineKind.STANDARD, 4, 30),
)


def filing_deadlines(tax_year: int, as_of: Optional[date] = None) -> FilingDeadlines:
    """
    US and Canadian filing deadlines for returns covering tax_year.
    
    Dates are the nominal statutory ones; weekend and holiday rollovers
    are not applied. days_remaining is negative once a deadline has
    passed, and a deadline is passed only on the day after it.
    """
    if tax_year < 1 or tax_year >= date.max.year:
        raise InvalidInput(f"Invalid tax year: {tax_year}", field="tax_year")
    as_of = as_of or date.today()
    
    deadlines = []
    for country, kind, month, day in DEADLINE_CALENDAR:
        due = date(tax_year + 1, month, day)
        deadlines.append(FilingDeadline(
            country=country,
            kind=kind,
            due_date=due,
            days_remaining=(due - as_of).days,
            is_passed=as_of > due
        ))
    
    logger.debug("Filing deadlines computed", tax_year=tax_year, as_of=as_of.isoformat())
    return FilingDeadlines(tax_year=tax_year, as_of=as_of, deadlines=deadlines)
