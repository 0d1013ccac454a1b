"""
Tax Data Validators - Deterministic validation rules

Each validator raises InvalidInput or InvalidConfiguration on the first
violation and returns nothing otherwise.
"""

import calendar
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from crosstax.core.exceptions import InvalidConfiguration, InvalidInput
from crosstax.models.money import Currency, Money
from crosstax.models.tax import BracketTable

logger = structlog.get_logger()

ONE = Decimal("1")


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def validate_day_count(field: str, days: int, year: int) -> None:
    """Day counts must lie within 0..days-in-year for the year they describe"""
    limit = days_in_year(year)
    if days is None:
        raise InvalidInput(f"{field} is required", field=field)
    if days < 0 or days > limit:
        raise InvalidInput(
            f"{field} must be between 0 and {limit} for {year}, got {days}",
            field=field,
            details={"value": days, "max": limit, "year": year}
        )


def validate_non_negative_count(field: str, value: int) -> None:
    if value is None or value < 0:
        raise InvalidInput(f"{field} must be a non-negative count, got {value}", field=field)


def validate_non_negative(field: str, amount: Money) -> None:
    if amount.is_negative():
        raise InvalidInput(
            f"{field} cannot be negative",
            field=field,
            details={"value": str(amount.amount), "currency": amount.currency.value}
        )


def validate_same_currency(currency: Currency, **amounts: Optional[Money]) -> None:
    """All supplied amounts must be denominated in the given currency"""
    for field, amount in amounts.items():
        if amount is not None and amount.currency != currency:
            raise InvalidInput(
                f"{field} is in {amount.currency.value}, expected {currency.value}",
                field=field,
                details={"expected": currency.value, "actual": amount.currency.value}
            )


def validate_percentage(field: str, value: Optional[Decimal]) -> None:
    if value is not None and (value < 0 or value > 100):
        raise InvalidInput(f"{field} must be between 0 and 100, got {value}", field=field)


def validate_rate(field: str, rate: Decimal) -> None:
    """Rates are fractions in [0, 1)"""
    if rate < 0 or rate >= ONE:
        raise InvalidConfiguration(f"{field} must be in [0, 1), got {rate}", field=field)


def validate_bracket_table(table: BracketTable) -> None:
    """
    Check a progressive table is well formed.
    
    Bounds must be strictly increasing, every rate in [0, 1) and only the
    last bracket may be (and must be) unbounded so the table covers
    [0, infinity).
    """
    if not table.brackets:
        raise InvalidConfiguration(f"Bracket table '{table.name}' is empty", field=table.name)
    
    previous_bound = Decimal("0")
    last_index = len(table.brackets) - 1
    
    for index, bracket in enumerate(table.brackets):
        validate_rate(f"{table.name}[{index}].rate", bracket.rate)
        
        if bracket.upper_bound is None:
            if index != last_index:
                raise InvalidConfiguration(
                    f"Bracket table '{table.name}' has an unbounded bracket before the last entry",
                    field=table.name,
                    details={"index": index}
                )
            continue
        
        if index == last_index:
            raise InvalidConfiguration(
                f"Bracket table '{table.name}' must end with an unbounded bracket",
                field=table.name,
                details={"last_upper_bound": str(bracket.upper_bound)}
            )
        
        if bracket.upper_bound <= previous_bound:
            raise InvalidConfiguration(
                f"Bracket table '{table.name}' bounds must be strictly increasing",
                field=table.name,
                details={"index": index, "upper_bound": str(bracket.upper_bound)}
            )
        previous_bound = bracket.upper_bound


def validate_bracket_tables(tables: Iterable[BracketTable]) -> None:
    for table in tables:
        validate_bracket_table(table)
