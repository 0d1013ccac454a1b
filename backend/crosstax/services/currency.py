"""
Currency Conversion and Cross-Jurisdiction Aggregation

Rates are injected (configuration or caller supplied); nothing here fetches
live rates. Projections are straight-line run rates with no seasonality.
"""

from datetime import date
from decimal import Decimal
from typing import List, Mapping, Optional

import structlog

from crosstax.core.exceptions import InvalidInput
from crosstax.core.parameters import get_tax_parameters
from crosstax.models.aggregation import (
    AggregateLiability,
    EstimatedPayment,
    EstimatedTaxSchedule,
    JurisdictionTotal,
    Projection,
)
from crosstax.models.money import Currency, CurrencyRates, Money
from crosstax.models.tax import LiabilityResult
from crosstax.services.tax_validators import validate_non_negative

logger = structlog.get_logger()


def _default_rates() -> CurrencyRates:
    return get_tax_parameters().currency_rates


def convert_currency(amount: Money, to_currency: Currency, rates: Optional[CurrencyRates] = None) -> Money:
    """
    Convert an amount into another currency.
    
    Same-currency conversion is the identity. A missing rate raises
    InvalidConfiguration.
    """
    if amount.currency == to_currency:
        return amount
    
    rates = rates or _default_rates()
    rate = rates.rate(amount.currency, to_currency)
    return Money(amount=amount.amount * rate, currency=to_currency)


def aggregate_liabilities(
    results: Mapping[str, LiabilityResult],
    currency: Currency,
    rates: Optional[CurrencyRates] = None
) -> AggregateLiability:
    """
    Combine per-jurisdiction liabilities into a single-currency total.
    
    Args:
        results: Liability per jurisdiction label, e.g. {"US": ..., "CA": ...}
        currency: Reporting currency
        rates: Conversion rates (defaults to configured rates)
    """
    rates = rates or _default_rates()
    
    jurisdictions: List[JurisdictionTotal] = []
    total_tax = Money.zero(currency)
    total_taxable = Money.zero(currency)
    
    for name, result in results.items():
        converted_tax = convert_currency(result.total_tax, currency, rates)
        converted_taxable = convert_currency(result.taxable_income, currency, rates)
        jurisdictions.append(JurisdictionTotal(
            jurisdiction=name,
            original_tax=result.total_tax,
            converted_tax=converted_tax,
            converted_taxable_income=converted_taxable
        ))
        total_tax = total_tax + converted_tax
        total_taxable = total_taxable + converted_taxable
    
    if total_taxable.is_zero():
        effective_rate = Decimal("0")
    else:
        effective_rate = total_tax.amount / total_taxable.amount
    
    logger.info(
        "Liabilities aggregated",
        currency=currency.value,
        jurisdictions=list(results),
        total_tax=str(total_tax.amount)
    )
    
    return AggregateLiability(
        currency=currency,
        total_tax=total_tax,
        total_taxable_income=total_taxable,
        effective_rate=effective_rate,
        jurisdictions=jurisdictions
    )


def project_year_end(total_to_date: Money, months_elapsed: int, months_in_period: int = 12) -> Projection:
    """
    Project a year-end figure as total_to_date / months_elapsed * months_in_period.
    
    This is a deliberate straight-line simplification: no seasonality,
    bonuses or timing effects are modelled.
    """
    validate_non_negative("total_to_date", total_to_date)
    if months_in_period <= 0:
        raise InvalidInput("months_in_period must be positive", field="months_in_period")
    if months_elapsed < 1 or months_elapsed > months_in_period:
        raise InvalidInput(
            f"months_elapsed must be between 1 and {months_in_period}, got {months_elapsed}",
            field="months_elapsed"
        )
    
    monthly = Money(amount=total_to_date.amount / Decimal(months_elapsed), currency=total_to_date.currency)
    
    return Projection(
        total_to_date=total_to_date,
        months_elapsed=months_elapsed,
        months_in_period=months_in_period,
        monthly_run_rate=monthly,
        projected_total=monthly * months_in_period,
        next_quarter=monthly * 3
    )


def estimated_tax_payments(annual_tax: Money, tax_year: int) -> EstimatedTaxSchedule:
    """Four equal US estimated payments with safe-harbour amounts"""
    validate_non_negative("annual_tax", annual_tax)
    
    quarterly = Money(amount=annual_tax.amount / Decimal(4), currency=annual_tax.currency)
    due_dates = [
        ("Q1", date(tax_year, 4, 15)),
        ("Q2", date(tax_year, 6, 15)),
        ("Q3", date(tax_year, 9, 15)),
        ("Q4", date(tax_year + 1, 1, 15)),
    ]
    
    return EstimatedTaxSchedule(
        annual_tax=annual_tax,
        quarterly_payment=quarterly,
        safe_harbor_90=annual_tax * Decimal("0.9"),
        safe_harbor_100=annual_tax,
        payments=[
            EstimatedPayment(quarter=quarter, due_date=due, amount=quarterly)
            for quarter, due in due_dates
        ]
    )
