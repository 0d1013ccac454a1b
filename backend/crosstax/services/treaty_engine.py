"""
Treaty Engine - US-Canada treaty relief and social security totalization
"""

from decimal import Decimal
from typing import Callable, List, NamedTuple, Optional, Sequence, Union

import structlog

from crosstax.core.parameters import TaxParameters, get_tax_parameters
from crosstax.models.credits import TotalizationResult, TotalizationStatus, TreatyBenefit
from crosstax.models.income import IncomeItem, IncomeType, PensionSource
from crosstax.models.money import Country, Currency, CurrencyRates, Money
from crosstax.services.currency import convert_currency
from crosstax.services.tax_validators import validate_non_negative, validate_percentage

logger = structlog.get_logger()

TREATY_PAIRS = (frozenset({Country.US, Country.CA}),)

SUBSTANTIAL_OWNERSHIP_PERCENT = Decimal("10")

SCHEME_NAMES = {
    Country.US: "US Social Security",
    Country.CA: "Canada Pension Plan",
}


class TreatyRule(NamedTuple):
    income_type: IncomeType
    applies: Callable[[IncomeItem], bool]
    article: str
    rate: Decimal
    exempt: bool
    rationale: str


def _no_permanent_establishment(item: IncomeItem) -> bool:
    return item.has_permanent_establishment is False


def _substantial_owner(item: IncomeItem) -> bool:
    return (item.ownership_percent or Decimal("0")) >= SUBSTANTIAL_OWNERSHIP_PERCENT


def _government_pension(item: IncomeItem) -> bool:
    return item.pension_source == PensionSource.GOVERNMENT


def _always(item: IncomeItem) -> bool:
    return True


# First matching rule per income item wins
US_CANADA_RULES = (
    TreatyRule(IncomeType.BUSINESS_INCOME, _no_permanent_establishment, "Article 7", Decimal("0"), True,
               "No PE in source country - exempt from withholding"),
    TreatyRule(IncomeType.DIVIDENDS, _substantial_owner, "Article 10(2)", Decimal("0.05"), False,
               "Dividend withholding per treaty - 10% or greater ownership"),
    TreatyRule(IncomeType.DIVIDENDS, _always, "Article 10(1)", Decimal("0.15"), False,
               "Dividend withholding per treaty"),
    TreatyRule(IncomeType.INTEREST, _always, "Article 11", Decimal("0.10"), False,
               "Interest withholding per treaty"),
    TreatyRule(IncomeType.PENSION, _government_pension, "Article 18(2)", Decimal("0"), True,
               "Government pension taxable only in the paying state"),
    TreatyRule(IncomeType.PENSION, _always, "Article 18(1)", Decimal("0.15"), False,
               "Pension taxation per treaty"),
)


def _as_country(value: Union[Country, str, None]) -> Optional[Country]:
    if isinstance(value, Country):
        return value
    if not value:
        return None
    try:
        return Country(value.strip().upper())
    except ValueError:
        return None


def _match_rule(item: IncomeItem, rules: Sequence[TreatyRule]) -> Optional[TreatyRule]:
    for rule in rules:
        if rule.income_type == item.type and rule.applies(item):
            return rule
    return None


def lookup_treaty_benefits(
    income_items: Sequence[IncomeItem],
    residency_country: Union[Country, str],
    treaty_country: Union[Country, str]
) -> List[TreatyBenefit]:
    """
    Treaty relief for each qualifying income item, in input order.
    
    Items with no matching rule, and country pairs without a treaty, yield
    no entry.
    """
    residence = _as_country(residency_country)
    source = _as_country(treaty_country)
    
    if residence is None or source is None or frozenset({residence, source}) not in TREATY_PAIRS:
        logger.info("No treaty for country pair", residency_country=str(residency_country), treaty_country=str(treaty_country))
        return []
    
    logger.info("Applying treaty benefits", residency_country=residence.value, treaty_country=source.value)
    
    benefits: List[TreatyBenefit] = []
    for index, item in enumerate(income_items):
        validate_non_negative(f"income_items[{index}].amount", item.amount)
        validate_percentage(f"income_items[{index}].ownership_percent", item.ownership_percent)
        
        rule = _match_rule(item, US_CANADA_RULES)
        if rule is None:
            continue
        
        benefits.append(TreatyBenefit(
            item_index=index,
            income_type=item.type,
            amount=item.amount,
            article=rule.article,
            withholding_rate=rule.rate,
            is_exempt=rule.exempt,
            rationale=rule.rationale
        ))
    
    logger.info("Treaty benefits applied", items=len(income_items), benefits=len(benefits))
    return benefits


def classify_totalization(
    employee_country: Union[Country, str],
    employer_country: Union[Country, str],
    income: Money,
    rates: Optional[CurrencyRates] = None,
    parameters: Optional[TaxParameters] = None
) -> TotalizationResult:
    """
    Decide which social security scheme covers a worker under the US-Canada
    totalization agreement.
    
    Below the USD-equivalent threshold coverage stays with the employee's
    home country. At or above it coverage follows the employer's country and
    the employee is exempt from the home scheme. Country pairs outside US/CA
    are undetermined.
    """
    parameters = parameters or get_tax_parameters()
    validate_non_negative("income", income)
    
    employee = _as_country(employee_country)
    employer = _as_country(employer_country)
    
    if employee is None or employer is None:
        logger.info(
            "Totalization undetermined",
            employee_country=str(employee_country),
            employer_country=str(employer_country)
        )
        return TotalizationResult(
            status=TotalizationStatus.UNDETERMINED,
            details=["No totalization rule for this country combination"]
        )
    
    income_usd = convert_currency(income, Currency.USD, rates or parameters.currency_rates)
    threshold = parameters.totalization.threshold_usd
    
    details: List[str] = []
    exempt_from: Optional[Country] = None
    
    if income_usd.amount >= threshold:
        coverage = employer
        if employer != employee:
            exempt_from = employee
            details.append(f"Subject to {SCHEME_NAMES[employer]}, exempt from {SCHEME_NAMES[employee]}")
        else:
            details.append(f"Subject to {SCHEME_NAMES[employer]}")
    else:
        coverage = employee
        details.append(f"Below threshold - {SCHEME_NAMES[employee]} only")
    
    logger.info(
        "Totalization determined",
        employee_country=employee.value,
        employer_country=employer.value,
        coverage=coverage.value
    )
    
    return TotalizationResult(
        status=TotalizationStatus.DETERMINED,
        coverage_country=coverage,
        us_coverage=coverage == Country.US,
        ca_coverage=coverage == Country.CA,
        exempt_from=exempt_from,
        details=details
    )
