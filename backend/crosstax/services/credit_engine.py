"""
Credit Engine - foreign tax credit limitation and domestic US and Canadian credits
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from pydantic import TypeAdapter, ValidationError

from crosstax.core.exceptions import InvalidConfiguration, InvalidInput, TaxEngineError
from crosstax.core.parameters import TaxParameters, get_tax_parameters
from crosstax.models.credits import (
    CreditClaim,
    CreditKind,
    CreditLine,
    DomesticCreditResult,
    ForeignTaxCreditResult,
    FTCJurisdiction,
)
from crosstax.models.money import HOME_CURRENCY, Country, Currency, Money, total
from crosstax.services.tax_validators import (
    validate_non_negative,
    validate_non_negative_count,
    validate_same_currency,
)

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Foreign tax credit
# ---------------------------------------------------------------------------

def _us_credit(foreign_tax_paid: Money, limit: Money, parameters: TaxParameters) -> Tuple[Money, int, str]:
    return (
        min(foreign_tax_paid, limit),
        parameters.foreign_tax_credit.us_carryforward_years,
        "IRC Section 901, 904",
    )


def _canada_credit(foreign_tax_paid: Money, limit: Money, parameters: TaxParameters) -> Tuple[Money, int, str]:
    rules = parameters.foreign_tax_credit
    return (
        min(foreign_tax_paid * rules.canada_simplified_rate, limit),
        rules.canada_carryforward_years,
        "ITA 126",
    )


FTC_HANDLERS: Dict[FTCJurisdiction, Callable[[Money, Money, TaxParameters], Tuple[Money, int, str]]] = {
    FTCJurisdiction.US: _us_credit,
    FTCJurisdiction.CA: _canada_credit,
}


def compute_foreign_tax_credit(
    foreign_income: Money,
    foreign_tax_paid: Money,
    domestic_tax: Money,
    total_income: Money,
    jurisdiction: FTCJurisdiction,
    parameters: Optional[TaxParameters] = None
) -> ForeignTaxCreditResult:
    """
    Foreign tax credit capped at domestic tax attributable to foreign income.
    
    limit = domestic_tax * foreign_income / total_income. The US credit is
    the lesser of tax paid and the limit; the Canadian credit applies the
    configured simplified rate to tax paid before capping. Whatever is not
    credited is reported as carryforward, with the carryforward window as
    metadata for the caller to track.
    
    Args:
        foreign_income: Foreign-source income included in total income
        foreign_tax_paid: Tax paid to the foreign country
        domestic_tax: Domestic tax on total (worldwide) income
        total_income: Total income; must be positive when foreign income is
        jurisdiction: Whose credit rules apply
        
    Returns:
        Limit, credit allowed and carryforward
    """
    parameters = parameters or get_tax_parameters()
    currency = domestic_tax.currency
    
    try:
        for field, amount in (
            ("foreign_income", foreign_income),
            ("foreign_tax_paid", foreign_tax_paid),
            ("domestic_tax", domestic_tax),
            ("total_income", total_income),
        ):
            validate_non_negative(field, amount)
        validate_same_currency(
            currency,
            foreign_income=foreign_income,
            foreign_tax_paid=foreign_tax_paid,
            total_income=total_income
        )
        
        if total_income.is_zero():
            if not foreign_income.is_zero():
                raise InvalidInput(
                    "total_income must be positive when foreign_income is positive",
                    field="total_income"
                )
            ratio = Decimal("0")
        elif foreign_income > total_income:
            raise InvalidInput(
                "foreign_income cannot exceed total_income",
                field="foreign_income",
                details={"foreign_income": str(foreign_income.amount), "total_income": str(total_income.amount)}
            )
        else:
            ratio = foreign_income.amount / total_income.amount
    except TaxEngineError as e:
        logger.error("Foreign tax credit inputs rejected", error=e.message, jurisdiction=jurisdiction.value)
        raise
    
    limit = domestic_tax * ratio
    credit, carryforward_years, citation = FTC_HANDLERS[jurisdiction](foreign_tax_paid, limit, parameters)
    unused = foreign_tax_paid - credit
    
    logger.info(
        "Foreign tax credit computed",
        jurisdiction=jurisdiction.value,
        limit=str(limit.amount),
        credit=str(credit.amount),
        carryforward=str(unused.amount)
    )
    
    return ForeignTaxCreditResult(
        jurisdiction=jurisdiction,
        limit=limit,
        credit_allowed=credit,
        carryforward=unused,
        excess_unused=unused,
        carryforward_years=carryforward_years,
        citation=citation
    )


# ---------------------------------------------------------------------------
# Domestic credits
# ---------------------------------------------------------------------------

CREDIT_NAMES = {
    CreditKind.CHILD_TAX: "Child Tax Credit",
    CreditKind.EARNED_INCOME: "Earned Income Tax Credit",
    CreditKind.EDUCATION: "American Opportunity Credit",
    CreditKind.LIFETIME_LEARNING: "Lifetime Learning Credit",
    CreditKind.CHILD_CARE: "Child and Dependent Care Credit",
    CreditKind.SAVERS: "Saver's Credit",
    CreditKind.CA_BASIC_PERSONAL: "Basic Personal Amount",
    CreditKind.CA_SPOUSE: "Spouse or Common-Law Partner Amount",
    CreditKind.CA_CHILD_CARE: "Child Care Expenses",
    CreditKind.CA_TUITION: "Tuition Tax Credit",
    CreditKind.CA_DISABILITY: "Disability Tax Credit",
    CreditKind.CA_MEDICAL: "Medical Expense Tax Credit",
}

CREDIT_JURISDICTION = {
    CreditKind.CHILD_TAX: Country.US,
    CreditKind.EARNED_INCOME: Country.US,
    CreditKind.EDUCATION: Country.US,
    CreditKind.LIFETIME_LEARNING: Country.US,
    CreditKind.CHILD_CARE: Country.US,
    CreditKind.SAVERS: Country.US,
    CreditKind.CA_BASIC_PERSONAL: Country.CA,
    CreditKind.CA_SPOUSE: Country.CA,
    CreditKind.CA_CHILD_CARE: Country.CA,
    CreditKind.CA_TUITION: Country.CA,
    CreditKind.CA_DISABILITY: Country.CA,
    CreditKind.CA_MEDICAL: Country.CA,
}

REFUNDABLE_CREDITS = frozenset({CreditKind.EARNED_INCOME, CreditKind.CA_MEDICAL})

ZERO = Decimal("0")


def _child_tax(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.domestic_credits
    validate_non_negative_count("children", claim.children)
    amount = claim.children * rules.child_tax_per_child
    if income > rules.child_tax_phaseout_start:
        reduction = (income - rules.child_tax_phaseout_start) * rules.child_tax_phaseout_rate
        return max(ZERO, amount - reduction), f"Reduced by {reduction} due to income"
    return amount, ""


def _earned_income(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.domestic_credits
    if 0 < income < rules.earned_income_limit:
        return min(rules.earned_income_max, income * rules.earned_income_rate), ""
    return ZERO, "Income outside eligible range"


def _education(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    validate_non_negative_count("students", claim.students)
    return claim.students * parameters.domestic_credits.education_per_student, ""


def _lifetime_learning(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    return parameters.domestic_credits.lifetime_learning_max, ""


def _child_care(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    return parameters.domestic_credits.child_care_max, ""


def _savers(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    return parameters.domestic_credits.savers_max, ""


def _cad_amount(field: str, amount: Optional[Money]) -> Decimal:
    if amount is None:
        return ZERO
    validate_non_negative(field, amount)
    validate_same_currency(Currency.CAD, **{field: amount})
    return amount.amount


# Canadian credits are worth credit_rate of an eligible base amount

def _ca_basic_personal(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    return rules.basic_personal_amount * rules.credit_rate, ""


def _ca_spouse(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    spouse_income = _cad_amount("spouse_income", claim.spouse_income)
    base = max(ZERO, rules.spouse_amount - spouse_income)
    note = f"Reduced by spouse income of {spouse_income}" if spouse_income else ""
    return base * rules.credit_rate, note


def _ca_child_care(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    validate_non_negative_count("children", claim.children)
    expenses = _cad_amount("expenses", claim.expenses)
    limit = claim.children * rules.child_care_max_per_child
    note = f"Limited to {limit} for {claim.children} children" if expenses > limit else ""
    return min(expenses, limit) * rules.credit_rate, note


def _ca_tuition(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    tuition = _cad_amount("tuition_paid", claim.tuition_paid)
    return min(tuition, rules.tuition_max) * rules.credit_rate, ""


def _ca_disability(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    return rules.disability_amount * rules.credit_rate, ""


def _ca_medical(claim, income: Decimal, parameters: TaxParameters) -> Tuple[Decimal, str]:
    rules = parameters.canada_credits
    expenses = _cad_amount("expenses", claim.expenses)
    floor = min(income * rules.medical_income_rate, rules.medical_threshold)
    eligible = max(ZERO, expenses - floor)
    return eligible * rules.credit_rate, f"Expenses above {floor} qualify"


CREDIT_HANDLERS: Dict[CreditKind, Callable[[Any, Decimal, TaxParameters], Tuple[Decimal, str]]] = {
    CreditKind.CHILD_TAX: _child_tax,
    CreditKind.EARNED_INCOME: _earned_income,
    CreditKind.EDUCATION: _education,
    CreditKind.LIFETIME_LEARNING: _lifetime_learning,
    CreditKind.CHILD_CARE: _child_care,
    CreditKind.SAVERS: _savers,
    CreditKind.CA_BASIC_PERSONAL: _ca_basic_personal,
    CreditKind.CA_SPOUSE: _ca_spouse,
    CreditKind.CA_CHILD_CARE: _ca_child_care,
    CreditKind.CA_TUITION: _ca_tuition,
    CreditKind.CA_DISABILITY: _ca_disability,
    CreditKind.CA_MEDICAL: _ca_medical,
}

_missing_handlers = (set(CreditKind) - set(CREDIT_HANDLERS)) | (set(CreditKind) - set(CREDIT_JURISDICTION))
if _missing_handlers:
    raise InvalidConfiguration(
        f"No handler or jurisdiction for credit kinds: {sorted(kind.value for kind in _missing_handlers)}"
    )

_claim_adapter = TypeAdapter(List[CreditClaim])


def parse_credit_claims(raw_claims: Iterable[Dict[str, Any]]) -> List[CreditClaim]:
    """Validate raw claim dicts into typed claims keyed on their 'kind'"""
    try:
        return _claim_adapter.validate_python(list(raw_claims))
    except ValidationError as e:
        raise InvalidInput("Invalid credit claims", field="claims", details={"errors": e.errors()})


def claims_for(claims: Sequence[CreditClaim], jurisdiction: Country) -> List[CreditClaim]:
    """The claims whose credit is granted by the given country"""
    return [claim for claim in claims if CREDIT_JURISDICTION[CreditKind(claim.kind)] == jurisdiction]


def compute_domestic_credits(
    income: Money,
    claims: Sequence[CreditClaim],
    parameters: Optional[TaxParameters] = None,
    jurisdiction: Country = Country.US
) -> DomesticCreditResult:
    """
    Evaluate each claimed credit with its kind's handler.
    
    Income is in the jurisdiction's home currency. A claim for a credit
    the other country grants raises InvalidInput.
    """
    parameters = parameters or get_tax_parameters()
    currency = HOME_CURRENCY[jurisdiction]
    validate_non_negative("income", income)
    validate_same_currency(currency, income=income)
    
    lines: List[CreditLine] = []
    for index, claim in enumerate(claims):
        kind = CreditKind(claim.kind)
        if CREDIT_JURISDICTION[kind] != jurisdiction:
            raise InvalidInput(
                f"{CREDIT_NAMES[kind]} is not a {jurisdiction.value} credit",
                field=f"claims[{index}].kind",
                details={"kind": kind.value, "jurisdiction": jurisdiction.value}
            )
        amount, note = CREDIT_HANDLERS[kind](claim, income.amount, parameters)
        if amount > 0:
            lines.append(CreditLine(
                kind=kind,
                name=CREDIT_NAMES[kind],
                amount=Money(amount=amount, currency=currency),
                refundable=kind in REFUNDABLE_CREDITS,
                note=note
            ))
    
    nonrefundable = total((line.amount for line in lines if not line.refundable), currency)
    refundable = total((line.amount for line in lines if line.refundable), currency)
    
    logger.info(
        "Domestic credits computed",
        jurisdiction=jurisdiction.value,
        claims=len(claims),
        nonrefundable=str(nonrefundable.amount),
        refundable=str(refundable.amount)
    )
    
    return DomesticCreditResult(
        jurisdiction=jurisdiction,
        credits=lines,
        total_nonrefundable=nonrefundable,
        total_refundable=refundable,
        total=nonrefundable + refundable
    )
