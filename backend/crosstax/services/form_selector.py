"""
Form Selector - which filing forms a taxpayer needs
"""

from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Sequence, Set

import structlog

from crosstax.models.forms import FormRequirement
from crosstax.models.income import BUSINESS_TYPES, EMPLOYMENT_TYPES, IncomeItem, IncomeType
from crosstax.models.money import Country
from crosstax.models.residency import ResidencyDecision
from crosstax.services.residency_engine import RULE_CLOSER_CONNECTION, RULE_EXEMPT_INDIVIDUAL

logger = structlog.get_logger()


class FormRule(NamedTuple):
    code: str
    name: str
    applies: Callable[[FrozenSet[IncomeType], ResidencyDecision], bool]


def _resident(types, decision) -> bool:
    return decision.is_resident


def _nonresident_with_income(types, decision) -> bool:
    return not decision.is_resident and bool(types)


def _files_return(types, decision) -> bool:
    return decision.is_resident or bool(types)


def _with_return(*income_types: IncomeType):
    wanted = frozenset(income_types)
    
    def applies(types, decision) -> bool:
        return _files_return(types, decision) and bool(wanted & types)
    return applies


def _canada_with_return(*income_types: IncomeType):
    wanted = frozenset(income_types)
    
    def applies(types, decision) -> bool:
        return decision.is_resident and bool(wanted & types)
    return applies


def _audit_rule(rule_name: str):
    def applies(types, decision) -> bool:
        return decision.has_rule(rule_name)
    return applies


# Canonical order per jurisdiction
FORM_CATALOG: Dict[Country, Sequence[FormRule]] = {
    Country.US: (
        FormRule("1040", "U.S. Individual Income Tax Return", _resident),
        FormRule("1040-NR", "U.S. Nonresident Alien Income Tax Return", _nonresident_with_income),
        FormRule("W-2", "Wage and Tax Statement", _with_return(*EMPLOYMENT_TYPES)),
        FormRule("Schedule C", "Profit or Loss From Business", _with_return(*BUSINESS_TYPES)),
        FormRule("Schedule E", "Supplemental Income and Loss", _with_return(IncomeType.RENTAL)),
        FormRule("Schedule D", "Capital Gains and Losses", _with_return(IncomeType.CAPITAL_GAINS)),
        FormRule("8840", "Closer Connection Exception Statement for Aliens", _audit_rule(RULE_CLOSER_CONNECTION)),
        FormRule("8843", "Statement for Exempt Individuals", _audit_rule(RULE_EXEMPT_INDIVIDUAL)),
    ),
    Country.CA: (
        FormRule("T1", "Income Tax and Benefit Return", _resident),
        FormRule("T4", "Statement of Remuneration Paid", _canada_with_return(*EMPLOYMENT_TYPES)),
        FormRule("T2125", "Statement of Business or Professional Activities", _canada_with_return(*BUSINESS_TYPES)),
        FormRule("T776", "Statement of Real Estate Rentals", _canada_with_return(IncomeType.RENTAL)),
    ),
}

JURISDICTION_ORDER = (Country.US, Country.CA)


def income_types_by_country(bases: Mapping[Country, Iterable[IncomeItem]]) -> Dict[Country, Set[IncomeType]]:
    """Income types present in each country's taxable base"""
    return {country: {item.type for item in items} for country, items in bases.items()}


def select_required_forms(
    income_types_present: Mapping[Country, Iterable[IncomeType]],
    residency_decisions: Mapping[Country, ResidencyDecision]
) -> List[FormRequirement]:
    """
    Forms required for the given income types and residency decisions.
    
    US forms come before Canadian forms and each jurisdiction follows the
    catalog order, so the result is stable for equal inputs. Jurisdictions
    without a residency decision contribute no forms.
    """
    forms: List[FormRequirement] = []
    
    for country in JURISDICTION_ORDER:
        decision = residency_decisions.get(country)
        if decision is None:
            continue
        types = frozenset(income_types_present.get(country, ()))
        
        for rule in FORM_CATALOG[country]:
            if rule.applies(types, decision):
                forms.append(FormRequirement(code=rule.code, name=rule.name, jurisdiction=country))
    
    logger.info("Required forms selected", forms=[form.code for form in forms])
    return forms
