"""
Residency Engine - US and Canada tax residency tests

Each test is an ordered rule evaluation: the first decisive rule sets the
outcome and later informational rules only add notes to the audit trail.
Nothing here flips a decision after it is made.
"""

from decimal import Decimal, ROUND_HALF_UP
from fractions import Fraction
from typing import List, Optional, Tuple

import structlog

from crosstax.core.exceptions import TaxEngineError
from crosstax.core.parameters import TieWeights, get_tax_parameters
from crosstax.models.money import Country
from crosstax.models.residency import (
    AuditEntry,
    CanadaResidencyFacts,
    ResidencyDecision,
    ResidencyMetrics,
    ResidencyType,
    ResidentialTie,
    USResidencyFacts,
)
from crosstax.services.tax_validators import validate_day_count, validate_non_negative_count

logger = structlog.get_logger()

# Rule names other modules look for in an audit trail
RULE_GREEN_CARD = "Green Card Test"
RULE_EXEMPT_INDIVIDUAL = "Exempt Individual"
RULE_SUBSTANTIAL_PRESENCE = "Substantial Presence Test"
RULE_FIRST_YEAR_ELECTION = "First Year Election Available"
RULE_CLOSER_CONNECTION = "Closer Connection Exception"
RULE_183_DAY = "183-Day Rule"
RULE_RESIDENTIAL_TIES = "Significant Residential Ties"
RULE_PART_YEAR = "Part-Year Resident Possible"
RULE_DEPARTURE_TAX = "Departure Tax"

CANADA_RESIDENCY_CITATION = "ITA 2(1), CRA Income Tax Folio S5-F1-C1"

# (facts attribute, weight key, label)
CANADA_TIES: Tuple[Tuple[str, str, str], ...] = (
    ("has_home_in_country", "home", "Home in Canada"),
    ("has_spouse_in_country", "spouse", "Spouse in Canada"),
    ("has_dependents_in_country", "dependents", "Dependents in Canada"),
    ("holds_driver_license", "driver_license", "Driver license in Canada"),
    ("holds_health_card", "health_card", "Health card in Canada"),
    ("holds_bank_account", "bank_accounts", "Bank accounts in Canada"),
    ("holds_memberships", "memberships", "Memberships in Canada"),
    ("works_in_country", "work", "Work in Canada"),
)


def normalize_visa_category(visa_category: Optional[str]) -> Optional[str]:
    """
    Reduce a visa label to its class letter: "F-1" -> "F", "j1" -> "J".
    
    Returns None for blank labels.
    """
    if not visa_category:
        return None
    label = visa_category.strip().upper()
    if not label:
        return None
    return label.split("-")[0].rstrip("0123456789") or None


def _display_days(weighted: Fraction) -> Decimal:
    value = Decimal(weighted.numerator) / Decimal(weighted.denominator)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _validate_us_facts(facts: USResidencyFacts) -> None:
    validate_day_count("days_present_current_year", facts.days_present_current_year, facts.tax_year)
    validate_day_count("days_present_prior_year_1", facts.days_present_prior_year_1, facts.tax_year - 1)
    validate_day_count("days_present_prior_year_2", facts.days_present_prior_year_2, facts.tax_year - 2)
    validate_day_count("exempt_days", facts.exempt_days, facts.tax_year)
    validate_non_negative_count("close_contacts", facts.close_contacts)


def classify_us_residency(facts: USResidencyFacts, rules=None) -> ResidencyDecision:
    """
    Determine US tax residency (IRC 7701(b)).
    
    Green card holders are residents without further tests. Otherwise the
    substantial presence test weights current-year days fully, prior-year
    days by 1/3 and the year before by 1/6, after removing exempt days for
    F, J, M and Q visa holders.
    
    Args:
        facts: Fully populated US residency facts
        rules: USResidencyRules override (defaults to loaded parameters)
        
    Returns:
        Residency decision with audit trail
    """
    try:
        _validate_us_facts(facts)
    except TaxEngineError as e:
        logger.error("US residency facts rejected", error=e.message, field=e.field)
        raise
    
    rules = rules or get_tax_parameters().us_residency
    logger.info("Determining US residency", tax_year=facts.tax_year)
    
    audit: List[AuditEntry] = []
    
    if facts.has_green_card:
        audit.append(AuditEntry(
            rule=RULE_GREEN_CARD,
            outcome="US resident by virtue of valid green card",
            citation="IRC 7701(b)(1)"
        ))
        return ResidencyDecision(
            jurisdiction=Country.US,
            is_resident=True,
            residency_type=ResidencyType.LAWFUL_PERMANENT_RESIDENT,
            audit_trail=audit,
            metrics=ResidencyMetrics()
        )
    
    days_current = facts.days_present_current_year
    visa_class = normalize_visa_category(facts.visa_category)
    exempt_classes = {category.upper() for category in rules.exempt_visa_categories}
    
    if visa_class in exempt_classes and facts.exempt_days > 0:
        excluded = min(facts.exempt_days, days_current)
        days_current -= excluded
        audit.append(AuditEntry(
            rule=RULE_EXEMPT_INDIVIDUAL,
            outcome=f"Subtracted {excluded} exempt days from presence count",
            citation="IRC 7701(b)(5)",
            detail=f"{visa_class} visa holder; {days_current} countable days remain"
        ))
    
    weighted = (
        Fraction(days_current)
        + Fraction(facts.days_present_prior_year_1, 3)
        + Fraction(facts.days_present_prior_year_2, 6)
    )
    weighted_display = _display_days(weighted)
    threshold = rules.substantial_presence_threshold
    
    metrics = ResidencyMetrics(
        weighted_days=weighted_display,
        adjusted_days_current_year=days_current
    )
    
    if weighted >= threshold:
        is_resident = True
        residency_type = ResidencyType.SUBSTANTIAL_PRESENCE
        audit.append(AuditEntry(
            rule=RULE_SUBSTANTIAL_PRESENCE,
            outcome=f"Weighted days ({weighted_display}) >= {threshold}",
            citation="IRC 7701(b)(3)"
        ))
        
        if facts.days_present_prior_year_1 == 0 and facts.days_present_prior_year_2 == 0:
            audit.append(AuditEntry(
                rule=RULE_FIRST_YEAR_ELECTION,
                outcome="May elect to be treated as resident for first year",
                citation="IRC 7701(b)(4)",
                informational=True
            ))
        
        if facts.close_contacts < rules.closer_connection_max_contacts and not facts.has_home_in_country:
            audit.append(AuditEntry(
                rule=RULE_CLOSER_CONNECTION,
                outcome="May be treated as nonresident - file Form 8840",
                citation="IRC 7701(b)(3)(B)",
                detail="Closer connection to a foreign country may apply; the decision above is unchanged",
                informational=True
            ))
    else:
        is_resident = False
        residency_type = ResidencyType.NONRESIDENT
        audit.append(AuditEntry(
            rule=RULE_SUBSTANTIAL_PRESENCE,
            outcome=f"Weighted days ({weighted_display}) < {threshold}",
            citation="IRC 7701(b)(3)",
            detail="Not a US resident under substantial presence test"
        ))
    
    logger.info(
        "US residency determined",
        is_resident=is_resident,
        residency_type=residency_type.value,
        weighted_days=str(weighted_display)
    )
    
    return ResidencyDecision(
        jurisdiction=Country.US,
        is_resident=is_resident,
        residency_type=residency_type,
        audit_trail=audit,
        metrics=metrics
    )


def residential_ties(facts: CanadaResidencyFacts, tie_weights: TieWeights) -> Tuple[Decimal, List[ResidentialTie]]:
    """Weighted residential tie score and the ties that contributed to it"""
    score = Decimal("0")
    breakdown: List[ResidentialTie] = []
    
    for attribute, weight_key, label in CANADA_TIES:
        if getattr(facts, attribute):
            weight = getattr(tie_weights, weight_key)
            score += weight
            breakdown.append(ResidentialTie(tie=label, weight=weight))
    
    return score, breakdown


def classify_canada_residency(facts: CanadaResidencyFacts, rules=None) -> ResidencyDecision:
    """
    Determine Canadian tax residency.
    
    183 or more days makes a factual resident regardless of ties; otherwise
    a residential tie score at or above the threshold makes a deemed
    resident. Part-year and departure tax notes are informational.
    """
    try:
        validate_day_count("days_present_current_year", facts.days_present_current_year, facts.tax_year)
        validate_day_count("days_present_prior_year", facts.days_present_prior_year, facts.tax_year - 1)
    except TaxEngineError as e:
        logger.error("Canada residency facts rejected", error=e.message, field=e.field)
        raise
    
    rules = rules or get_tax_parameters().canada_residency
    logger.info("Determining Canada residency", tax_year=facts.tax_year)
    
    days = facts.days_present_current_year
    score, breakdown = residential_ties(facts, rules.tie_weights)
    ties_detail = ", ".join(f"{tie.tie} ({tie.weight})" for tie in breakdown) or "No residential ties"
    
    audit: List[AuditEntry] = []
    
    if days >= rules.day_threshold:
        is_resident = True
        residency_type = ResidencyType.FACTUAL_RESIDENT
        audit.append(AuditEntry(
            rule=RULE_183_DAY,
            outcome=f"Spent {days} days in Canada (>= {rules.day_threshold})",
            citation=CANADA_RESIDENCY_CITATION
        ))
    elif score >= rules.tie_score_threshold:
        is_resident = True
        residency_type = ResidencyType.DEEMED_RESIDENT
        audit.append(AuditEntry(
            rule=RULE_RESIDENTIAL_TIES,
            outcome=f"Residential ties score: {score}",
            citation=CANADA_RESIDENCY_CITATION,
            detail=ties_detail
        ))
    else:
        is_resident = False
        residency_type = ResidencyType.NONRESIDENT
        audit.append(AuditEntry(
            rule=RULE_RESIDENTIAL_TIES,
            outcome=f"Residential ties score {score} below {rules.tie_score_threshold}; not resident",
            citation=CANADA_RESIDENCY_CITATION,
            detail=ties_detail
        ))
    
    if rules.part_year_min_days <= days < rules.day_threshold:
        audit.append(AuditEntry(
            rule=RULE_PART_YEAR,
            outcome="May be part-year resident if significant ties established",
            citation="ITA 2(1)(b)",
            informational=True
        ))
    
    if facts.days_present_prior_year >= rules.day_threshold and days < rules.day_threshold:
        audit.append(AuditEntry(
            rule=RULE_DEPARTURE_TAX,
            outcome="May be subject to departure tax on worldwide income",
            citation="ITA 128.1",
            informational=True
        ))
    
    logger.info(
        "Canada residency determined",
        is_resident=is_resident,
        residency_type=residency_type.value,
        tie_score=str(score)
    )
    
    return ResidencyDecision(
        jurisdiction=Country.CA,
        is_resident=is_resident,
        residency_type=residency_type,
        audit_trail=audit,
        metrics=ResidencyMetrics(
            residential_tie_score=score,
            tie_breakdown=breakdown,
            adjusted_days_current_year=days
        )
    )
