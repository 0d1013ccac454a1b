"""
Itemized Deductions Calculator and capital loss planning
"""

from typing import Dict, List, Optional, Sequence

import structlog

from crosstax.core.parameters import TaxParameters, get_tax_parameters
from crosstax.models.deductions import (
    DeductionComparison,
    DeductionItem,
    DeductionLine,
    DeductionType,
    ItemizedDeductionResult,
    LossHarvestResult,
)
from crosstax.models.money import Currency, Money, total
from crosstax.services.liability_engine import standard_deduction
from crosstax.services.tax_validators import validate_non_negative, validate_same_currency

logger = structlog.get_logger()

# Order lines are reported in
CATEGORY_ORDER = (
    DeductionType.MEDICAL,
    DeductionType.STATE_LOCAL,
    DeductionType.MORTGAGE,
    DeductionType.CHARITY,
)


def _percent(rate) -> str:
    return f"{(rate * 100).normalize():f}%"


def compute_itemized_deductions(
    items: Sequence[DeductionItem],
    adjusted_gross_income: Money,
    parameters: Optional[TaxParameters] = None
) -> ItemizedDeductionResult:
    """
    Total US itemized deductions after statutory floors and caps.
    
    Medical expenses count only above the AGI floor, state and local taxes
    are capped (SALT cap), mortgage interest counts in full and charitable
    gifts are limited to a share of AGI.
    """
    rules = (parameters or get_tax_parameters()).itemized_deductions
    validate_non_negative("adjusted_gross_income", adjusted_gross_income)
    validate_same_currency(Currency.USD, adjusted_gross_income=adjusted_gross_income)
    
    claimed: Dict[DeductionType, Money] = {}
    for index, item in enumerate(items):
        validate_non_negative(f"items[{index}].amount", item.amount)
        validate_same_currency(Currency.USD, **{f"items[{index}].amount": item.amount})
        claimed[item.type] = claimed.get(item.type, Money.zero(Currency.USD)) + item.amount
    
    agi = adjusted_gross_income
    lines: List[DeductionLine] = []
    
    for category in CATEGORY_ORDER:
        if category not in claimed:
            continue
        amount = claimed[category]
        note = ""
        
        if category == DeductionType.MEDICAL:
            allowed = (amount - agi * rules.medical_agi_floor).floor_zero()
            note = f"Only the amount above {_percent(rules.medical_agi_floor)} of AGI"
        elif category == DeductionType.STATE_LOCAL:
            cap = Money(amount=rules.salt_cap, currency=Currency.USD)
            allowed = min(amount, cap)
            if amount > cap:
                note = f"Capped at {cap}"
        elif category == DeductionType.CHARITY:
            limit = agi * rules.charity_agi_limit
            allowed = min(amount, limit)
            if amount > limit:
                note = f"Limited to {_percent(rules.charity_agi_limit)} of AGI"
        else:
            allowed = amount
        
        lines.append(DeductionLine(category=category, claimed=amount, allowed=allowed, note=note))
    
    result_total = total((line.allowed for line in lines), Currency.USD)
    logger.info("Itemized deductions computed", total=str(result_total.amount), categories=len(lines))
    
    return ItemizedDeductionResult(total=result_total, lines=lines)


def compare_deductions(
    filing_status: str,
    itemized_total: Money,
    parameters: Optional[TaxParameters] = None
) -> DeductionComparison:
    """Pick the larger of the standard and itemized deduction"""
    validate_non_negative("itemized_total", itemized_total)
    standard = standard_deduction(filing_status, parameters)
    validate_same_currency(standard.currency, itemized_total=itemized_total)
    
    if itemized_total > standard:
        better = "itemized"
        savings = itemized_total - standard
        recommendation = f"Itemized saves {savings}"
    else:
        better = "standard"
        savings = standard - itemized_total
        recommendation = f"Standard deduction saves {savings}"
    
    return DeductionComparison(
        standard=standard,
        itemized=itemized_total,
        better=better,
        savings=savings,
        recommendation=recommendation
    )


def analyze_tax_loss_harvesting(
    short_term_losses: Sequence[Money],
    long_term_losses: Sequence[Money],
    capital_gains: Optional[Money] = None,
    parameters: Optional[TaxParameters] = None
) -> LossHarvestResult:
    """
    Apply realized capital losses for the year.
    
    Losses are taken by magnitude, so -500 and 500 both mean a 500 loss.
    They first offset realized capital gains, then up to the ordinary
    income limit ($3,000) against other income. The rest carries forward.
    """
    parameters = parameters or get_tax_parameters()
    limit = Money(amount=parameters.capital_losses.ordinary_income_limit, currency=Currency.USD)
    gains = capital_gains if capital_gains is not None else Money.zero(Currency.USD)
    validate_non_negative("capital_gains", gains)
    validate_same_currency(Currency.USD, capital_gains=gains)
    
    for field, losses in (("short_term_losses", short_term_losses), ("long_term_losses", long_term_losses)):
        for index, loss in enumerate(losses):
            validate_same_currency(Currency.USD, **{f"{field}[{index}]": loss})
    
    short_term = total((abs(loss) for loss in short_term_losses), Currency.USD)
    long_term = total((abs(loss) for loss in long_term_losses), Currency.USD)
    total_losses = short_term + long_term
    
    against_gains = min(total_losses, gains)
    against_ordinary = min(total_losses - against_gains, limit)
    carryforward = total_losses - against_gains - against_ordinary
    
    if total_losses.is_zero():
        recommendation = "No harvesting opportunities identified"
    else:
        recommendation = f"Deduct {against_ordinary} against ordinary income this year, carry forward {carryforward}"
    
    logger.info(
        "Tax loss harvesting analyzed",
        total_losses=str(total_losses.amount),
        offset_against_gains=str(against_gains.amount),
        ordinary_income_offset=str(against_ordinary.amount),
        carryforward=str(carryforward.amount)
    )
    
    return LossHarvestResult(
        short_term_losses=short_term,
        long_term_losses=long_term,
        total_losses=total_losses,
        offset_against_gains=against_gains,
        ordinary_income_offset=against_ordinary,
        carryforward=carryforward,
        recommendation=recommendation
    )
