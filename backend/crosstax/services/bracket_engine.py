"""
Bracket Engine - progressive tax over an arbitrary bracket table
"""

from decimal import Decimal
from typing import List

import structlog

from crosstax.models.money import Money
from crosstax.models.tax import BracketBreakdown, BracketTable, BracketTaxResult
from crosstax.services.tax_validators import (
    validate_bracket_table,
    validate_non_negative,
    validate_same_currency,
)

logger = structlog.get_logger()


def compute_bracket_tax(taxable_income: Money, table: BracketTable) -> BracketTaxResult:
    """
    Calculate tax by walking the bracket table in order.
    
    Tax is accumulated at full Decimal precision; nothing is rounded between
    brackets. Only brackets that receive income appear in the breakdown.
    
    Args:
        taxable_income: Non-negative income in the table's currency
        table: Progressive table ending with an unbounded bracket
        
    Returns:
        Total tax and its per-bracket decomposition
    """
    validate_non_negative("taxable_income", taxable_income)
    validate_same_currency(table.currency, taxable_income=taxable_income)
    validate_bracket_table(table)
    
    income = taxable_income.amount
    total_tax = Decimal("0")
    breakdown: List[BracketBreakdown] = []
    previous_bound = Decimal("0")
    
    for bracket in table.brackets:
        if income <= previous_bound:
            break
        
        if bracket.upper_bound is None:
            taxable_in_bracket = income - previous_bound
        else:
            taxable_in_bracket = min(income, bracket.upper_bound) - previous_bound
        
        if taxable_in_bracket > 0:
            tax_in_bracket = taxable_in_bracket * bracket.rate
            total_tax += tax_in_bracket
            
            breakdown.append(BracketBreakdown(
                lower_bound=previous_bound,
                upper_bound=bracket.upper_bound,
                rate=bracket.rate,
                income_in_bracket=Money(amount=taxable_in_bracket, currency=table.currency),
                tax_in_bracket=Money(amount=tax_in_bracket, currency=table.currency)
            ))
        
        if bracket.upper_bound is not None:
            previous_bound = bracket.upper_bound
    
    logger.debug(
        "Bracket tax computed",
        table=table.name,
        taxable_income=str(income),
        tax=str(total_tax),
        brackets_used=len(breakdown)
    )
    
    return BracketTaxResult(
        taxable_income=taxable_income,
        tax=Money(amount=total_tax, currency=table.currency),
        breakdown=breakdown
    )


def marginal_rate(taxable_income: Money, table: BracketTable) -> Decimal:
    """Rate applying to the next unit of income"""
    validate_non_negative("taxable_income", taxable_income)
    validate_bracket_table(table)
    
    for bracket in table.brackets:
        if bracket.upper_bound is None or taxable_income.amount < bracket.upper_bound:
            return bracket.rate
    return table.brackets[-1].rate
