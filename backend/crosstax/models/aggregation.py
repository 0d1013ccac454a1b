"""
Aggregation and Projection Models
"""

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from .money import Currency, Money


class JurisdictionTotal(BaseModel):
    """One jurisdiction's liability in its own and the reporting currency"""
    jurisdiction: str
    original_tax: Money
    converted_tax: Money
    converted_taxable_income: Money
    
    class Config:
        frozen = True


class AggregateLiability(BaseModel):
    """Liabilities from several jurisdictions combined in one currency"""
    currency: Currency
    total_tax: Money
    total_taxable_income: Money
    effective_rate: Decimal
    jurisdictions: List[JurisdictionTotal]
    
    class Config:
        frozen = True


class Projection(BaseModel):
    """Linear run-rate extrapolation (no seasonality)"""
    total_to_date: Money
    months_elapsed: int
    months_in_period: int
    monthly_run_rate: Money
    projected_total: Money
    next_quarter: Money
    
    class Config:
        frozen = True


class EstimatedPayment(BaseModel):
    quarter: str
    due_date: date
    amount: Money
    
    class Config:
        frozen = True


class EstimatedTaxSchedule(BaseModel):
    annual_tax: Money
    quarterly_payment: Money
    safe_harbor_90: Money
    safe_harbor_100: Money
    payments: List[EstimatedPayment]
    
    class Config:
        frozen = True
