"""
Income Item Models
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .money import Country, Money


class IncomeType(str, Enum):
    """Income categories understood by the engines"""
    WAGES = "wages"
    EMPLOYMENT = "employment"
    SELF_EMPLOYMENT = "self_employment"
    BUSINESS_INCOME = "business_income"
    RENTAL = "rental"
    CAPITAL_GAINS = "capital_gains"
    DIVIDENDS = "dividends"
    INTEREST = "interest"
    PENSION = "pension"
    OTHER = "other"


EMPLOYMENT_TYPES = frozenset({IncomeType.WAGES, IncomeType.EMPLOYMENT})
BUSINESS_TYPES = frozenset({IncomeType.SELF_EMPLOYMENT, IncomeType.BUSINESS_INCOME})


class PensionSource(str, Enum):
    GOVERNMENT = "government"
    PRIVATE = "private"


class IncomeItem(BaseModel):
    """A single income item; its currency is amount.currency"""
    type: IncomeType
    amount: Money
    source_country: Optional[Country] = None
    ownership_percent: Optional[Decimal] = None
    has_permanent_establishment: Optional[bool] = None
    pension_source: Optional[PensionSource] = None
    
    class Config:
        frozen = True
