"""
Deduction Models
"""

from enum import Enum
from typing import List

from pydantic import BaseModel

from .money import Money


class DeductionType(str, Enum):
    """Itemizable deduction categories"""
    MEDICAL = "medical"
    STATE_LOCAL = "state_local"
    MORTGAGE = "mortgage"
    CHARITY = "charity"


class DeductionItem(BaseModel):
    type: DeductionType
    amount: Money
    
    class Config:
        frozen = True


class DeductionLine(BaseModel):
    """Claimed versus allowed amount for one category"""
    category: DeductionType
    claimed: Money
    allowed: Money
    note: str = ""
    
    class Config:
        frozen = True


class ItemizedDeductionResult(BaseModel):
    total: Money
    lines: List[DeductionLine]
    
    class Config:
        frozen = True


class DeductionComparison(BaseModel):
    """Standard versus itemized deduction"""
    standard: Money
    itemized: Money
    better: str
    savings: Money
    recommendation: str
    
    class Config:
        frozen = True


class LossHarvestResult(BaseModel):
    """How realized capital losses are used this year and carried forward"""
    short_term_losses: Money
    long_term_losses: Money
    total_losses: Money
    offset_against_gains: Money
    ordinary_income_offset: Money
    carryforward: Money
    recommendation: str
    
    class Config:
        frozen = True
