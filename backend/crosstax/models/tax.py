"""
Bracket and Liability Models
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .money import Currency, Money


class Bracket(BaseModel):
    """One layer of a progressive table; upper_bound None means unbounded"""
    upper_bound: Optional[Decimal] = Field(...)
    rate: Decimal
    
    class Config:
        frozen = True


class BracketTable(BaseModel):
    """Ordered progressive bracket table covering [0, infinity)"""
    name: str
    currency: Currency
    brackets: List[Bracket]
    citation: Optional[str] = None
    
    class Config:
        frozen = True


class BracketBreakdown(BaseModel):
    """Income and tax falling inside one bracket"""
    lower_bound: Decimal
    upper_bound: Optional[Decimal] = None
    rate: Decimal
    income_in_bracket: Money
    tax_in_bracket: Money
    
    class Config:
        frozen = True


class BracketTaxResult(BaseModel):
    """Bracket engine output: total tax and its per-bracket decomposition"""
    taxable_income: Money
    tax: Money
    breakdown: List[BracketBreakdown]
    
    class Config:
        frozen = True


class TaxLayer(BaseModel):
    """A bracket table applied as one jurisdiction layer (federal, state, provincial)"""
    name: str
    table: BracketTable
    
    class Config:
        frozen = True


class LayerBreakdown(BaseModel):
    """One bracket row of one layer"""
    layer_name: str
    rate: Decimal
    income_in_layer: Money
    tax_in_layer: Money
    
    class Config:
        frozen = True


class LayerTotal(BaseModel):
    layer_name: str
    tax: Money
    
    class Config:
        frozen = True


class LiabilityResult(BaseModel):
    """Total liability across all layers for a single taxable base"""
    gross_income: Money
    deductions: Money
    taxable_income: Money
    tax_by_jurisdiction_layer: List[LayerBreakdown]
    layer_totals: List[LayerTotal]
    total_tax: Money
    effective_rate: Decimal
    
    class Config:
        frozen = True
    
    @property
    def currency(self) -> Currency:
        return self.total_tax.currency
    
    def tax_for_layer(self, layer_name: str) -> Money:
        for layer_total in self.layer_totals:
            if layer_total.layer_name == layer_name:
                return layer_total.tax
        return Money.zero(self.currency)


class StateAllocation(BaseModel):
    """Income allocated to one state and the tax it draws"""
    state_code: str
    income: Money
    state_tax: Money
    local_tax: Money
    total_tax: Money
    
    class Config:
        frozen = True


class MultiStateResult(BaseModel):
    states: List[StateAllocation]
    total_state_tax: Money
    total_local_tax: Money
    total_tax: Money
    
    class Config:
        frozen = True
