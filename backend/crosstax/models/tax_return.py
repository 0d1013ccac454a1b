"""
Cross-Border Return Models
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .aggregation import AggregateLiability, EstimatedTaxSchedule
from .credits import CreditClaim, DomesticCreditResult, ForeignTaxCreditResult, TotalizationResult, TreatyBenefit
from .forms import FormRequirement
from .income import IncomeItem
from .money import Country, Money
from .residency import CanadaResidencyFacts, ResidencyDecision, USResidencyFacts
from .tax import LiabilityResult, MultiStateResult


class EmploymentArrangement(BaseModel):
    """Where a cross-border worker lives and who employs them"""
    employee_country: str
    employer_country: str
    employment_income: Money
    
    class Config:
        frozen = True


class CrossBorderProfile(BaseModel):
    """Everything needed to compute a US/Canada return for one taxpayer"""
    us_facts: USResidencyFacts
    canada_facts: CanadaResidencyFacts
    income_items: List[IncomeItem] = []
    filing_status: str
    state_code: Optional[str] = None
    # Income apportioned to several states; replaces the single state_code layer
    state_allocations: Dict[str, Money] = {}
    province: str = Field(..., min_length=2, max_length=2)
    us_deductions: Optional[Money] = None  # None means the standard deduction
    canada_deductions: Optional[Money] = None
    credit_claims: List[CreditClaim] = []
    employment: Optional[EmploymentArrangement] = None
    
    class Config:
        frozen = True


class CrossBorderComputation(BaseModel):
    """Result of a full cross-border computation"""
    tax_year: int
    ruleset_version: str
    residency: Dict[Country, ResidencyDecision]
    liabilities: Dict[Country, LiabilityResult]
    foreign_tax_credits: Dict[Country, ForeignTaxCreditResult] = {}
    net_tax: Dict[Country, Money] = {}
    domestic_credits: Optional[DomesticCreditResult] = None
    canada_credits: Optional[DomesticCreditResult] = None
    multi_state: Optional[MultiStateResult] = None
    treaty_benefits: Dict[Country, List[TreatyBenefit]] = {}
    totalization: Optional[TotalizationResult] = None
    forms: List[FormRequirement] = []
    aggregate: AggregateLiability
    net_tax_usd: Money
    estimated_payments: Optional[EstimatedTaxSchedule] = None
    
    class Config:
        frozen = True
