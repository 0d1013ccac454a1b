"""
Residency Facts and Decision Models
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .money import Country


class ResidencyType(str, Enum):
    """Residency classification outcomes"""
    NONRESIDENT = "nonresident"
    LAWFUL_PERMANENT_RESIDENT = "lawful_permanent_resident"
    SUBSTANTIAL_PRESENCE = "substantial_presence"
    FACTUAL_RESIDENT = "factual_resident"
    DEEMED_RESIDENT = "deemed_resident"


class USResidencyFacts(BaseModel):
    """Facts for the US green card and substantial presence tests"""
    tax_year: int
    days_present_current_year: int
    days_present_prior_year_1: int
    days_present_prior_year_2: int
    exempt_days: int
    has_green_card: bool
    visa_category: Optional[str]
    close_contacts: int
    has_home_in_country: bool
    
    class Config:
        frozen = True


class CanadaResidencyFacts(BaseModel):
    """Facts for the Canadian 183-day and residential ties tests"""
    tax_year: int
    days_present_current_year: int
    days_present_prior_year: int
    has_home_in_country: bool
    has_spouse_in_country: bool
    has_dependents_in_country: bool
    holds_driver_license: bool
    holds_health_card: bool
    holds_bank_account: bool
    holds_memberships: bool
    works_in_country: bool
    
    class Config:
        frozen = True


class AuditEntry(BaseModel):
    """One evaluated rule in a residency audit trail"""
    rule: str
    outcome: str
    citation: str
    detail: Optional[str] = None
    informational: bool = False
    
    class Config:
        frozen = True


class ResidentialTie(BaseModel):
    tie: str
    weight: Decimal
    
    class Config:
        frozen = True


class ResidencyMetrics(BaseModel):
    weighted_days: Optional[Decimal] = None
    adjusted_days_current_year: Optional[int] = None
    residential_tie_score: Optional[Decimal] = None
    tie_breakdown: List[ResidentialTie] = []
    
    class Config:
        frozen = True


class ResidencyDecision(BaseModel):
    """Residency classification with the rules that produced it"""
    jurisdiction: Country
    is_resident: bool
    residency_type: ResidencyType
    audit_trail: List[AuditEntry]
    metrics: ResidencyMetrics
    
    class Config:
        frozen = True
    
    def has_rule(self, rule: str) -> bool:
        return any(entry.rule == rule for entry in self.audit_trail)
