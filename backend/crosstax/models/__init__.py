# Models package - Export all models

from .money import Money, Currency, Country, CurrencyRates, HOME_CURRENCY, total

from .tax import (
    Bracket, BracketTable, BracketBreakdown, BracketTaxResult,
    TaxLayer, LayerBreakdown, LayerTotal, LiabilityResult,
    StateAllocation, MultiStateResult
)

from .residency import (
    ResidencyType, USResidencyFacts, CanadaResidencyFacts,
    AuditEntry, ResidentialTie, ResidencyMetrics, ResidencyDecision
)

from .income import IncomeType, IncomeItem, PensionSource, EMPLOYMENT_TYPES, BUSINESS_TYPES

from .credits import (
    FTCJurisdiction, ForeignTaxCreditResult, TreatyBenefit,
    TotalizationStatus, TotalizationResult,
    CreditKind, CreditClaim, CreditLine, DomesticCreditResult,
    ChildTaxCreditClaim, EarnedIncomeCreditClaim, EducationCreditClaim,
    LifetimeLearningCreditClaim, ChildCareCreditClaim, SaversCreditClaim,
    CanadaBasicPersonalClaim, CanadaSpouseClaim, CanadaChildCareClaim,
    CanadaTuitionClaim, CanadaDisabilityClaim, CanadaMedicalClaim
)

from .forms import FormRequirement

__all__ = [
    # Money
    "Money", "Currency", "Country", "CurrencyRates", "HOME_CURRENCY", "total",
    
    # Brackets and liability
    "Bracket", "BracketTable", "BracketBreakdown", "BracketTaxResult",
    "TaxLayer", "LayerBreakdown", "LayerTotal", "LiabilityResult",
    "StateAllocation", "MultiStateResult",
    
    # Residency
    "ResidencyType", "USResidencyFacts", "CanadaResidencyFacts",
    "AuditEntry", "ResidentialTie", "ResidencyMetrics", "ResidencyDecision",
    
    # Income
    "IncomeType", "IncomeItem", "PensionSource", "EMPLOYMENT_TYPES", "BUSINESS_TYPES",
    
    # Credits, treaty, totalization
    "FTCJurisdiction", "ForeignTaxCreditResult", "TreatyBenefit",
    "TotalizationStatus", "TotalizationResult",
    "CreditKind", "CreditClaim", "CreditLine", "DomesticCreditResult",
    "ChildTaxCreditClaim", "EarnedIncomeCreditClaim", "EducationCreditClaim",
    "LifetimeLearningCreditClaim", "ChildCareCreditClaim", "SaversCreditClaim",
    "CanadaBasicPersonalClaim", "CanadaSpouseClaim", "CanadaChildCareClaim",
    "CanadaTuitionClaim", "CanadaDisabilityClaim", "CanadaMedicalClaim",
    
    # Forms
    "FormRequirement"
]

from .deductions import (
    DeductionType, DeductionItem, DeductionLine,
    ItemizedDeductionResult, DeductionComparison, LossHarvestResult
)

__all__ += [
    "DeductionType", "DeductionItem", "DeductionLine",
    "ItemizedDeductionResult", "DeductionComparison", "LossHarvestResult"
]

from .aggregation import (
    JurisdictionTotal, AggregateLiability, Projection,
    EstimatedPayment, EstimatedTaxSchedule
)

__all__ += [
    "JurisdictionTotal", "AggregateLiability", "Projection",
    "EstimatedPayment", "EstimatedTaxSchedule"
]

from .tax_return import EmploymentArrangement, CrossBorderProfile, CrossBorderComputation

__all__ += ["EmploymentArrangement", "CrossBorderProfile", "CrossBorderComputation"]

from .deadlines import DeadlineKind, FilingDeadline, FilingDeadlines

__all__ += ["DeadlineKind", "FilingDeadline", "FilingDeadlines"]
