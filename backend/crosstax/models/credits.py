"""
Credit, Treaty and Totalization Models
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .income import IncomeType
from .money import Country, Money


class FTCJurisdiction(str, Enum):
    """Which country's foreign tax credit rules to apply"""
    US = "US"
    CA = "CA"


class ForeignTaxCreditResult(BaseModel):
    """Foreign tax credit limitation outcome"""
    jurisdiction: FTCJurisdiction
    limit: Money
    credit_allowed: Money
    carryforward: Money
    excess_unused: Money
    carryforward_years: int
    citation: str
    
    class Config:
        frozen = True


class TreatyBenefit(BaseModel):
    """Treaty relief available for one income item"""
    item_index: int
    income_type: IncomeType
    amount: Money
    article: str
    withholding_rate: Decimal
    is_exempt: bool
    rationale: str
    
    class Config:
        frozen = True
    
    @property
    def display_rate(self) -> str:
        if self.is_exempt:
            return "Exempt"
        return f"{(self.withholding_rate * 100).normalize():f}%"


class TotalizationStatus(str, Enum):
    DETERMINED = "determined"
    UNDETERMINED = "undetermined"


class TotalizationResult(BaseModel):
    """Which social security scheme covers a cross-border worker"""
    status: TotalizationStatus
    coverage_country: Optional[Country] = None
    us_coverage: bool = False
    ca_coverage: bool = False
    exempt_from: Optional[Country] = None
    details: List[str] = []
    
    class Config:
        frozen = True


class CreditKind(str, Enum):
    """Closed set of domestic credits, US kinds first then Canadian"""
    CHILD_TAX = "child_tax"
    EARNED_INCOME = "earned_income"
    EDUCATION = "education"
    LIFETIME_LEARNING = "lifetime_learning"
    CHILD_CARE = "child_care"
    SAVERS = "savers"
    CA_BASIC_PERSONAL = "ca_basic_personal"
    CA_SPOUSE = "ca_spouse"
    CA_CHILD_CARE = "ca_child_care"
    CA_TUITION = "ca_tuition"
    CA_DISABILITY = "ca_disability"
    CA_MEDICAL = "ca_medical"


class ChildTaxCreditClaim(BaseModel):
    kind: Literal["child_tax"] = "child_tax"
    children: int


class EarnedIncomeCreditClaim(BaseModel):
    kind: Literal["earned_income"] = "earned_income"


class EducationCreditClaim(BaseModel):
    kind: Literal["education"] = "education"
    students: int


class LifetimeLearningCreditClaim(BaseModel):
    kind: Literal["lifetime_learning"] = "lifetime_learning"


class ChildCareCreditClaim(BaseModel):
    kind: Literal["child_care"] = "child_care"


class SaversCreditClaim(BaseModel):
    kind: Literal["savers"] = "savers"


class CanadaBasicPersonalClaim(BaseModel):
    kind: Literal["ca_basic_personal"] = "ca_basic_personal"


class CanadaSpouseClaim(BaseModel):
    """Spouse amount, reduced dollar for dollar by the spouse's net income"""
    kind: Literal["ca_spouse"] = "ca_spouse"
    spouse_income: Optional[Money] = None


class CanadaChildCareClaim(BaseModel):
    kind: Literal["ca_child_care"] = "ca_child_care"
    children: int
    expenses: Money


class CanadaTuitionClaim(BaseModel):
    kind: Literal["ca_tuition"] = "ca_tuition"
    tuition_paid: Money


class CanadaDisabilityClaim(BaseModel):
    kind: Literal["ca_disability"] = "ca_disability"


class CanadaMedicalClaim(BaseModel):
    kind: Literal["ca_medical"] = "ca_medical"
    expenses: Money


CreditClaim = Annotated[
    Union[
        ChildTaxCreditClaim,
        EarnedIncomeCreditClaim,
        EducationCreditClaim,
        LifetimeLearningCreditClaim,
        ChildCareCreditClaim,
        SaversCreditClaim,
        CanadaBasicPersonalClaim,
        CanadaSpouseClaim,
        CanadaChildCareClaim,
        CanadaTuitionClaim,
        CanadaDisabilityClaim,
        CanadaMedicalClaim,
    ],
    Field(discriminator="kind"),
]


class CreditLine(BaseModel):
    kind: CreditKind
    name: str
    amount: Money
    refundable: bool
    note: str = ""
    
    class Config:
        frozen = True


class DomesticCreditResult(BaseModel):
    jurisdiction: Country
    credits: List[CreditLine]
    total_nonrefundable: Money
    total_refundable: Money
    total: Money
    
    class Config:
        frozen = True
