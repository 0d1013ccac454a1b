"""
Filing Deadline Models
"""

from datetime import date
from enum import Enum
from typing import List

from pydantic import BaseModel

from .money import Country


class DeadlineKind(str, Enum):
    STANDARD = "standard"
    EXTENDED = "extended"


class FilingDeadline(BaseModel):
    """One return due date, measured from the as-of date"""
    country: Country
    kind: DeadlineKind
    due_date: date
    days_remaining: int
    is_passed: bool
    
    class Config:
        frozen = True


class FilingDeadlines(BaseModel):
    tax_year: int
    as_of: date
    deadlines: List[FilingDeadline]
    
    class Config:
        frozen = True
    
    def for_country(self, country: Country) -> List[FilingDeadline]:
        return [deadline for deadline in self.deadlines if deadline.country == country]
