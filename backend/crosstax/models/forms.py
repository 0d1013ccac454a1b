"""
Filing Form Models
"""

from pydantic import BaseModel

from .money import Country


class FormRequirement(BaseModel):
    """A filing form the taxpayer needs"""
    code: str
    name: str
    jurisdiction: Country
    required: bool = True
    
    class Config:
        frozen = True
