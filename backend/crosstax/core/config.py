"""
Application Configuration
"""

from pathlib import Path
from typing import Optional
from decimal import Decimal

from pydantic_settings import BaseSettings
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

DEFAULT_PARAMETERS_DIR = Path(__file__).resolve().parent.parent / "tax_parameters"


class Settings(BaseSettings):
    """Engine settings"""
    
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    
    PROJECT_NAME: str = "CrossTax"
    
    # Tax parameters
    TAX_YEAR: int = 2025
    TAX_PARAMETERS_DIR: Path = DEFAULT_PARAMETERS_DIR
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    
    # Overrides for placeholder constants in the parameter file
    CAD_TO_USD: Optional[Decimal] = None
    USD_TO_CAD: Optional[Decimal] = None
    CANADA_FTC_SIMPLIFIED_RATE: Optional[Decimal] = None
    
    class Config:
        env_file = ".env"
        env_prefix = "CROSSTAX_"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
