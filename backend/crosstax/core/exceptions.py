"""
Engine Exceptions

InvalidInput and InvalidConfiguration are the only failures an engine call
can produce. "No rule matched" outcomes are ordinary results, not errors.
"""

from typing import Any, Dict, Optional


class TaxEngineError(Exception):
    """Base class for tax engine failures"""
    
    error_code = "tax_engine_error"
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}
    
    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for the calling layer"""
        payload = {"error": self.error_code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(TaxEngineError):
    """Out-of-range, negative or inconsistent facts supplied by the caller"""
    
    error_code = "invalid_input"


class InvalidConfiguration(TaxEngineError):
    """Malformed bracket table, missing currency rate or bad parameter file"""
    
    error_code = "invalid_configuration"
