"""
Tax Parameter Loader

Loads the per-year YAML parameter file into an immutable TaxParameters
object. Every bracket table is validated at load so a malformed file fails
at process start rather than on the first calculation. The loaded object
is cached per year and shared read-only; to reload, clear the cache and
load again rather than mutating the instance.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from crosstax.core.config import Settings, settings
from crosstax.core.exceptions import InvalidConfiguration
from crosstax.models.money import Currency, CurrencyRates
from crosstax.models.tax import Bracket, BracketTable
from crosstax.services.tax_validators import validate_bracket_tables, validate_rate

logger = structlog.get_logger()


class USResidencyRules(BaseModel):
    substantial_presence_threshold: int = 183
    exempt_visa_categories: List[str] = ["F", "J", "M", "Q"]
    closer_connection_max_contacts: int = 2
    
    class Config:
        frozen = True


class TieWeights(BaseModel):
    """Weight of each Canadian residential tie; every tie must be weighted"""
    home: Decimal
    spouse: Decimal
    dependents: Decimal
    driver_license: Decimal
    health_card: Decimal
    bank_accounts: Decimal
    memberships: Decimal
    work: Decimal
    
    class Config:
        frozen = True


class CanadaResidencyRules(BaseModel):
    day_threshold: int = 183
    tie_score_threshold: Decimal = Decimal("1")
    part_year_min_days: int = 60
    tie_weights: TieWeights
    
    class Config:
        frozen = True


class ForeignTaxCreditRules(BaseModel):
    us_carryforward_years: int = 10
    canada_simplified_rate: Decimal
    canada_carryforward_years: int = 10
    
    class Config:
        frozen = True


class TotalizationRules(BaseModel):
    threshold_usd: Decimal
    
    class Config:
        frozen = True


class ItemizedDeductionRules(BaseModel):
    medical_agi_floor: Decimal
    salt_cap: Decimal
    charity_agi_limit: Decimal
    
    class Config:
        frozen = True


class DomesticCreditRules(BaseModel):
    child_tax_per_child: Decimal
    child_tax_phaseout_start: Decimal
    child_tax_phaseout_rate: Decimal
    earned_income_max: Decimal
    earned_income_rate: Decimal
    earned_income_limit: Decimal
    education_per_student: Decimal
    lifetime_learning_max: Decimal
    child_care_max: Decimal
    savers_max: Decimal
    
    class Config:
        frozen = True


class CanadaCreditRules(BaseModel):
    """Canadian non-refundable credit base amounts, valued at credit_rate"""
    credit_rate: Decimal
    basic_personal_amount: Decimal
    spouse_amount: Decimal
    child_care_max_per_child: Decimal
    tuition_max: Decimal
    disability_amount: Decimal
    medical_income_rate: Decimal
    medical_threshold: Decimal
    
    class Config:
        frozen = True


class CapitalLossRules(BaseModel):
    ordinary_income_limit: Decimal
    
    class Config:
        frozen = True


class LocalTaxRules(BaseModel):
    """Flat local income tax levied in the listed states"""
    rate: Decimal
    states: FrozenSet[str] = frozenset()
    
    class Config:
        frozen = True


class TaxParameters(BaseModel):
    """All rule constants for one tax year"""
    tax_year: int
    version: str
    currency_rates: CurrencyRates
    standard_deductions: Dict[str, Decimal]
    us_federal: Dict[str, BracketTable]
    us_states: Dict[str, BracketTable]
    canada_federal: BracketTable
    canada_provincial: Dict[str, BracketTable]
    us_residency: USResidencyRules
    canada_residency: CanadaResidencyRules
    foreign_tax_credit: ForeignTaxCreditRules
    totalization: TotalizationRules
    itemized_deductions: ItemizedDeductionRules
    domestic_credits: DomesticCreditRules
    canada_credits: CanadaCreditRules
    capital_losses: CapitalLossRules
    us_local_tax: LocalTaxRules
    
    class Config:
        frozen = True
    
    def all_tables(self) -> List[BracketTable]:
        tables = list(self.us_federal.values())
        tables.extend(self.us_states.values())
        tables.append(self.canada_federal)
        tables.extend(self.canada_provincial.values())
        return tables


def _decimal(value: Any, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise InvalidConfiguration(f"{field} is not a number: {value!r}", field=field)


def _build_table(name: str, currency: Currency, rows: List[Dict[str, Any]], citation: Optional[str] = None) -> BracketTable:
    if not isinstance(rows, list):
        raise InvalidConfiguration(f"Bracket table '{name}' must be a list", field=name)
    
    brackets = [
        Bracket(
            upper_bound=_decimal(row.get("upper_bound"), f"{name}.upper_bound"),
            rate=_decimal(row.get("rate"), f"{name}.rate")
        )
        for row in rows
    ]
    return BracketTable(name=name, currency=currency, brackets=brackets, citation=citation)


def _flat_table(name: str, rate: Decimal) -> BracketTable:
    return BracketTable(
        name=name,
        currency=Currency.USD,
        brackets=[Bracket(upper_bound=None, rate=rate)],
        citation="State income tax (single-rate approximation)"
    )


def _build_currency_rates(raw: Dict[str, Any], overrides: Settings) -> CurrencyRates:
    usd_to_cad = overrides.USD_TO_CAD or _decimal(raw.get("usd_to_cad"), "currency_rates.usd_to_cad")
    cad_to_usd = overrides.CAD_TO_USD or _decimal(raw.get("cad_to_usd"), "currency_rates.cad_to_usd")
    
    if usd_to_cad is None and cad_to_usd is None:
        raise InvalidConfiguration(
            "currency_rates needs usd_to_cad, cad_to_usd or both",
            field="currency_rates"
        )
    for field, rate in (("usd_to_cad", usd_to_cad), ("cad_to_usd", cad_to_usd)):
        if rate is not None and rate <= 0:
            raise InvalidConfiguration(
                f"currency_rates.{field} must be positive, got {rate}",
                field=f"currency_rates.{field}"
            )
    
    if cad_to_usd is None:
        return CurrencyRates.reciprocal(usd_to_cad)
    if usd_to_cad is None:
        rates = CurrencyRates.reciprocal(cad_to_usd)
        return CurrencyRates(cad_to_usd=cad_to_usd, usd_to_cad=rates.cad_to_usd)
    
    rates = CurrencyRates(cad_to_usd=cad_to_usd, usd_to_cad=usd_to_cad)
    if not rates.is_reciprocal():
        logger.warning(
            "Configured currency rates are not reciprocal; round trips will drift",
            cad_to_usd=str(cad_to_usd),
            usd_to_cad=str(usd_to_cad)
        )
    return rates


def _build_local_tax(raw: Dict[str, Any], known_states) -> LocalTaxRules:
    rules = LocalTaxRules(
        rate=_decimal(raw.get("rate", "0"), "us_states.local_tax.rate"),
        states=frozenset(str(code).upper() for code in raw.get("states") or ())
    )
    validate_rate("us_states.local_tax.rate", rules.rate)
    unknown = rules.states - set(known_states)
    if unknown:
        raise InvalidConfiguration(
            f"Local tax listed for unknown states: {sorted(unknown)}",
            field="us_states.local_tax.states"
        )
    return rules


def parse_tax_parameters(raw: Dict[str, Any], overrides: Settings = settings) -> TaxParameters:
    """Build TaxParameters from an already-parsed YAML document"""
    try:
        metadata = raw["metadata"]
        
        us_federal_raw = raw["us_federal"]
        federal_citation = us_federal_raw.get("citation")
        us_federal = {
            status: _build_table(f"US Federal ({status})", Currency.USD, rows, federal_citation)
            for status, rows in us_federal_raw.items()
            if status != "citation"
        }
        
        states_raw = raw.get("us_states", {})
        us_states = {
            code: _flat_table(f"State {code}", _decimal(rate, f"us_states.flat_rates.{code}"))
            for code, rate in (states_raw.get("flat_rates") or {}).items()
        }
        for code, rows in (states_raw.get("graduated") or {}).items():
            us_states[code] = _build_table(f"State {code}", Currency.USD, rows, "State income tax")
        us_local_tax = _build_local_tax(states_raw.get("local_tax") or {}, us_states)
        
        canada_raw = raw["canada_federal"]
        canada_federal = _build_table(
            "Canada Federal", Currency.CAD, canada_raw["brackets"], canada_raw.get("citation")
        )
        canada_provincial = {
            code: _build_table(f"Province {code}", Currency.CAD, rows, "Provincial income tax acts")
            for code, rows in raw["canada_provincial"].items()
        }
        
        residency = raw["residency"]
        ftc = dict(raw["foreign_tax_credit"])
        if overrides.CANADA_FTC_SIMPLIFIED_RATE is not None:
            ftc["canada_simplified_rate"] = overrides.CANADA_FTC_SIMPLIFIED_RATE
        
        parameters = TaxParameters(
            tax_year=metadata["tax_year"],
            version=metadata.get("version", f"v{metadata['tax_year']}.1"),
            currency_rates=_build_currency_rates(raw.get("currency_rates") or {}, overrides),
            standard_deductions={
                status: _decimal(amount, f"standard_deductions.{status}")
                for status, amount in raw["standard_deductions"].items()
            },
            us_federal=us_federal,
            us_states=us_states,
            canada_federal=canada_federal,
            canada_provincial=canada_provincial,
            us_residency=USResidencyRules(**residency.get("us", {})),
            canada_residency=CanadaResidencyRules(**residency["canada"]),
            foreign_tax_credit=ForeignTaxCreditRules(**ftc),
            totalization=TotalizationRules(**raw["totalization"]),
            itemized_deductions=ItemizedDeductionRules(**raw["itemized_deductions"]),
            domestic_credits=DomesticCreditRules(**raw["domestic_credits"]),
            canada_credits=CanadaCreditRules(**raw["canada_credits"]),
            capital_losses=CapitalLossRules(**raw["capital_losses"]),
            us_local_tax=us_local_tax
        )
    except KeyError as e:
        raise InvalidConfiguration(f"Tax parameters missing section {e}", field=str(e))
    except ValidationError as e:
        raise InvalidConfiguration(f"Tax parameters are malformed: {e}", details={"errors": e.errors()})
    
    validate_bracket_tables(parameters.all_tables())
    validate_rate("foreign_tax_credit.canada_simplified_rate", parameters.foreign_tax_credit.canada_simplified_rate)
    validate_rate("canada_credits.credit_rate", parameters.canada_credits.credit_rate)
    validate_rate("canada_credits.medical_income_rate", parameters.canada_credits.medical_income_rate)
    return parameters


def load_tax_parameters(path: Path, overrides: Settings = settings) -> TaxParameters:
    """Load and validate a parameter file"""
    logger.info("Loading tax parameters", path=str(path))
    
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        raise InvalidConfiguration(f"Tax parameter file not found: {path}", field="path")
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Tax parameter file is not valid YAML: {e}", field="path")
    
    if not isinstance(raw, dict):
        raise InvalidConfiguration(f"Tax parameter file is empty or not a mapping: {path}", field="path")
    
    parameters = parse_tax_parameters(raw, overrides)
    logger.info(
        "Tax parameters loaded",
        tax_year=parameters.tax_year,
        version=parameters.version,
        tables=len(parameters.all_tables())
    )
    return parameters


@lru_cache(maxsize=8)
def get_tax_parameters(tax_year: Optional[int] = None) -> TaxParameters:
    """Get the cached parameters for a tax year (defaults to the configured year)"""
    year = tax_year or settings.TAX_YEAR
    return load_tax_parameters(Path(settings.TAX_PARAMETERS_DIR) / f"{year}.yaml")
