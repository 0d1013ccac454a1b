"""
Liability Engine - combines bracket layers into a total liability
"""

from decimal import Decimal
from typing import List, Mapping, Optional, Sequence

import structlog

from crosstax.core.exceptions import InvalidConfiguration, InvalidInput
from crosstax.core.parameters import TaxParameters, get_tax_parameters
from crosstax.models.money import Currency, Money, total
from crosstax.models.tax import LayerBreakdown, LayerTotal, LiabilityResult, MultiStateResult, StateAllocation, TaxLayer
from crosstax.services.bracket_engine import compute_bracket_tax
from crosstax.services.tax_validators import validate_non_negative, validate_same_currency

logger = structlog.get_logger()

US_FEDERAL_LAYER = "US Federal"
CANADA_FEDERAL_LAYER = "Canada Federal"


def compute_liability(
    gross_income: Money,
    deductions: Money,
    layers: Sequence[TaxLayer]
) -> LiabilityResult:
    """
    Apply every layer to the same taxable base and sum the results.
    
    Deductions come off gross income first and taxable income floors at
    zero. Effective rate is total tax over taxable income, and 0 when
    taxable income is 0.
    
    Args:
        gross_income: Gross income in the layers' currency
        deductions: Total deductions in the same currency
        layers: Ordered layers, e.g. federal then state or provincial
        
    Returns:
        Liability with a per-bracket row for every layer
    """
    validate_non_negative("gross_income", gross_income)
    validate_non_negative("deductions", deductions)
    validate_same_currency(gross_income.currency, deductions=deductions)
    
    if not layers:
        raise InvalidConfiguration("At least one tax layer is required", field="layers")
    
    currency = gross_income.currency
    taxable_income = (gross_income - deductions).floor_zero()
    
    rows: List[LayerBreakdown] = []
    layer_totals: List[LayerTotal] = []
    total_tax = Money.zero(currency)
    
    for layer in layers:
        result = compute_bracket_tax(taxable_income, layer.table)
        for entry in result.breakdown:
            rows.append(LayerBreakdown(
                layer_name=layer.name,
                rate=entry.rate,
                income_in_layer=entry.income_in_bracket,
                tax_in_layer=entry.tax_in_bracket
            ))
        layer_totals.append(LayerTotal(layer_name=layer.name, tax=result.tax))
        total_tax = total_tax + result.tax
    
    if taxable_income.is_zero():
        effective_rate = Decimal("0")
    else:
        effective_rate = total_tax.amount / taxable_income.amount
    
    logger.info(
        "Liability computed",
        currency=currency.value,
        taxable_income=str(taxable_income.amount),
        total_tax=str(total_tax.amount),
        layers=[layer.name for layer in layers]
    )
    
    return LiabilityResult(
        gross_income=gross_income,
        deductions=deductions,
        taxable_income=taxable_income,
        tax_by_jurisdiction_layer=rows,
        layer_totals=layer_totals,
        total_tax=total_tax,
        effective_rate=effective_rate
    )


def standard_deduction(filing_status: str, parameters: Optional[TaxParameters] = None) -> Money:
    """US standard deduction for a filing status"""
    parameters = parameters or get_tax_parameters()
    amount = parameters.standard_deductions.get(filing_status)
    if amount is None:
        raise InvalidInput(
            f"Unknown filing status: {filing_status}",
            field="filing_status",
            details={"supported": sorted(parameters.standard_deductions)}
        )
    return Money(amount=amount, currency=Currency.USD)


def us_layers(
    filing_status: str,
    state_code: Optional[str] = None,
    parameters: Optional[TaxParameters] = None
) -> List[TaxLayer]:
    """Federal layer for the filing status, then the state layer if given"""
    parameters = parameters or get_tax_parameters()
    
    federal = parameters.us_federal.get(filing_status)
    if federal is None:
        raise InvalidInput(
            f"No federal brackets for filing status: {filing_status}",
            field="filing_status",
            details={"supported": sorted(parameters.us_federal)}
        )
    layers = [TaxLayer(name=US_FEDERAL_LAYER, table=federal)]
    
    if state_code:
        code = state_code.upper()
        state_table = parameters.us_states.get(code)
        if state_table is None:
            raise InvalidInput(f"Unknown state: {state_code}", field="state_code")
        layers.append(TaxLayer(name=f"State {code}", table=state_table))
    
    return layers


def canada_layers(province: str, parameters: Optional[TaxParameters] = None) -> List[TaxLayer]:
    """Federal layer then the provincial layer"""
    parameters = parameters or get_tax_parameters()
    
    code = province.upper()
    provincial = parameters.canada_provincial.get(code)
    if provincial is None:
        raise InvalidInput(
            f"No provincial brackets for: {province}",
            field="province",
            details={"supported": sorted(parameters.canada_provincial)}
        )
    
    return [
        TaxLayer(name=CANADA_FEDERAL_LAYER, table=parameters.canada_federal),
        TaxLayer(name=f"Province {code}", table=provincial),
    ]


def compute_us_liability(
    gross_income: Money,
    deductions: Money,
    filing_status: str,
    state_code: Optional[str] = None,
    parameters: Optional[TaxParameters] = None
) -> LiabilityResult:
    """US federal (and optional state) liability"""
    logger.info("Calculating US liability", filing_status=filing_status, state=state_code)
    return compute_liability(gross_income, deductions, us_layers(filing_status, state_code, parameters))


def compute_canada_liability(
    gross_income: Money,
    deductions: Money,
    province: str,
    parameters: Optional[TaxParameters] = None
) -> LiabilityResult:
    """Canadian federal plus provincial liability"""
    logger.info("Calculating Canada liability", province=province)
    return compute_liability(gross_income, deductions, canada_layers(province, parameters))


def compute_multi_state_tax(
    allocations: Mapping[str, Money],
    parameters: Optional[TaxParameters] = None
) -> MultiStateResult:
    """
    State and local tax on income allocated across several states.
    
    Each state's table is applied to the income allocated to it. States
    listed for local tax also levy the flat local rate on that income.
    """
    parameters = parameters or get_tax_parameters()
    local = parameters.us_local_tax
    
    states: List[StateAllocation] = []
    for state_code, income in allocations.items():
        code = state_code.upper()
        field = f"allocations[{state_code}]"
        validate_non_negative(field, income)
        validate_same_currency(Currency.USD, **{field: income})
        
        table = parameters.us_states.get(code)
        if table is None:
            raise InvalidInput(f"Unknown state: {state_code}", field="state_code")
        
        state_tax = compute_bracket_tax(income, table).tax
        local_tax = income * local.rate if code in local.states else Money.zero(Currency.USD)
        states.append(StateAllocation(
            state_code=code,
            income=income,
            state_tax=state_tax,
            local_tax=local_tax,
            total_tax=state_tax + local_tax
        ))
    
    total_state = total((entry.state_tax for entry in states), Currency.USD)
    total_local = total((entry.local_tax for entry in states), Currency.USD)
    
    logger.info(
        "Multi-state tax computed",
        states=[entry.state_code for entry in states],
        total_state_tax=str(total_state.amount),
        total_local_tax=str(total_local.amount)
    )
    
    return MultiStateResult(
        states=states,
        total_state_tax=total_state,
        total_local_tax=total_local,
        total_tax=total_state + total_local
    )
