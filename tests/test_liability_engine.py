"""
Tests for layered liability (federal plus state or provincial).
"""

from decimal import Decimal

import pytest

from conftest import assert_close, cad, usd
from crosstax.core.exceptions import InvalidConfiguration, InvalidInput
from crosstax.services.liability_engine import (
    CANADA_FEDERAL_LAYER,
    US_FEDERAL_LAYER,
    canada_layers,
    compute_canada_liability,
    compute_liability,
    compute_multi_state_tax,
    compute_us_liability,
    standard_deduction,
    us_layers,
)


class TestUSLiability:
    """US federal and state layers."""

    def test_single_filer_with_standard_deduction(self, parameters):
        deduction = standard_deduction("single", parameters)
        result = compute_us_liability(usd(100000), deduction, "single", parameters=parameters)

        assert result.taxable_income == usd(85400)
        assert result.total_tax.amount == Decimal("13841")
        assert result.tax_for_layer(US_FEDERAL_LAYER).amount == Decimal("13841")
        assert_close(result.effective_rate, Decimal("13841") / Decimal("85400"))

    def test_graduated_state_layer(self, parameters):
        result = compute_us_liability(usd(100000), usd(14600), "single", "ca", parameters)

        assert [total.layer_name for total in result.layer_totals] == [US_FEDERAL_LAYER, "State CA"]
        assert result.tax_for_layer("State CA").amount == Decimal("4695.675")
        assert result.total_tax.amount == Decimal("18536.675")

    def test_flat_state_layer(self, parameters):
        result = compute_us_liability(usd(100000), usd(14600), "single", "IL", parameters)

        assert result.tax_for_layer("State IL").amount == Decimal("4227.3000")

    def test_no_tax_state_contributes_zero(self, parameters):
        result = compute_us_liability(usd(100000), usd(14600), "single", "TX", parameters)

        assert result.tax_for_layer("State TX").is_zero()
        assert result.total_tax.amount == Decimal("13841")

    def test_rows_cover_every_layer(self, parameters):
        result = compute_us_liability(usd(100000), usd(14600), "single", "CA", parameters)

        assert sum(row.tax_in_layer.amount for row in result.tax_by_jurisdiction_layer) == result.total_tax.amount

    def test_unknown_state_rejected(self, parameters):
        with pytest.raises(InvalidInput) as exc:
            us_layers("single", "ZZ", parameters)
        assert exc.value.field == "state_code"

    def test_unknown_filing_status_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            standard_deduction("married_separately_abroad", parameters)
        with pytest.raises(InvalidInput):
            us_layers("married_separately_abroad", parameters=parameters)


class TestCanadaLiability:
    """Canadian federal plus provincial layers."""

    def test_ontario_resident(self, parameters):
        result = compute_canada_liability(cad(100000), cad(0), "ON", parameters)

        assert result.currency.value == "CAD"
        assert result.tax_for_layer(CANADA_FEDERAL_LAYER).amount == Decimal("17427.315")
        assert result.tax_for_layer("Province ON").amount == Decimal("7162.4227")
        assert result.total_tax.amount == Decimal("24589.7377")

    def test_unknown_province_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            canada_layers("XX", parameters)


class TestComputeLiability:
    """Generic layer combination."""

    def test_deductions_above_income_floor_at_zero(self, parameters):
        result = compute_liability(usd(10000), usd(20000), us_layers("single", parameters=parameters))

        assert result.taxable_income.is_zero()
        assert result.total_tax.is_zero()
        assert result.effective_rate == Decimal("0")

    def test_empty_layers_rejected(self):
        with pytest.raises(InvalidConfiguration):
            compute_liability(usd(1000), usd(0), [])

    def test_negative_deductions_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            compute_liability(usd(1000), usd(-1), us_layers("single", parameters=parameters))

    def test_mixed_currency_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            compute_liability(usd(1000), cad(0), us_layers("single", parameters=parameters))

    def test_layers_share_the_same_base(self, parameters):
        result = compute_liability(cad(50000), cad(0), canada_layers("BC", parameters))

        federal, provincial = result.layer_totals
        assert federal.tax.amount == Decimal("7500.00")
        assert provincial.tax.amount == Decimal("47937") * Decimal("0.0506") + Decimal("2063") * Decimal("0.077")


class TestMultiStateTax:
    """Income apportioned across states, with local tax where levied."""

    def test_flat_states_with_and_without_local_tax(self, parameters):
        result = compute_multi_state_tax({"il": usd(60000), "TX": usd(40000)}, parameters)

        illinois, texas = result.states
        assert illinois.state_code == "IL"
        assert illinois.state_tax == usd(2970)
        assert illinois.local_tax == usd(600)
        assert texas.total_tax.is_zero()
        assert result.total_state_tax == usd(2970)
        assert result.total_local_tax == usd(600)
        assert result.total_tax == usd(3570)

    def test_graduated_state_uses_its_table(self, parameters):
        result = compute_multi_state_tax({"CA": usd(10000)}, parameters)

        california, = result.states
        assert california.state_tax == usd(100)
        assert california.local_tax == usd(100)

    def test_no_allocations(self, parameters):
        result = compute_multi_state_tax({}, parameters)

        assert result.states == []
        assert result.total_tax.is_zero()

    def test_unknown_state(self, parameters):
        with pytest.raises(InvalidInput) as exc:
            compute_multi_state_tax({"ZZ": usd(1000)}, parameters)
        assert exc.value.field == "state_code"

    def test_allocation_must_be_usd(self, parameters):
        with pytest.raises(InvalidInput):
            compute_multi_state_tax({"NY": cad(1000)}, parameters)
