"""
Tests for itemized deductions, the standard/itemized comparison and
capital loss harvesting.
"""

from decimal import Decimal

import pytest

from conftest import cad, usd
from crosstax.core.exceptions import InvalidInput
from crosstax.models import DeductionItem, DeductionType
from crosstax.services.deductions import (
    analyze_tax_loss_harvesting,
    compare_deductions,
    compute_itemized_deductions,
)


def item(kind, amount):
    return DeductionItem(type=kind, amount=usd(amount))


class TestItemizedDeductions:
    """Floors, caps and AGI limits."""

    def test_all_categories(self, parameters):
        result = compute_itemized_deductions([
            item(DeductionType.MEDICAL, 10000),
            item(DeductionType.STATE_LOCAL, 15000),
            item(DeductionType.MORTGAGE, 12000),
            item(DeductionType.CHARITY, 70000),
        ], usd(100000), parameters)

        allowed = {line.category: line.allowed.amount for line in result.lines}
        assert allowed == {
            DeductionType.MEDICAL: Decimal("2500"),
            DeductionType.STATE_LOCAL: Decimal("10000"),
            DeductionType.MORTGAGE: Decimal("12000"),
            DeductionType.CHARITY: Decimal("60000"),
        }
        assert result.total.amount == Decimal("84500")

    def test_medical_below_floor_allows_nothing(self, parameters):
        result = compute_itemized_deductions([item(DeductionType.MEDICAL, 5000)], usd(100000), parameters)

        assert result.total.is_zero()
        assert result.lines[0].note.startswith("Only the amount above 7.5%")

    def test_repeated_categories_are_combined(self, parameters):
        result = compute_itemized_deductions([
            item(DeductionType.STATE_LOCAL, 6000),
            item(DeductionType.STATE_LOCAL, 6000),
        ], usd(100000), parameters)

        assert len(result.lines) == 1
        assert result.lines[0].claimed.amount == Decimal("12000")
        assert result.total.amount == Decimal("10000")

    def test_no_items(self, parameters):
        result = compute_itemized_deductions([], usd(50000), parameters)

        assert result.lines == []
        assert result.total.is_zero()

    def test_cad_amounts_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            compute_itemized_deductions(
                [DeductionItem(type=DeductionType.MORTGAGE, amount=cad(1000))],
                usd(50000),
                parameters
            )


class TestCompareDeductions:
    """Standard versus itemized."""

    def test_itemized_wins(self, parameters):
        comparison = compare_deductions("single", usd(20000), parameters)

        assert comparison.better == "itemized"
        assert comparison.savings.amount == Decimal("5400")

    def test_standard_wins_on_tie(self, parameters):
        comparison = compare_deductions("single", usd(14600), parameters)

        assert comparison.better == "standard"
        assert comparison.savings.is_zero()

    def test_married_jointly_standard(self, parameters):
        comparison = compare_deductions("married_jointly", usd(0), parameters)

        assert comparison.standard.amount == Decimal("29200")


class TestTaxLossHarvesting:
    """Losses offset gains, then $3,000 of ordinary income, then carry forward."""

    def test_losses_beyond_limit_carry_forward(self, parameters):
        result = analyze_tax_loss_harvesting([usd(-2000)], [usd(-6000)], parameters=parameters)

        assert result.short_term_losses == usd(2000)
        assert result.long_term_losses == usd(6000)
        assert result.ordinary_income_offset == usd(3000)
        assert result.carryforward == usd(5000)
        assert "carry forward" in result.recommendation

    def test_sign_of_loss_does_not_matter(self, parameters):
        negative = analyze_tax_loss_harvesting([usd(-1500)], [], parameters=parameters)
        positive = analyze_tax_loss_harvesting([usd(1500)], [], parameters=parameters)

        assert negative == positive
        assert negative.ordinary_income_offset == usd(1500)
        assert negative.carryforward.is_zero()

    def test_gains_absorbed_first(self, parameters):
        result = analyze_tax_loss_harvesting(
            [usd(-4000)], [usd(-6000)], capital_gains=usd(5000), parameters=parameters
        )

        assert result.offset_against_gains == usd(5000)
        assert result.ordinary_income_offset == usd(3000)
        assert result.carryforward == usd(2000)

    def test_gains_exceed_losses(self, parameters):
        result = analyze_tax_loss_harvesting([], [usd(-1000)], capital_gains=usd(8000), parameters=parameters)

        assert result.offset_against_gains == usd(1000)
        assert result.ordinary_income_offset.is_zero()
        assert result.carryforward.is_zero()

    def test_no_losses(self, parameters):
        result = analyze_tax_loss_harvesting([], [], parameters=parameters)

        assert result.total_losses.is_zero()
        assert result.recommendation == "No harvesting opportunities identified"

    def test_cad_loss_rejected(self, parameters):
        with pytest.raises(InvalidInput) as exc:
            analyze_tax_loss_harvesting([usd(-100), cad(-100)], [], parameters=parameters)
        assert exc.value.field == "short_term_losses[1]"

    def test_negative_gains_rejected(self, parameters):
        with pytest.raises(InvalidInput):
            analyze_tax_loss_harvesting([], [usd(-100)], capital_gains=usd(-1), parameters=parameters)
