"""
Tests for US-Canada treaty relief and totalization.
"""

from decimal import Decimal

import pytest

from conftest import cad, usd
from crosstax.core.exceptions import InvalidInput
from crosstax.models import Country, IncomeItem, IncomeType, PensionSource, TotalizationStatus
from crosstax.services.treaty_engine import classify_totalization, lookup_treaty_benefits


def income(kind, amount=1000, **extra):
    return IncomeItem(type=kind, amount=usd(amount), source_country=Country.US, **extra)


class TestTreatyBenefits:
    """Article lookup per income item."""

    def test_substantial_ownership_boundary(self):
        benefits = lookup_treaty_benefits([
            income(IncomeType.DIVIDENDS, ownership_percent=Decimal("10")),
            income(IncomeType.DIVIDENDS, ownership_percent=Decimal("9")),
        ], Country.CA, Country.US)

        assert [(b.article, b.withholding_rate) for b in benefits] == [
            ("Article 10(2)", Decimal("0.05")),
            ("Article 10(1)", Decimal("0.15")),
        ]
        assert [b.item_index for b in benefits] == [0, 1]

    def test_business_income_without_permanent_establishment(self):
        benefit, = lookup_treaty_benefits(
            [income(IncomeType.BUSINESS_INCOME, has_permanent_establishment=False)],
            "CA",
            "US"
        )

        assert benefit.article == "Article 7"
        assert benefit.is_exempt
        assert benefit.display_rate == "Exempt"

    def test_business_income_with_unknown_establishment_gets_nothing(self):
        assert lookup_treaty_benefits([income(IncomeType.BUSINESS_INCOME)], Country.CA, Country.US) == []

    def test_pensions(self):
        benefits = lookup_treaty_benefits([
            income(IncomeType.PENSION, pension_source=PensionSource.GOVERNMENT),
            income(IncomeType.PENSION, pension_source=PensionSource.PRIVATE),
        ], Country.US, Country.CA)

        assert [b.article for b in benefits] == ["Article 18(2)", "Article 18(1)"]
        assert benefits[1].display_rate == "15%"

    def test_interest(self):
        benefit, = lookup_treaty_benefits([income(IncomeType.INTEREST)], Country.US, Country.CA)

        assert benefit.article == "Article 11"
        assert benefit.display_rate == "10%"

    def test_items_without_a_rule_are_skipped(self):
        benefits = lookup_treaty_benefits([
            income(IncomeType.WAGES),
            income(IncomeType.INTEREST),
        ], Country.US, Country.CA)

        assert [b.item_index for b in benefits] == [1]

    def test_unknown_country_pair_yields_nothing(self):
        assert lookup_treaty_benefits([income(IncomeType.INTEREST)], "US", "MX") == []
        assert lookup_treaty_benefits([income(IncomeType.INTEREST)], "US", "US") == []

    def test_ownership_out_of_range_rejected(self):
        with pytest.raises(InvalidInput):
            lookup_treaty_benefits(
                [income(IncomeType.DIVIDENDS, ownership_percent=Decimal("120"))],
                Country.CA,
                Country.US
            )


class TestTotalization:
    """Which social security scheme applies."""

    def test_at_threshold_follows_employer(self, parameters):
        result = classify_totalization("CA", "US", usd(3500), parameters=parameters)

        assert result.status == TotalizationStatus.DETERMINED
        assert result.coverage_country == Country.US
        assert result.us_coverage and not result.ca_coverage
        assert result.exempt_from == Country.CA

    def test_below_threshold_stays_home(self, parameters):
        result = classify_totalization(Country.CA, Country.US, usd("3499.99"), parameters=parameters)

        assert result.coverage_country == Country.CA
        assert result.ca_coverage
        assert result.exempt_from is None

    def test_same_country_has_no_exemption(self, parameters):
        result = classify_totalization(Country.US, Country.US, usd(90000), parameters=parameters)

        assert result.coverage_country == Country.US
        assert result.exempt_from is None

    def test_cad_income_is_converted_before_threshold(self, parameters):
        above = classify_totalization(Country.US, Country.CA, cad(5000), parameters=parameters)
        below = classify_totalization(Country.US, Country.CA, cad(4000), parameters=parameters)

        assert above.coverage_country == Country.CA
        assert below.coverage_country == Country.US

    def test_unknown_country_is_undetermined(self, parameters):
        result = classify_totalization("MX", "US", usd(50000), parameters=parameters)

        assert result.status == TotalizationStatus.UNDETERMINED
        assert result.coverage_country is None
        assert not result.us_coverage and not result.ca_coverage
