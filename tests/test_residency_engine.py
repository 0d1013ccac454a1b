"""
Tests for US and Canadian residency classification.
"""

from decimal import Decimal

import pytest

from crosstax.core.exceptions import InvalidInput
from crosstax.models import Country, ResidencyType
from crosstax.services.residency_engine import (
    RULE_183_DAY,
    RULE_CLOSER_CONNECTION,
    RULE_DEPARTURE_TAX,
    RULE_EXEMPT_INDIVIDUAL,
    RULE_FIRST_YEAR_ELECTION,
    RULE_GREEN_CARD,
    RULE_PART_YEAR,
    RULE_RESIDENTIAL_TIES,
    RULE_SUBSTANTIAL_PRESENCE,
    classify_canada_residency,
    classify_us_residency,
    normalize_visa_category,
)


class TestUSResidency:
    """Green card and substantial presence tests."""

    def test_green_card_short_circuits(self, us_facts):
        decision = classify_us_residency(us_facts(has_green_card=True))

        assert decision.jurisdiction == Country.US
        assert decision.is_resident
        assert decision.residency_type == ResidencyType.LAWFUL_PERMANENT_RESIDENT
        assert [entry.rule for entry in decision.audit_trail] == [RULE_GREEN_CARD]

    @pytest.mark.parametrize("current, prior_1, prior_2, resident", [
        (183, 0, 0, True),
        (182, 0, 0, False),
        (182, 3, 0, True),
        (123, 120, 120, True),
        (122, 120, 120, False),
    ])
    def test_substantial_presence_boundary(self, us_facts, current, prior_1, prior_2, resident):
        decision = classify_us_residency(us_facts(
            days_present_current_year=current,
            days_present_prior_year_1=prior_1,
            days_present_prior_year_2=prior_2,
            has_home_in_country=True,
            close_contacts=5
        ))

        assert decision.is_resident is resident
        assert decision.has_rule(RULE_SUBSTANTIAL_PRESENCE)

    def test_weighted_days_are_exact(self, us_facts):
        decision = classify_us_residency(us_facts(
            days_present_current_year=100,
            days_present_prior_year_1=100,
            days_present_prior_year_2=100
        ))

        assert decision.metrics.weighted_days == Decimal("150.00")
        assert not decision.is_resident

    def test_exempt_days_removed_for_student_visa(self, us_facts):
        decision = classify_us_residency(us_facts(
            days_present_current_year=200,
            exempt_days=200,
            visa_category="F-1"
        ))

        assert not decision.is_resident
        assert decision.has_rule(RULE_EXEMPT_INDIVIDUAL)
        assert decision.metrics.adjusted_days_current_year == 0

    def test_exempt_days_ignored_for_work_visa(self, us_facts):
        decision = classify_us_residency(us_facts(
            days_present_current_year=200,
            exempt_days=200,
            visa_category="H-1B"
        ))

        assert decision.is_resident
        assert not decision.has_rule(RULE_EXEMPT_INDIVIDUAL)

    def test_first_year_and_closer_connection_are_informational(self, us_facts):
        decision = classify_us_residency(us_facts(days_present_current_year=200))

        assert decision.is_resident
        assert decision.has_rule(RULE_FIRST_YEAR_ELECTION)
        assert decision.has_rule(RULE_CLOSER_CONNECTION)
        notes = [entry for entry in decision.audit_trail if entry.informational]
        assert {entry.rule for entry in notes} == {RULE_FIRST_YEAR_ELECTION, RULE_CLOSER_CONNECTION}

    def test_no_closer_connection_with_us_home(self, us_facts):
        decision = classify_us_residency(us_facts(days_present_current_year=200, has_home_in_country=True))

        assert not decision.has_rule(RULE_CLOSER_CONNECTION)

    def test_leap_year_prior_day_count_accepted(self, us_facts):
        decision = classify_us_residency(us_facts(days_present_prior_year_1=366))

        assert decision.metrics.weighted_days == Decimal("122.00")

    @pytest.mark.parametrize("field, value", [
        ("days_present_current_year", 366),
        ("days_present_current_year", -1),
        ("days_present_prior_year_2", 366),
        ("close_contacts", -1),
    ])
    def test_out_of_range_facts_rejected(self, us_facts, field, value):
        with pytest.raises(InvalidInput) as exc:
            classify_us_residency(us_facts(**{field: value}))
        assert exc.value.field == field


class TestCanadaResidency:
    """183-day rule and residential ties."""

    def test_factual_resident_at_183_days(self, canada_facts):
        decision = classify_canada_residency(canada_facts(days_present_current_year=183))

        assert decision.jurisdiction == Country.CA
        assert decision.is_resident
        assert decision.residency_type == ResidencyType.FACTUAL_RESIDENT
        assert decision.has_rule(RULE_183_DAY)

    def test_home_alone_makes_deemed_resident(self, canada_facts):
        decision = classify_canada_residency(canada_facts(
            days_present_current_year=100,
            has_home_in_country=True
        ))

        assert decision.is_resident
        assert decision.residency_type == ResidencyType.DEEMED_RESIDENT
        assert decision.metrics.residential_tie_score == Decimal("2")

    def test_minor_ties_below_threshold(self, canada_facts):
        decision = classify_canada_residency(canada_facts(
            days_present_current_year=30,
            holds_bank_account=True,
            holds_memberships=True
        ))

        assert not decision.is_resident
        assert decision.residency_type == ResidencyType.NONRESIDENT
        assert decision.metrics.residential_tie_score == Decimal("0.5")
        assert decision.has_rule(RULE_RESIDENTIAL_TIES)

    def test_tie_score_at_threshold_is_resident(self, canada_facts):
        decision = classify_canada_residency(canada_facts(
            holds_driver_license=True,
            holds_health_card=True
        ))

        assert decision.is_resident
        assert decision.metrics.residential_tie_score == Decimal("1")
        assert len(decision.metrics.tie_breakdown) == 2

    def test_part_year_note(self, canada_facts):
        decision = classify_canada_residency(canada_facts(days_present_current_year=60))

        assert decision.has_rule(RULE_PART_YEAR)
        assert not decision.is_resident

    def test_departure_tax_note(self, canada_facts):
        decision = classify_canada_residency(canada_facts(
            days_present_current_year=20,
            days_present_prior_year=300
        ))

        assert decision.has_rule(RULE_DEPARTURE_TAX)

    def test_day_count_out_of_range(self, canada_facts):
        with pytest.raises(InvalidInput):
            classify_canada_residency(canada_facts(days_present_current_year=400))


@pytest.mark.parametrize("label, expected", [
    ("F-1", "F"),
    ("j1", "J"),
    (" M ", "M"),
    ("H-1B", "H"),
    ("", None),
    (None, None),
])
def test_normalize_visa_category(label, expected):
    assert normalize_visa_category(label) == expected
