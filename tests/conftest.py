"""Pytest configuration and fixtures for test suite."""

from decimal import Decimal

import pytest

from crosstax.core.config import settings
from crosstax.core.logging import configure_logging
from crosstax.core.parameters import get_tax_parameters
from crosstax.models import CanadaResidencyFacts, Currency, Money, USResidencyFacts


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Configure structlog once for the whole run."""
    configure_logging(settings)


@pytest.fixture
def parameters():
    """The packaged 2025 parameter set."""
    return get_tax_parameters(2025)


def usd(amount) -> Money:
    return Money.of(amount, Currency.USD)


def cad(amount) -> Money:
    return Money.of(amount, Currency.CAD)


@pytest.fixture
def us_facts():
    """Factory for US residency facts with everything defaulted to zero/False."""
    def build(**overrides) -> USResidencyFacts:
        values = dict(
            tax_year=2025,
            days_present_current_year=0,
            days_present_prior_year_1=0,
            days_present_prior_year_2=0,
            exempt_days=0,
            has_green_card=False,
            visa_category=None,
            close_contacts=0,
            has_home_in_country=False,
        )
        values.update(overrides)
        return USResidencyFacts(**values)
    return build


@pytest.fixture
def canada_facts():
    """Factory for Canadian residency facts with no days and no ties."""
    def build(**overrides) -> CanadaResidencyFacts:
        values = dict(
            tax_year=2025,
            days_present_current_year=0,
            days_present_prior_year=0,
            has_home_in_country=False,
            has_spouse_in_country=False,
            has_dependents_in_country=False,
            holds_driver_license=False,
            holds_health_card=False,
            holds_bank_account=False,
            holds_memberships=False,
            works_in_country=False,
        )
        values.update(overrides)
        return CanadaResidencyFacts(**values)
    return build


def assert_close(actual: Decimal, expected: Decimal, tolerance: str = "0.000001"):
    assert abs(actual - expected) <= Decimal(tolerance), f"{actual} != {expected}"
