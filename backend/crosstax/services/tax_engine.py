"""
Cross-Border Tax Engine
Runs residency, liability, credits, treaty relief and form selection for a
US/Canada taxpayer in one pass
"""

from typing import Dict, List, Optional, Sequence

import structlog

from crosstax.core.config import settings
from crosstax.core.exceptions import InvalidInput
from crosstax.core.parameters import TaxParameters, get_tax_parameters
from crosstax.models.aggregation import EstimatedTaxSchedule
from crosstax.models.credits import DomesticCreditResult, ForeignTaxCreditResult, FTCJurisdiction, TreatyBenefit
from crosstax.models.income import IncomeItem
from crosstax.models.money import HOME_CURRENCY, Country, Currency, Money, total
from crosstax.models.residency import ResidencyDecision
from crosstax.models.tax import LiabilityResult, MultiStateResult
from crosstax.models.tax_return import CrossBorderComputation, CrossBorderProfile
from crosstax.services.credit_engine import claims_for, compute_domestic_credits, compute_foreign_tax_credit
from crosstax.services.currency import aggregate_liabilities, convert_currency, estimated_tax_payments
from crosstax.services.form_selector import income_types_by_country, select_required_forms
from crosstax.services.liability_engine import (
    canada_layers,
    compute_liability,
    compute_multi_state_tax,
    standard_deduction,
    us_layers,
)
from crosstax.services.residency_engine import classify_canada_residency, classify_us_residency
from crosstax.services.treaty_engine import classify_totalization, lookup_treaty_benefits

logger = structlog.get_logger()

OTHER_COUNTRY = {
    Country.US: Country.CA,
    Country.CA: Country.US,
}


class CrossBorderTaxEngine:
    """Deterministic US/Canada tax computation for one tax year"""

    def __init__(self, tax_year: int = None, parameters: Optional[TaxParameters] = None):
        self.parameters = parameters or get_tax_parameters(tax_year)
        self.tax_year = self.parameters.tax_year
        self.ruleset_version = self.parameters.version
        self.rates = self.parameters.currency_rates

    def _in_base(self, item: IncomeItem, country: Country, decision: ResidencyDecision) -> bool:
        # Residents are taxed on worldwide income, nonresidents on local source only
        return decision.is_resident or item.source_country == country

    def _gross(self, items: Sequence[IncomeItem], currency: Currency) -> Money:
        return total((convert_currency(item.amount, currency, self.rates) for item in items), currency)

    def _liability(
        self,
        country: Country,
        gross_income: Money,
        profile: CrossBorderProfile
    ) -> LiabilityResult:
        """
        One country's liability on its taxable base.

        US tax uses the graduated brackets and the standard deduction even
        for a nonresident. This is a simplification: treaty withholding
        rates on nonresident income are reported by the treaty lookup, not
        applied here.
        """
        if country == Country.US:
            deductions = profile.us_deductions
            if deductions is None:
                deductions = standard_deduction(profile.filing_status, self.parameters)
            layers = us_layers(profile.filing_status, profile.state_code, self.parameters)
        else:
            deductions = profile.canada_deductions
            if deductions is None:
                deductions = Money.zero(Currency.CAD)
            layers = canada_layers(profile.province, self.parameters)
        return compute_liability(gross_income, deductions, layers)

    def _foreign_tax_paid(
        self,
        source_country: Country,
        liabilities: Dict[Country, LiabilityResult],
        bases: Dict[Country, List[IncomeItem]],
        currency: Currency
    ) -> Money:
        """Source country's tax attributable to income sourced there, in the residence currency"""
        source_liability = liabilities.get(source_country)
        if source_liability is None or source_liability.gross_income.is_zero():
            return Money.zero(currency)

        source_currency = HOME_CURRENCY[source_country]
        sourced = self._gross(
            [item for item in bases[source_country] if item.source_country == source_country],
            source_currency
        )
        share = sourced.amount / source_liability.gross_income.amount
        return convert_currency(source_liability.total_tax * share, currency, self.rates)

    def _foreign_tax_credit(
        self,
        country: Country,
        liabilities: Dict[Country, LiabilityResult],
        bases: Dict[Country, List[IncomeItem]]
    ) -> Optional[ForeignTaxCreditResult]:
        other = OTHER_COUNTRY[country]
        currency = HOME_CURRENCY[country]
        foreign_items = [item for item in bases[country] if item.source_country == other]
        if not foreign_items:
            return None

        liability = liabilities[country]
        return compute_foreign_tax_credit(
            foreign_income=self._gross(foreign_items, currency),
            foreign_tax_paid=self._foreign_tax_paid(other, liabilities, bases, currency),
            domestic_tax=liability.total_tax,
            total_income=liability.gross_income,
            jurisdiction=FTCJurisdiction(country.value),
            parameters=self.parameters
        )

    def _treaty_benefits(
        self,
        country: Country,
        income_items: Sequence[IncomeItem]
    ) -> List[TreatyBenefit]:
        """Relief on income sourced in the other country, indexed into the profile's items"""
        other = OTHER_COUNTRY[country]
        indexes = [i for i, item in enumerate(income_items) if item.source_country == other]
        benefits = lookup_treaty_benefits([income_items[i] for i in indexes], country, other)
        return [
            benefit.model_copy(update={"item_index": indexes[benefit.item_index]})
            for benefit in benefits
        ]

    def _domestic_credits(
        self,
        country: Country,
        profile: CrossBorderProfile,
        residency: Dict[Country, ResidencyDecision],
        liabilities: Dict[Country, LiabilityResult]
    ) -> Optional[DomesticCreditResult]:
        """Credits a country grants its residents, on that country's gross income"""
        claims = claims_for(profile.credit_claims, country)
        if not claims:
            return None
        if not residency[country].is_resident:
            logger.info("Skipping credits for nonresident", country=country.value, claims=len(claims))
            return None
        return compute_domestic_credits(
            liabilities[country].gross_income,
            claims,
            self.parameters,
            jurisdiction=country
        )

    def compute_cross_border_return(self, profile: CrossBorderProfile) -> CrossBorderComputation:
        """
        Compute both countries' liabilities and the relief between them.

        Residents of a country are taxed there on every income item;
        nonresidents only on items sourced in that country. Each country of
        residence then credits tax paid to the other country on income
        sourced there, and treaty relief is reported for those same items.
        A country with neither residency nor local-source income produces
        no liability.

        State allocations, when given, are taxed per state (plus local tax)
        instead of a single state layer and added to US net tax. Domestic
        credits are evaluated for each country the taxpayer is resident in.

        Args:
            profile: Residency facts, income, deductions and optional
                employment arrangement

        Returns:
            Immutable computation including the ruleset version used
        """
        logger.info(
            "Computing cross-border return",
            tax_year=self.tax_year,
            ruleset_version=self.ruleset_version,
            income_items=len(profile.income_items)
        )

        if profile.state_code and profile.state_allocations:
            raise InvalidInput(
                "Give either state_code or state_allocations, not both",
                field="state_allocations"
            )

        residency = {
            Country.US: classify_us_residency(profile.us_facts, self.parameters.us_residency),
            Country.CA: classify_canada_residency(profile.canada_facts, self.parameters.canada_residency),
        }

        bases: Dict[Country, List[IncomeItem]] = {}
        liabilities: Dict[Country, LiabilityResult] = {}
        for country, decision in residency.items():
            items = [item for item in profile.income_items if self._in_base(item, country, decision)]
            bases[country] = items
            if not decision.is_resident and not items:
                continue
            gross = self._gross(items, HOME_CURRENCY[country])
            liabilities[country] = self._liability(country, gross, profile)

        foreign_tax_credits: Dict[Country, ForeignTaxCreditResult] = {}
        treaty_benefits: Dict[Country, List[TreatyBenefit]] = {}
        for country, decision in residency.items():
            if not decision.is_resident:
                continue
            credit = self._foreign_tax_credit(country, liabilities, bases)
            if credit is not None:
                foreign_tax_credits[country] = credit
            benefits = self._treaty_benefits(country, profile.income_items)
            if benefits:
                treaty_benefits[country] = benefits

        multi_state: Optional[MultiStateResult] = None
        if profile.state_allocations and Country.US in liabilities:
            multi_state = compute_multi_state_tax(profile.state_allocations, self.parameters)

        net_tax: Dict[Country, Money] = {}
        for country, liability in liabilities.items():
            credit = foreign_tax_credits.get(country)
            tax = liability.total_tax
            if credit is not None:
                tax = (tax - credit.credit_allowed).floor_zero()
            if country == Country.US and multi_state is not None:
                tax = tax + multi_state.total_tax
            net_tax[country] = tax

        domestic_credits = self._domestic_credits(Country.US, profile, residency, liabilities)
        canada_credits = self._domestic_credits(Country.CA, profile, residency, liabilities)

        totalization = None
        if profile.employment is not None:
            totalization = classify_totalization(
                profile.employment.employee_country,
                profile.employment.employer_country,
                profile.employment.employment_income,
                self.rates,
                self.parameters
            )

        forms = select_required_forms(income_types_by_country(bases), residency)

        aggregate = aggregate_liabilities(
            {country.value: liability for country, liability in liabilities.items()},
            Currency.USD,
            self.rates
        )
        net_tax_usd = total(
            (convert_currency(tax, Currency.USD, self.rates) for tax in net_tax.values()),
            Currency.USD
        )

        estimated_payments: Optional[EstimatedTaxSchedule] = None
        if Country.US in net_tax:
            estimated_payments = estimated_tax_payments(net_tax[Country.US], self.tax_year)

        logger.info(
            "Cross-border return computed",
            us_resident=residency[Country.US].is_resident,
            ca_resident=residency[Country.CA].is_resident,
            total_tax_usd=str(aggregate.total_tax.amount),
            net_tax_usd=str(net_tax_usd.amount),
            forms=len(forms)
        )

        return CrossBorderComputation(
            tax_year=self.tax_year,
            ruleset_version=self.ruleset_version,
            residency=residency,
            liabilities=liabilities,
            foreign_tax_credits=foreign_tax_credits,
            net_tax=net_tax,
            domestic_credits=domestic_credits,
            canada_credits=canada_credits,
            multi_state=multi_state,
            treaty_benefits=treaty_benefits,
            totalization=totalization,
            forms=forms,
            aggregate=aggregate,
            net_tax_usd=net_tax_usd,
            estimated_payments=estimated_payments
        )


def get_tax_engine(tax_year: int = None) -> CrossBorderTaxEngine:
    """Get cross-border tax engine instance for specific year"""
    return CrossBorderTaxEngine(tax_year=tax_year or settings.TAX_YEAR)
