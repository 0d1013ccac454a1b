"""
Money and Currency Models
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from crosstax.core.exceptions import InvalidConfiguration, InvalidInput

CENTS = Decimal("0.01")


class Currency(str, Enum):
    """Supported currencies"""
    USD = "USD"
    CAD = "CAD"


class Country(str, Enum):
    """Supported tax jurisdictions"""
    US = "US"
    CA = "CA"


HOME_CURRENCY = {
    Country.US: Currency.USD,
    Country.CA: Currency.CAD,
}


class Money(BaseModel):
    """
    Decimal amount tagged with a currency.
    
    Arithmetic between two Money values requires the same currency; use the
    currency service to convert explicitly. Amounts are kept at full
    precision; call rounded() only for presentation.
    """
    amount: Decimal
    currency: Currency
    
    class Config:
        frozen = True
    
    @classmethod
    def of(cls, amount: Union[Decimal, int, str, float], currency: Currency) -> "Money":
        return cls(amount=Decimal(str(amount)), currency=currency)
    
    @classmethod
    def zero(cls, currency: Currency) -> "Money":
        return cls(amount=Decimal("0"), currency=currency)
    
    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise InvalidInput(
                f"Cannot combine {self.currency.value} and {other.currency.value} amounts without conversion",
                details={"left": self.currency.value, "right": other.currency.value}
            )
    
    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)
    
    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)
    
    def __mul__(self, factor: Union[Decimal, int]) -> "Money":
        if isinstance(factor, Money):
            raise TypeError("Money can only be multiplied by a scalar")
        return Money(amount=self.amount * Decimal(factor), currency=self.currency)
    
    __rmul__ = __mul__
    
    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount
    
    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount
    
    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount
    
    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount
    
    def __abs__(self) -> "Money":
        return Money(amount=abs(self.amount), currency=self.currency)
    
    def is_negative(self) -> bool:
        return self.amount < 0
    
    def is_zero(self) -> bool:
        return self.amount == 0
    
    def floor_zero(self) -> "Money":
        """Clamp negative amounts to zero"""
        if self.amount < 0:
            return Money.zero(self.currency)
        return self
    
    def rounded(self) -> "Money":
        """Round to cents for display"""
        return Money(amount=self.amount.quantize(CENTS, rounding=ROUND_HALF_UP), currency=self.currency)
    
    def __str__(self) -> str:
        return f"{self.currency.value} {self.amount.quantize(CENTS, rounding=ROUND_HALF_UP):,}"


def total(amounts, currency: Currency) -> Money:
    """Sum a sequence of Money values in one currency"""
    result = Money.zero(currency)
    for amount in amounts:
        result = result + amount
    return result


class CurrencyRates(BaseModel):
    """
    Injected conversion rates: 1 unit of the source currency in the target.
    
    No live rates are fetched; the table comes from configuration.
    """
    cad_to_usd: Optional[Decimal] = None
    usd_to_cad: Optional[Decimal] = None
    
    class Config:
        frozen = True
    
    @classmethod
    def reciprocal(cls, usd_to_cad: Decimal) -> "CurrencyRates":
        """Build an exactly inverse pair from the USD->CAD rate"""
        return cls(usd_to_cad=usd_to_cad, cad_to_usd=Decimal("1") / usd_to_cad)
    
    def rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        if from_currency == to_currency:
            return Decimal("1")
        
        if from_currency == Currency.CAD and to_currency == Currency.USD:
            rate = self.cad_to_usd
        else:
            rate = self.usd_to_cad
        
        if rate is None or rate <= 0:
            raise InvalidConfiguration(
                f"No {from_currency.value} to {to_currency.value} rate configured",
                field=f"{from_currency.value.lower()}_to_{to_currency.value.lower()}"
            )
        return rate
    
    def is_reciprocal(self, tolerance: Decimal = Decimal("0.000001")) -> bool:
        """True when converting there and back returns the original amount within tolerance"""
        if self.cad_to_usd is None or self.usd_to_cad is None:
            return False
        return abs(self.cad_to_usd * self.usd_to_cad - Decimal("1")) <= tolerance
