"""Fixed-point money primitive.

Amounts are held as integer minor units (cents) plus an ISO currency code.
Every conversion from a fractional value rounds once, half-up, to the minor
unit so that recomputing a payout always yields the same integers.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from mentorpay.domain.errors import ValidationError

MINOR_UNITS_PER_MAJOR = 100
ROUNDING = ROUND_HALF_UP

Number = Union[int, str, Decimal]


def round_minor(value: Decimal) -> int:
    """Round a fractional minor-unit value to an integer using ROUND_HALF_UP."""
    return int(value.quantize(Decimal("1"), rounding=ROUNDING))


def to_decimal(value: Number) -> Decimal:
    """Convert an int, str or Decimal to Decimal.

    Floats are rejected: they cannot represent most decimal fractions.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"Cannot use {type(value).__name__} {value!r} as a money value")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValidationError(f"Could not parse amount '{value}'")
    else:
        raise ValidationError(f"Cannot convert {type(value).__name__} to Decimal")
    if not result.is_finite():
        raise ValidationError(f"Amount must be finite, got '{value}'")
    return result


@dataclass(frozen=True)
class Money:
    """Integer minor units plus currency code."""

    minor: int
    currency: str = "USD"

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise ValidationError(f"Money minor units must be an int, got {self.minor!r}")
        if not isinstance(self.currency, str) or len(self.currency) != 3:
            raise ValidationError(f"Invalid currency code {self.currency!r}")

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(0, currency)

    @classmethod
    def from_major(cls, amount: Number, currency: str = "USD") -> "Money":
        """Build from a major-unit amount such as "12.345" (rounded half-up)."""
        return cls(round_minor(to_decimal(amount) * MINOR_UNITS_PER_MAJOR), currency)

    @property
    def amount(self) -> Decimal:
        """Major-unit amount as an exact Decimal with two places."""
        return (Decimal(self.minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise ValidationError(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise ValidationError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.minor + other.minor, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.minor - other.minor, self.currency)

    def multiply(self, factor: Number) -> "Money":
        """Multiply by a Decimal factor, rounding the product half-up."""
        return Money(round_minor(Decimal(self.minor) * to_decimal(factor)), self.currency)

    def is_positive(self) -> bool:
        return self.minor > 0

    def __str__(self) -> str:
        return f"{self.amount:,.2f} {self.currency}"


def sum_money(values: Iterable[Money], currency: str = "USD") -> Money:
    """Sum Money values, starting from zero in the given currency."""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total
