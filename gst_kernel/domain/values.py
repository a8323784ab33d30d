"""
Values -- Immutable, self-validating money value object.

Responsibility:
    Provides Money, the foundational fixed-precision currency type used by
    every invoice, party and payment computation. Replaces the loosely
    typed numbers the front end exchanges with the remote store.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other module. No outward dependencies except the
    kernel exception taxonomy.

Invariants enforced:
    - Money amounts are always ``Decimal`` (never float).
    - Non-finite values (NaN, Infinity) are rejected at construction.
    - Arithmetic never rounds implicitly; the only rounding points are
      ``round_to_whole()`` (grand totals) and ``round()`` (two decimal
      display/storage step). Both round half away from zero.

Failure modes:
    - InvalidAmountError on construction from a float, a non-finite value
      or an unparsable string.
    - InvalidAmountError from ``require_non_negative`` / ``require_positive``.
    - TypeError when arithmetic mixes Money with an unsupported type.

Usage:
    from gst_kernel.domain.values import Money

    rate = Money.of("1000")
    line_amount = rate * Decimal("2")          # Money(2000)
    cgst = line_amount.percentage_of("9")      # Money(180.00)
    total = (line_amount + cgst).round_to_whole()
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from gst_kernel.exceptions import InvalidAmountError

# Rupee amounts carry two decimal places (paise).
CURRENCY_CODE = "INR"
CURRENCY_DECIMAL_PLACES = 2

_WHOLE = Decimal("1")
_HUNDRED = Decimal("100")
_CENTS = Decimal(10) ** -CURRENCY_DECIMAL_PLACES

Numeric = Union[Decimal, int, str]


def to_decimal(value: Numeric, field: str = "amount") -> Decimal:
    """
    Convert a caller-supplied number to a finite Decimal.

    Floats are refused: a binary float has already lost precision by the
    time it reaches the core.

    Raises:
        InvalidAmountError: for floats, booleans, unparsable strings and
            non-finite values.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(field, value, "binary floating point is not accepted")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmountError(field, value, "not a number") from e
    else:
        raise InvalidAmountError(field, value, f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(field, value, "must be finite")
    return result


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Wraps a finite Decimal amount in the ledger currency. Carries full
        precision until a caller explicitly rounds.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - amount is always a finite Decimal (never float)
        - Equal amounts compare equal regardless of scale
          (``Money.of("2950") == Money.of("2950.00")``)

    Non-goals:
        - Does NOT carry a currency; the ledger is single-currency.
        - Does NOT format for display (locale grouping is a presentation
          concern).
    """

    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))

    @classmethod
    def of(cls, amount: Numeric) -> Money:
        """
        Factory method for creating Money.

        Raises:
            InvalidAmountError: If amount is a float, non-finite, or
                cannot be parsed.
        """
        return cls(amount=to_decimal(amount))

    @classmethod
    def zero(cls) -> Money:
        """Create a zero amount."""
        return cls(amount=Decimal("0"))

    @classmethod
    def total(cls, amounts: Iterable[Money]) -> Money:
        """Sum a sequence of Money values (zero for an empty sequence)."""
        total = cls.zero()
        for amount in amounts:
            total = total + amount
        return total

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def require_non_negative(self, field: str) -> Money:
        """Return self, or raise InvalidAmountError if negative."""
        if self.is_negative:
            raise InvalidAmountError(field, self.amount, "must not be negative")
        return self

    def require_positive(self, field: str) -> Money:
        """Return self, or raise InvalidAmountError unless strictly positive."""
        if not self.is_positive:
            raise InvalidAmountError(field, self.amount, "must be greater than zero")
        return self

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, other: Money) -> Money:
        return self + other

    def subtract(self, other: Money) -> Money:
        return self - other

    def multiply(self, quantity: Numeric) -> Money:
        """Multiply by a decimal quantity at full precision."""
        return Money(amount=self.amount * to_decimal(quantity, "quantity"))

    def percentage_of(self, rate: Numeric) -> Money:
        """
        Apply a percentage rate (e.g. ``9`` for 9%) at full precision.

        The result is not rounded.
        """
        return Money(amount=self.amount * to_decimal(rate, "rate") / _HUNDRED)

    def round_to_whole(self) -> Money:
        """Round to the nearest whole currency unit, half away from zero."""
        return Money(amount=self.amount.quantize(_WHOLE, rounding=ROUND_HALF_UP))

    def round(self) -> Money:
        """Round to two decimal places, half away from zero."""
        return Money(amount=self.amount.quantize(_CENTS, rounding=ROUND_HALF_UP))

    def compare(self, other: Money) -> int:
        """Three-way comparison: -1, 0 or 1."""
        if not isinstance(other, Money):
            raise TypeError(f"Cannot compare Money with {type(other).__name__}")
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(amount=self.amount - other.amount)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount))

    def __mul__(self, factor: Numeric) -> Money:
        if isinstance(factor, (Decimal, int, str)) and not isinstance(factor, bool):
            return self.multiply(factor)
        return NotImplemented

    def __rmul__(self, factor: Numeric) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {CURRENCY_CODE}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r})"


