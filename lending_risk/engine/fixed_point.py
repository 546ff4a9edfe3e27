"""
Fixed-point decimal values tagged with an explicit precision.

A DecimalValue pairs an integer magnitude with the number of fractional
digits it carries. Values only combine at equal precision; every multiply,
divide and rescale names its target precision and rounds half-up (half away
from zero for negative values).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from functools import total_ordering
from typing import Union

from .constants import BPS_PRECISION, RAY_PRECISION, WAD_PRECISION
from .exceptions import DivisionByZeroError, NegativeValueError, PrecisionMismatchError


def _div_round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding ties away from zero."""
    if denominator == 0:
        raise DivisionByZeroError("Division by zero")
    negative = (numerator < 0) != (denominator < 0)
    quotient, remainder = divmod(abs(numerator), abs(denominator))
    if 2 * remainder >= abs(denominator):
        quotient += 1
    return -quotient if negative else quotient


def _scale_raw(raw: int, from_precision: int, to_precision: int) -> int:
    if to_precision >= from_precision:
        return raw * 10 ** (to_precision - from_precision)
    return _div_round_half_up(raw, 10 ** (from_precision - to_precision))


@total_ordering
class DecimalValue:
    """An exact signed fixed-point number: raw / 10**precision."""

    __slots__ = ("raw", "precision")

    def __init__(self, raw: int, precision: int):
        if precision < 0:
            raise ValueError(f"Precision must be non-negative, got {precision}")
        self.raw = int(raw)
        self.precision = int(precision)

    @classmethod
    def zero(cls, precision: int) -> "DecimalValue":
        return cls(0, precision)

    @classmethod
    def one(cls, precision: int) -> "DecimalValue":
        return cls(10**precision, precision)

    @classmethod
    def from_units(cls, units: int, precision: int) -> "DecimalValue":
        """Build a value from a whole number of units, e.g. 5 -> 5.0."""
        return cls(int(units) * 10**precision, precision)

    @classmethod
    def parse(cls, text: Union[str, int], precision: int) -> "DecimalValue":
        """
        Parse a decimal string such as "1.02" at the given precision.

        Digits beyond the precision are rounded half-up.
        """
        try:
            with localcontext() as context:
                context.prec = 200
                scaled = Decimal(str(text)).scaleb(precision)
                raw = scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value: {text!r}") from exc
        return cls(int(raw), precision)

    def rescale(self, precision: int) -> "DecimalValue":
        """Return this value at another precision, rounding half-up when narrowing."""
        return DecimalValue(_scale_raw(self.raw, self.precision, precision), precision)

    def is_zero(self) -> bool:
        return self.raw == 0

    def is_negative(self) -> bool:
        return self.raw < 0

    def to_unsigned(self) -> "DecimalValue":
        if self.raw < 0:
            raise NegativeValueError(f"Cannot convert negative value {self} to unsigned")
        return self

    def _check_precision(self, other: "DecimalValue") -> None:
        if not isinstance(other, DecimalValue):
            raise TypeError(f"Expected DecimalValue, got {type(other).__name__}")
        if other.precision != self.precision:
            raise PrecisionMismatchError(
                f"Cannot combine precision {self.precision} with precision {other.precision}"
            )

    def __add__(self, other: "DecimalValue") -> "DecimalValue":
        self._check_precision(other)
        return DecimalValue(self.raw + other.raw, self.precision)

    def __sub__(self, other: "DecimalValue") -> "DecimalValue":
        self._check_precision(other)
        return DecimalValue(self.raw - other.raw, self.precision)

    def __neg__(self) -> "DecimalValue":
        return DecimalValue(-self.raw, self.precision)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecimalValue):
            return NotImplemented
        self._check_precision(other)
        return self.raw == other.raw

    def __lt__(self, other: "DecimalValue") -> bool:
        self._check_precision(other)
        return self.raw < other.raw

    def __hash__(self) -> int:
        return hash((self.raw, self.precision))

    def __str__(self) -> str:
        sign = "-" if self.raw < 0 else ""
        if self.precision == 0:
            return f"{sign}{abs(self.raw)}"
        whole, fraction = divmod(abs(self.raw), 10**self.precision)
        return f"{sign}{whole}.{fraction:0{self.precision}d}"

    def __repr__(self) -> str:
        return f"DecimalValue('{self}', precision={self.precision})"


def ray(raw: int) -> DecimalValue:
    return DecimalValue(raw, RAY_PRECISION)


def wad(raw: int) -> DecimalValue:
    return DecimalValue(raw, WAD_PRECISION)


def bps(raw: int) -> DecimalValue:
    return DecimalValue(raw, BPS_PRECISION)


def mul_half_up_signed(a: DecimalValue, b: DecimalValue, precision: int) -> DecimalValue:
    """Multiply two signed values at the given output precision."""
    scaled_a = _scale_raw(a.raw, a.precision, precision)
    scaled_b = _scale_raw(b.raw, b.precision, precision)
    return DecimalValue(_div_round_half_up(scaled_a * scaled_b, 10**precision), precision)


def div_half_up_signed(a: DecimalValue, b: DecimalValue, precision: int) -> DecimalValue:
    """Divide two signed values at the given output precision."""
    scaled_a = _scale_raw(a.raw, a.precision, precision)
    scaled_b = _scale_raw(b.raw, b.precision, precision)
    if scaled_b == 0:
        raise DivisionByZeroError(f"Division of {a} by zero")
    return DecimalValue(_div_round_half_up(scaled_a * 10**precision, scaled_b), precision)


def mul_half_up(a: DecimalValue, b: DecimalValue, precision: int) -> DecimalValue:
    """Multiply two non-negative values at the given output precision."""
    a.to_unsigned()
    b.to_unsigned()
    return mul_half_up_signed(a, b, precision)


def div_half_up(a: DecimalValue, b: DecimalValue, precision: int) -> DecimalValue:
    """Divide two non-negative values at the given output precision."""
    a.to_unsigned()
    b.to_unsigned()
    return div_half_up_signed(a, b, precision)


def average(a: DecimalValue, b: DecimalValue) -> DecimalValue:
    """Midpoint of two values of equal precision, rounded half-up."""
    a._check_precision(b)
    return DecimalValue(_div_round_half_up(a.raw + b.raw, 2), a.precision)


def min_value(a: DecimalValue, b: DecimalValue) -> DecimalValue:
    return a if a <= b else b


def max_value(a: DecimalValue, b: DecimalValue) -> DecimalValue:
    return a if a >= b else b
