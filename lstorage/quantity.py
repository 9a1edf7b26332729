"""Kubernetes-style resource quantities with exact arithmetic."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from fractions import Fraction
from functools import total_ordering

BINARY_SI = "BinarySI"
DECIMAL_SI = "DecimalSI"
DECIMAL_EXPONENT = "DecimalExponent"
_FORMATS = (BINARY_SI, DECIMAL_SI, DECIMAL_EXPONENT)

_BINARY_SUFFIXES = {"Ki": 1, "Mi": 2, "Gi": 3, "Ti": 4, "Pi": 5, "Ei": 6}
_BINARY_BY_POWER = {power: suffix for suffix, power in _BINARY_SUFFIXES.items()}
_BINARY_BY_POWER[0] = ""
_DECIMAL_SUFFIXES = {
    "n": -9, "u": -6, "m": -3, "": 0,
    "k": 3, "M": 6, "G": 9, "T": 12, "P": 15, "E": 18,
}
_DECIMAL_BY_EXPONENT = {exp: suffix for suffix, exp in _DECIMAL_SUFFIXES.items()}

_NUMBER = re.compile(r"([+-]?)([0-9]+(?:\.[0-9]*)?|\.[0-9]+)(.*)", re.DOTALL)
_EXPONENT = re.compile(r"[eE]([+-]?[0-9]+)")
_FORMAT_ERROR = (
    "quantities must match the regular expression "
    "'^([+-]?[0-9.]+)([eEinumkKMGTP]*[-+]?[0-9]*)$'"
)
_NANO = 10**9


def _round_up_to_nano(value: Fraction) -> Fraction:
    scaled = value * _NANO
    if scaled.denominator == 1:
        return value
    magnitude = math.ceil(abs(scaled))
    return Fraction(magnitude if scaled > 0 else -magnitude, _NANO)


def _format_decimal(value: Fraction, exponent_form: bool) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    exponent = 0
    while value.denominator != 1:
        value *= 10
        exponent -= 1
    mantissa = int(value)
    while mantissa % 10 == 0:
        mantissa //= 10
        exponent += 1
    remainder = exponent % 3
    mantissa *= 10**remainder
    exponent -= remainder
    if exponent_form:
        suffix = f"e{exponent}" if exponent else ""
    else:
        if exponent > 18:
            mantissa *= 10 ** (exponent - 18)
            exponent = 18
        suffix = _DECIMAL_BY_EXPONENT[exponent]
    return f"{sign}{mantissa}{suffix}"


@total_ordering
@dataclass(frozen=True, eq=False)
class Quantity:
    """An exact amount with a preferred textual format.

    Values are rounded up to nano precision, as the API server does.
    """

    value: Fraction = Fraction(0)
    format: str = DECIMAL_SI

    def __post_init__(self) -> None:
        if self.format not in _FORMATS:
            raise ValueError(f"unknown quantity format {self.format!r}")
        object.__setattr__(self, "value", _round_up_to_nano(Fraction(self.value)))

    @classmethod
    def parse(cls, text: str) -> Quantity:
        """Parse strings such as ``500Gi``, ``2k``, ``100m`` or ``1e3``."""
        match = _NUMBER.fullmatch(text)
        if match is None:
            raise ValueError(_FORMAT_ERROR)
        sign, number, suffix = match.groups()
        amount = Fraction(number)
        if suffix in _BINARY_SUFFIXES:
            value = amount * 1024 ** _BINARY_SUFFIXES[suffix]
            fmt = BINARY_SI
        elif suffix in _DECIMAL_SUFFIXES:
            value = amount * Fraction(10) ** _DECIMAL_SUFFIXES[suffix]
            fmt = DECIMAL_SI
        else:
            exponent = _EXPONENT.fullmatch(suffix)
            if exponent is None:
                raise ValueError("unable to parse quantity's suffix")
            value = amount * Fraction(10) ** int(exponent.group(1))
            fmt = DECIMAL_EXPONENT
        if sign == "-":
            value = -value
        return cls(value, fmt)

    def add(self, other: Quantity) -> Quantity:
        """Return the sum, keeping this quantity's format."""
        if not isinstance(other, Quantity):
            raise TypeError(f"cannot add {type(other).__name__} to Quantity")
        return Quantity(self.value + other.value, self.format)

    def sub(self, other: Quantity) -> Quantity:
        """Return the difference, keeping this quantity's format."""
        if not isinstance(other, Quantity):
            raise TypeError(f"cannot subtract {type(other).__name__} from Quantity")
        return Quantity(self.value - other.value, self.format)

    __add__ = add
    __sub__ = sub

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        value = self.value
        if self.format == BINARY_SI and value.denominator == 1 and abs(value) >= 1024:
            magnitude = abs(value.numerator)
            power = 0
            while power < 6 and magnitude % 1024 == 0:
                magnitude //= 1024
                power += 1
            sign = "-" if value < 0 else ""
            return f"{sign}{magnitude}{_BINARY_BY_POWER[power]}"
        return _format_decimal(value, exponent_form=self.format == DECIMAL_EXPONENT)


def bytes_to_quantity(num_bytes: int) -> Quantity:
    """Return a binary-SI quantity for a byte count."""
    return Quantity(int(num_bytes), BINARY_SI)