"""Exact dimension algebra.

A dimension vector maps base-dimension names to rational exponents. Axes that
are not mentioned have exponent 0, so vectors from different definition
blocks compare equal whenever they describe the same dimension.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from fractions import Fraction

from .diagnostics import DimensionalityError

Exponent = int | Fraction


def to_fraction(value: Exponent | str) -> Fraction:
    if isinstance(value, Fraction):
        return value
    if isinstance(value, bool):
        raise TypeError("dimension exponents must be integers or fractions")
    if isinstance(value, int):
        return Fraction(value, 1)
    if isinstance(value, str):
        return Fraction(value)
    raise TypeError(f"dimension exponents must be integers or fractions, got {value!r}")


def format_exponent(value: Fraction) -> str:
    if value.denominator == 1:
        return str(value.numerator)
    return f"{value.numerator}/{value.denominator}"


@dataclass(frozen=True)
class DimensionVector:
    """Immutable mapping of base-dimension name -> rational exponent."""

    exponents: tuple[tuple[str, Fraction], ...] = ()

    def __init__(self, exponents: Mapping[str, Exponent] | Iterable[tuple[str, Exponent]] = ()):
        pairs = exponents.items() if isinstance(exponents, Mapping) else exponents
        totals: dict[str, Fraction] = {}
        for name, value in pairs:
            totals[name] = totals.get(name, Fraction(0)) + to_fraction(value)
        normalized = tuple(sorted((n, v) for n, v in totals.items() if v != 0))
        object.__setattr__(self, "exponents", normalized)

    @classmethod
    def axis(cls, name: str) -> "DimensionVector":
        """Unit vector along a single base dimension."""
        return cls({name: 1})

    @classmethod
    def dimensionless(cls) -> "DimensionVector":
        return cls()

    def __getitem__(self, name: str) -> Fraction:
        for axis, value in self.exponents:
            if axis == name:
                return value
        return Fraction(0)

    def as_dict(self) -> dict[str, Fraction]:
        return dict(self.exponents)

    @property
    def axes(self) -> list[str]:
        return [axis for axis, _ in self.exponents]

    # ------------------------------------------------------------------
    # Algebra

    def __mul__(self, other: "DimensionVector") -> "DimensionVector":
        if not isinstance(other, DimensionVector):
            return NotImplemented
        return DimensionVector(self.exponents + other.exponents)

    def __truediv__(self, other: "DimensionVector") -> "DimensionVector":
        if not isinstance(other, DimensionVector):
            return NotImplemented
        return self * other.inverse()

    def inverse(self) -> "DimensionVector":
        return DimensionVector((axis, -value) for axis, value in self.exponents)

    def pow(self, exponent: Exponent, *, allow_rational: bool = True) -> "DimensionVector":
        """Scale every exponent by ``exponent``.

        With ``allow_rational=False`` a result with a non-integer component
        raises DimensionalityError.
        """
        factor = to_fraction(exponent)
        result = DimensionVector((axis, value * factor) for axis, value in self.exponents)
        if not allow_rational and not result.is_integral():
            offending = [
                axis for axis, value in result.exponents if value.denominator != 1
            ]
            raise DimensionalityError(
                f"raising {self} to the power {format_exponent(factor)} gives a "
                f"non-integer exponent for {', '.join(offending)}"
            )
        return result

    def __pow__(self, exponent: Exponent) -> "DimensionVector":
        return self.pow(exponent)

    def root(self, degree: int) -> "DimensionVector":
        """Take an integer root. Every exponent must be divisible by ``degree``."""
        if degree <= 0:
            raise DimensionalityError(f"root degree must be positive, got {degree}")
        for axis, value in self.exponents:
            if (value / degree).denominator != 1:
                raise DimensionalityError(
                    f"cannot take root of degree {degree} of {self}: "
                    f"exponent {format_exponent(value)} of {axis} is not divisible by {degree}"
                )
        return self.pow(Fraction(1, degree))

    def sqrt(self) -> "DimensionVector":
        return self.root(2)

    def cbrt(self) -> "DimensionVector":
        return self.root(3)

    # ------------------------------------------------------------------

    def is_integral(self) -> bool:
        return all(value.denominator == 1 for _, value in self.exponents)

    def is_dimensionless(self) -> bool:
        return not self.exponents

    def to_dict(self, order: Sequence[str] | None = None) -> dict[str, int | str]:
        """Plain mapping for serialization; rationals become ``"a/b"`` strings."""
        values = self.as_dict()
        axes = [axis for axis in (order or ()) if axis in values]
        axes += sorted(axis for axis in values if axis not in axes)
        out: dict[str, int | str] = {}
        for axis in axes:
            value = values[axis]
            out[axis] = value.numerator if value.denominator == 1 else format_exponent(value)
        return out

    def format(self, order: Sequence[str] | None = None) -> str:
        parts = [f"{axis}:{value}" for axis, value in self.to_dict(order).items()]
        return "[" + ", ".join(parts) + "]"

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"DimensionVector({self.to_dict()!r})"


DIMENSIONLESS = DimensionVector()
