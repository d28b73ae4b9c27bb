"""Display unit lookup for debug formatting of runtime values.

For a value of a given dimension, the best display unit is the one whose
magnitude is closest to the value on a log scale, |ln|value / magnitude||.
Ties go to the unit declared first.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING

import numpy as np

from .dimensions import DimensionVector

if TYPE_CHECKING:
    from .resolver import ResolvedUnit

UNKNOWN_UNIT = "unknown unit"


class DisplayUnitTable:
    """Dimension vector -> candidate (symbol, magnitude) pairs, in declaration order."""

    def __init__(self, units: Iterable["ResolvedUnit"]):
        grouped: dict[DimensionVector, list[tuple[str, float]]] = {}
        for unit in units:
            if unit.symbol is None:
                continue
            grouped.setdefault(unit.dimension, []).append((unit.symbol, unit.magnitude))
        self._symbols = {dim: [s for s, _ in pairs] for dim, pairs in grouped.items()}
        self._magnitudes = {
            dim: np.array([m for _, m in pairs], dtype=float) for dim, pairs in grouped.items()
        }

    def __contains__(self, dimension: DimensionVector) -> bool:
        return dimension in self._symbols

    def candidates(self, dimension: DimensionVector) -> list[tuple[str, float]]:
        if dimension not in self._symbols:
            return []
        return list(zip(self._symbols[dimension], self._magnitudes[dimension].tolist()))

    def best_unit(self, dimension: DimensionVector, value: float) -> tuple[str, float]:
        """(symbol, magnitude) to display ``value`` with; the sentinel for zero or unknown."""
        if value == 0 or dimension not in self._symbols:
            return UNKNOWN_UNIT, 1.0
        magnitudes = self._magnitudes[dimension]
        with np.errstate(divide="ignore", invalid="ignore"):
            closeness = np.abs(np.log(np.abs(value / magnitudes)))
        closeness = np.where(np.isnan(closeness), np.inf, closeness)
        best = int(np.argmin(closeness))  # first occurrence wins ties
        return self._symbols[dimension][best], float(magnitudes[best])

    def format(self, dimension: DimensionVector, value: float) -> str:
        symbol, magnitude = self.best_unit(dimension, value)
        return f"{value / magnitude:g} {symbol}"
