"""Display unit lookup tests."""

import pytest

from dimsys import UNKNOWN_UNIT, DimensionVector, compile

SOURCE = """
    quantity_type Quantity;
    dimension_type Dimension;
    dimension Length;
    dimension Time;
    #[prefix(milli, kilo)]
    unit (meters, "m") = base(Length);
    unit (seconds, "s") = base(Time);
    unit feet = 0.3048 * meters;
"""

LENGTH = DimensionVector.axis("Length")


@pytest.fixture
def table():
    return compile(SOURCE).display_units()


class TestDisplayUnits:
    def test_closest_magnitude_on_log_scale(self, table):
        assert table.best_unit(LENGTH, 1500.0) == ("km", 1000.0)
        assert table.best_unit(LENGTH, 0.002)[0] == "mm"
        assert table.best_unit(LENGTH, 3.0)[0] == "m"

    def test_negative_values_use_absolute_magnitude(self, table):
        assert table.best_unit(LENGTH, -1500.0)[0] == "km"

    def test_zero_value(self, table):
        assert table.best_unit(LENGTH, 0.0) == (UNKNOWN_UNIT, 1.0)

    def test_unknown_dimension(self, table):
        mass = DimensionVector.axis("Mass")
        assert mass not in table
        assert table.best_unit(mass, 5.0) == (UNKNOWN_UNIT, 1.0)

    def test_units_without_symbol_are_skipped(self, table):
        assert [symbol for symbol, _ in table.candidates(LENGTH)] == ["m", "mm", "km"]

    def test_format(self, table):
        assert table.format(LENGTH, 1500.0) == "1.5 km"
        assert table.format(DimensionVector.axis("Time"), 30.0) == "30 s"

    def test_first_declared_wins_ties(self):
        table = compile(SOURCE + 'unit (metres, "M") = meters;').display_units()
        assert table.best_unit(LENGTH, 1.0)[0] == "m"
