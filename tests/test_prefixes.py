"""Prefix and alias expansion tests."""

import pytest

from dimsys import METRIC_PREFIXES, DiagnosticKind, ResolverOptions, Severity, compile

HEADER = """
    quantity_type Quantity;
    dimension_type Dimension;
    dimension Length;
"""


class TestPrefixExpansion:
    def test_prefixed_units_follow_parent(self):
        defs = compile(HEADER + '#[prefix(milli, kilo)] unit (meters, "m") = base(Length);')
        assert defs.diagnostics == []
        assert [u.name for u in defs.units] == ["meters", "millimeters", "kilometers"]
        mm = defs.unit("millimeters")
        assert mm.symbol == "mm"
        assert mm.magnitude == pytest.approx(1e-3)
        assert mm.dimension == defs.unit("meters").dimension
        assert mm.autogenerated_from == "meters"
        assert mm.autogenerated
        assert not mm.is_base_unit
        assert defs.unit("kilometers").magnitude == pytest.approx(1e3)

    def test_inline_prefix_list(self):
        defs = compile(HEADER + 'unit (meters, "m", [centi]) = base(Length);')
        assert defs.unit("centimeters").symbol == "cm"

    def test_aliases(self):
        defs = compile(HEADER + """
            #[alias(metres)]
            #[prefix(kilo)]
            unit (meters, "m") = base(Length);
        """)
        assert [u.name for u in defs.units] == ["meters", "metres", "kilometers", "kilometres"]
        assert defs.unit("metres").symbol is None
        assert defs.unit("metres").magnitude == pytest.approx(1.0)
        assert defs.unit("kilometres").magnitude == pytest.approx(1e3)

    def test_prefix_of_unit_without_symbol(self):
        defs = compile(HEADER + """
            unit (meters, "m") = base(Length);
            #[prefix(kilo)]
            unit feet = 0.3048 * meters;
        """)
        assert defs.unit("kilofeet").symbol is None
        assert defs.unit("kilofeet").magnitude == pytest.approx(304.8)

    def test_metric_prefixes(self):
        defs = compile(HEADER + '#[metric_prefixes] unit (meters, "m") = base(Length);')
        assert defs.diagnostics == []
        assert len(defs.units) == 1 + len(METRIC_PREFIXES)
        assert defs.unit("micrometers").symbol == "μm"
        assert defs.unit("quettameters").magnitude == pytest.approx(1e30)

    def test_repeated_prefix_is_a_warning(self):
        defs = compile(HEADER + 'unit (meters, "m", [kilo, kilo]) = base(Length);')
        assert not defs.has_errors
        (warning,) = defs.diagnostics
        assert warning.severity == Severity.WARNING
        assert [u.name for u in defs.units] == ["meters", "kilometers"]

    def test_unknown_prefix(self):
        defs = compile(HEADER + 'unit (meters, "m", [kibi]) = base(Length);')
        assert [d.kind for d in defs.diagnostics] == [DiagnosticKind.UNDEFINED_REFERENCE]
        assert defs.unit("meters") is not None

    def test_extra_prefixes(self):
        options = ResolverOptions(extra_prefixes={"kibi": {"symbol": "Ki", "factor": 1024}})
        defs = compile(HEADER + 'unit (meters, "m", [kibi]) = base(Length);', options)
        assert defs.diagnostics == []
        assert defs.unit("kibimeters").symbol == "Kim"
        assert defs.unit("kibimeters").magnitude == pytest.approx(1024.0)

    def test_invalid_parent_drops_children_silently(self):
        defs = compile(HEADER + """
            unit (meters, "m") = base(Length);
            #[metric_prefixes]
            unit (feet, "ft") = 0.3048 * Length;
        """)
        assert [d.kind for d in defs.diagnostics] == [DiagnosticKind.KIND_MISMATCH]
        assert [u.name for u in defs.units] == ["meters"]
