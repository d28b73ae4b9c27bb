"""Parser tests."""

import pytest

from dimsys import BinOp, DiagnosticKind, Lexer, Name, Number, Power, parse


class TestLexer:
    def test_keywords_and_comments(self):
        tokens = Lexer("// header\ndimension Length; unit meters").tokens
        assert [t.type for t in tokens] == ["DIMENSION", "IDENT", "SEMI", "UNIT", "IDENT", "EOF"]
        assert tokens[0].line == 2

    def test_numbers(self):
        tokens = Lexer("1000 1e-3 2.5 .5").tokens
        assert [t.type for t in tokens[:-1]] == ["INT", "FLOAT", "FLOAT", "FLOAT"]

    def test_unknown_character_becomes_invalid_token(self):
        tokens = Lexer("dimension @Bad").tokens
        assert tokens[1].type == "INVALID"
        assert tokens[1].col == 11


class TestParseEntries:
    def test_base_and_derived_dimensions(self):
        defs = parse("""
            dimension Length;
            dimension Time;
            dimension Velocity = Length / Time;
        """)
        assert [d.name for d in defs.dimensions] == ["Length", "Time", "Velocity"]
        assert defs.dimensions[0].is_base
        assert not defs.dimensions[2].is_base

    def test_type_names(self):
        defs = parse("quantity_type Quantity; dimension_type Dimension;")
        assert defs.quantity_types == ["Quantity"]
        assert defs.dimension_types == ["Dimension"]

    def test_unit_tuple_head(self):
        defs = parse('unit (meters, "m", [milli, kilo]) = base(Length);')
        unit = defs.units[0]
        assert unit.name == "meters"
        assert unit.symbol == "m"
        assert unit.prefixes == ["milli", "kilo"]
        assert unit.base == "Length"
        assert unit.definition is None

    def test_unit_annotations(self):
        defs = parse("""
            #[alias(metres)]
            #[prefix(kilo)]
            #[symbol(m)]
            #[base(Length)]
            unit meters;
        """)
        unit = defs.units[0]
        assert unit.aliases == ["metres"]
        assert unit.prefixes == ["kilo"]
        assert unit.symbol == "m"
        assert unit.base == "Length"

    def test_metric_prefixes_flag(self):
        defs = parse('#[metric_prefixes] unit (meters, "m") = base(Length);')
        assert defs.units[0].metric_prefixes

    def test_unit_type_annotation(self):
        defs = parse("unit kph: Velocity = kilometers / hours;")
        assert defs.units[0].annotation == "Velocity"

    def test_quantity_forms(self):
        defs = parse("""
            def Area = Length^2;
            quantity Frequency = {Time: -1};
            def Root = {Length: (1/2)};
        """)
        area, freq, root = defs.quantities
        assert isinstance(area.definition, Power)
        assert freq.dimensions == {"Time": (-1, 1)}
        assert root.dimensions == {"Length": (1, 2)}

    def test_constant(self):
        defs = parse("constant SPEED_OF_LIGHT: Velocity = 299792458 * meters / seconds;")
        constant = defs.constants[0]
        assert constant.name == "SPEED_OF_LIGHT"
        assert constant.annotation == "Velocity"

    def test_nested_block(self):
        defs = parse("[dimension Length, dimension Time], dimension Mass")
        assert [d.name for d in defs.dimensions] == ["Length", "Time", "Mass"]
        assert defs.syntax_errors == []


class TestParseExpressions:
    def _expr(self, text):
        return parse(f"unit x = {text};").units[0].definition

    def test_left_associative(self):
        expr = self._expr("a * b / c")
        assert isinstance(expr, BinOp)
        assert expr.op == "/"
        assert isinstance(expr.left, BinOp)
        assert expr.left.op == "*"
        assert expr.left.left == Name(name="a")
        assert expr.right == Name(name="c")

    def test_number_factor(self):
        expr = self._expr("1000 * meters")
        assert expr.left == Number(value=1000.0)

    def test_integer_exponents(self):
        assert self._expr("seconds^2").exponent == 2
        assert self._expr("seconds^-2").exponent == -2
        assert self._expr("seconds^(-1)").exponent == -1

    def test_rational_exponent_is_reduced(self):
        expr = self._expr("meters^(2/4)")
        assert (expr.num, expr.den) == (1, 2)

    def test_parenthesized_power(self):
        expr = self._expr("(meters / seconds)^2")
        assert isinstance(expr, Power)
        assert isinstance(expr.base, BinOp)


class TestSyntaxErrors:
    def test_recovery_reports_one_error_per_bad_statement(self):
        defs = parse("""
            dimension Length;
            unit = 3;
            unit (meters, "m") = base(Length);
            dimension @Bad;
            unit (kilometers, "km") = 1000 * meters;
        """)
        assert len(defs.syntax_errors) == 2
        assert all(d.kind == DiagnosticKind.SYNTAX for d in defs.syntax_errors)
        assert [u.name for u in defs.units] == ["meters", "kilometers"]

    def test_error_position(self):
        defs = parse("dimension Length;\ndimension @Bad;")
        (error,) = defs.syntax_errors
        assert (error.line, error.col) == (2, 11)
        assert "unexpected character" in error.message

    def test_missing_separator(self):
        defs = parse("dimension Length dimension Time")
        assert len(defs.syntax_errors) == 1
        assert "expected ',' or ';'" in defs.syntax_errors[0].message

    @pytest.mark.parametrize(
        "source, message",
        [
            ("#[foo] unit x = 1;", "unknown annotation"),
            ("#[symbol(L)] dimension Length;", "not allowed on dimension"),
            ("#[symbol(a)] #[symbol(b)] unit x = 1;", "more than once"),
            ("#[base(A, B)] unit x;", "wrong number of arguments"),
            ("#[base(Length)] unit meters = 2 * feet;", "cannot also have a defining expression"),
            ("unit meters;", "needs a defining expression"),
            ('#[symbol(m)] unit (meters, "m") = base(Length);', "symbol of unit"),
            ("unit x = meters^(1/0);", "zero denominator"),
            ("unit x = meters^1.5;", "exponent must be an integer"),
            ("def Q = {Length: 1, Length: 2};", "given twice"),
        ],
    )
    def test_rejected_statements(self, source, message):
        defs = parse(source)
        assert len(defs.syntax_errors) == 1
        assert message in defs.syntax_errors[0].message
        assert defs.entries() == []

    def test_unbalanced_paren_does_not_swallow_later_entries(self):
        defs = parse(
            "dimension Length; unit a = (meters * ; unit b = 2 * meters; dimension Time;"
        )
        assert len(defs.syntax_errors) == 1
        assert [u.name for u in defs.units] == ["b"]
        assert [d.name for d in defs.dimensions] == ["Length", "Time"]

    def test_recovery_at_next_keyword_inside_brackets(self):
        defs = parse("unit a = (meters * , unit b = 2 * meters, dimension Time")
        assert len(defs.syntax_errors) == 1
        assert [u.name for u in defs.units] == ["b"]
        assert [d.name for d in defs.dimensions] == ["Time"]

    def test_missing_separator_keeps_next_entry(self):
        defs = parse("dimension Length dimension Time;")
        assert len(defs.syntax_errors) == 1
        assert [d.name for d in defs.dimensions] == ["Time"]

    def test_bad_annotation_skips_its_entry(self):
        defs = parse("#[foo] unit x = 1; unit y = 2;")
        assert len(defs.syntax_errors) == 1
        assert [u.name for u in defs.units] == ["y"]

    def test_unclosed_block(self):
        defs = parse("[dimension Length")
        assert len(defs.syntax_errors) == 1
        assert "unclosed" in defs.syntax_errors[0].message
