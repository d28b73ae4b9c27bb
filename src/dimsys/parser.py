"""Parser for unit system definition blocks.

Grammar (simplified):
    document    = statement (sep statement)* [sep]
    sep         = "," | ";"
    statement   = "quantity_type" NAME | "dimension_type" NAME
                | "[" document "]" | annotation* entry
    annotation  = "#" "[" NAME ["(" args ")"] "]"
    entry       = "dimension" NAME ["=" expr]
                | "unit" unit_head [":" NAME] ["=" ("base" "(" NAME ")" | expr)]
                | ("def" | "quantity") NAME "=" ("{" dims "}" | expr)
                | "constant" NAME [":" NAME] "=" expr
    unit_head   = NAME | "(" NAME "," symbol ["," "[" prefixes "]"] ")"
    expr        = factor (("*" | "/") factor)*
    factor      = ("(" expr ")" | NAME | NUMBER) ["^" exponent]
    exponent    = ["-"] INT | "(" ["-"] INT ["/" ["-"] INT] ")"

A malformed statement is reported once and skipped up to the next `;`, the
next statement keyword, or a `,` outside its own brackets; parsing then
continues with the following statement.
"""

import logging
import re
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path

from pydantic import BaseModel, ValidationError

from . import ast
from .diagnostics import ParseError

logger = logging.getLogger(__name__)


@dataclass
class Token:
    type: str
    value: str
    line: int
    col: int

    def describe(self) -> str:
        if self.type == "EOF":
            return "end of input"
        return f"'{self.value}'"


@dataclass
class Annotation:
    """`#[name(args)]` preceding an entry."""

    name: str
    args: list[str] = field(default_factory=list)
    line: int = 0
    col: int = 0


class Lexer:
    """Simple lexer for definition blocks. Unknown characters become INVALID tokens."""

    KEYWORDS = {
        "quantity_type",
        "dimension_type",
        "dimension",
        "unit",
        "def",
        "quantity",
        "constant",
    }

    TOKEN_PATTERNS = [
        (re.compile(r"//[^\n]*"), "COMMENT"),
        (re.compile(r"\s+"), "WS"),
        (re.compile(r"(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+"), "FLOAT"),
        (re.compile(r"\d+"), "INT"),
        (re.compile(r'"[^"\n]*"'), "STRING"),
        (re.compile(r"[^\W\d]\w*"), "IDENT"),
        (re.compile(r"#"), "HASH"),
        (re.compile(r"\("), "LPAREN"),
        (re.compile(r"\)"), "RPAREN"),
        (re.compile(r"\["), "LBRACKET"),
        (re.compile(r"\]"), "RBRACKET"),
        (re.compile(r"\{"), "LBRACE"),
        (re.compile(r"\}"), "RBRACE"),
        (re.compile(r","), "COMMA"),
        (re.compile(r";"), "SEMI"),
        (re.compile(r"="), "EQ"),
        (re.compile(r":"), "COLON"),
        (re.compile(r"\*"), "STAR"),
        (re.compile(r"/"), "SLASH"),
        (re.compile(r"\^"), "CARET"),
        (re.compile(r"-"), "MINUS"),
    ]

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: list[Token] = []
        self._tokenise()

    def _tokenise(self) -> None:
        while self.pos < len(self.source):
            for pattern, ttype in self.TOKEN_PATTERNS:
                m = pattern.match(self.source, self.pos)
                if m:
                    value = m.group(0)
                    if ttype == "WS":
                        for c in value:
                            if c == "\n":
                                self.line += 1
                                self.col = 1
                            else:
                                self.col += 1
                    elif ttype != "COMMENT":
                        if ttype == "IDENT" and value in self.KEYWORDS:
                            ttype = value.upper()
                        self.tokens.append(Token(ttype, value, self.line, self.col))
                        self.col += len(value)
                    else:
                        self.col += len(value)
                    self.pos += len(value)
                    break
            else:
                self.tokens.append(
                    Token("INVALID", self.source[self.pos], self.line, self.col)
                )
                self.pos += 1
                self.col += 1

        self.tokens.append(Token("EOF", "", self.line, self.col))


class Parser:
    """Recursive descent parser for definition blocks."""

    SEPARATORS = ("COMMA", "SEMI")
    OPENERS = {"LPAREN", "LBRACKET", "LBRACE"}
    CLOSERS = {"RPAREN", "RBRACKET", "RBRACE"}
    STATEMENT_STARTS = {
        "QUANTITY_TYPE",
        "DIMENSION_TYPE",
        "DIMENSION",
        "UNIT",
        "DEF",
        "QUANTITY",
        "CONSTANT",
        "HASH",
    }

    # Annotation name -> (min args, max args); None = unbounded
    ANNOTATION_ARITY = {
        "base": (1, 1),
        "symbol": (1, 1),
        "prefix": (1, None),
        "alias": (1, None),
        "metric_prefixes": (0, 0),
    }
    # Annotations legal on each entry kind
    ANNOTATIONS_BY_KIND = {
        "unit": {"base", "symbol", "prefix", "alias", "metric_prefixes"},
        "dimension": set(),
        "quantity": set(),
        "constant": set(),
    }

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[idx]

    def at(self, *types: str) -> bool:
        return self.peek().type in types

    def error(self, msg: str, tok: Token | None = None) -> ParseError:
        tok = tok or self.peek()
        if tok.type == "INVALID":
            msg = f"unexpected character {tok.value!r}"
        return ParseError(msg, tok.line, tok.col)

    def consume(self, ttype: str, what: str | None = None) -> Token:
        tok = self.peek()
        if tok.type != ttype:
            raise self.error(f"expected {what or ttype}, got {tok.describe()}", tok)
        self.pos += 1
        return tok

    def match(self, *types: str) -> Token | None:
        if self.at(*types):
            tok = self.peek()
            self.pos += 1
            return tok
        return None

    # ------------------------------------------------------------------
    # Statements

    def parse_definitions(self, path: str = "") -> ast.Definitions:
        """Parse a complete definition block."""
        defs = ast.Definitions(path=path)
        self._parse_block(defs, closing=None)
        logger.debug(
            "parsed %s: %d dimensions, %d units, %d quantities, %d constants, %d syntax errors",
            path or "<string>",
            len(defs.dimensions),
            len(defs.units),
            len(defs.quantities),
            len(defs.constants),
            len(defs.syntax_errors),
        )
        return defs

    def _parse_block(self, defs: ast.Definitions, closing: str | None) -> None:
        while True:
            while self.match(*self.SEPARATORS):
                pass
            if self.at("EOF"):
                if closing is not None:
                    defs.syntax_errors.append(
                        self.error("unclosed '[' in definition block").to_diagnostic()
                    )
                return
            if closing is not None and self.match(closing):
                return

            start = self.pos
            try:
                entry = self._parse_statement(defs)
                if not (self.at(*self.SEPARATORS, "EOF") or (closing and self.at(closing))):
                    raise self.error(
                        f"expected ',' or ';' after statement, got {self.peek().describe()}"
                    )
            except ParseError as err:
                defs.syntax_errors.append(err.to_diagnostic())
                self._synchronize(start, closing)
                continue

            if entry is not None:
                self._add_entry(defs, entry)

    def _synchronize(self, start: int, closing: str | None) -> None:
        """Skip to where the next statement can start.

        `;` and statement keywords always end the skip. `,` and the block's
        closing bracket only end it outside brackets opened by the statement.
        """
        if self.pos == start and not self.at("EOF"):
            self.pos += 1
        depth = 0
        for tok in self.tokens[start : self.pos]:
            if tok.type in self.OPENERS:
                depth += 1
            elif tok.type in self.CLOSERS and depth > 0:
                depth -= 1

        while not self.at("EOF"):
            tok = self.peek()
            if tok.type == "SEMI" or tok.type in self.STATEMENT_STARTS:
                return
            if depth == 0 and tok.type == "COMMA":
                return
            if depth == 0 and closing is not None and tok.type == closing:
                return
            if tok.type in self.OPENERS:
                depth += 1
            elif tok.type in self.CLOSERS and depth > 0:
                depth -= 1
            self.pos += 1

    @staticmethod
    def _add_entry(defs: ast.Definitions, entry: ast.Entry) -> None:
        match entry:
            case ast.DimensionEntry():
                defs.dimensions.append(entry)
            case ast.UnitEntry():
                defs.units.append(entry)
            case ast.QuantityEntry():
                defs.quantities.append(entry)
            case ast.ConstantEntry():
                defs.constants.append(entry)

    def _parse_statement(self, defs: ast.Definitions) -> ast.Entry | None:
        if self.match("QUANTITY_TYPE"):
            defs.quantity_types.append(self.consume("IDENT", "type name").value)
            return None
        if self.match("DIMENSION_TYPE"):
            defs.dimension_types.append(self.consume("IDENT", "type name").value)
            return None
        if self.match("LBRACKET"):
            self._parse_block(defs, closing="RBRACKET")
            return None

        annotations = self._parse_annotations()
        if self.at("DIMENSION"):
            return self.parse_dimension(annotations)
        if self.at("UNIT"):
            return self.parse_unit(annotations)
        if self.at("DEF", "QUANTITY"):
            return self.parse_quantity(annotations)
        if self.at("CONSTANT"):
            return self.parse_constant(annotations)
        raise self.error(
            f"unexpected {self.peek().describe()}, expected 'dimension', 'unit', "
            "'def' or 'constant'"
        )

    def _parse_annotations(self) -> list[Annotation]:
        annotations: list[Annotation] = []
        problem: ParseError | None = None
        while self.at("HASH"):
            hash_tok = self.consume("HASH")
            self.consume("LBRACKET", "'['")
            name = self.consume("IDENT", "annotation name").value
            args: list[str] = []
            if self.match("LPAREN"):
                while not self.at("RPAREN"):
                    args.append(self._parse_name_or_string())
                    if not self.match("COMMA"):
                        break
                self.consume("RPAREN", "')'")
            self.consume("RBRACKET", "']'")

            if problem is not None:
                continue
            if name not in self.ANNOTATION_ARITY:
                problem = self.error(f"unknown annotation #[{name}]", hash_tok)
            elif any(a.name == name for a in annotations):
                problem = self.error(f"annotation #[{name}] given more than once", hash_tok)
            else:
                low, high = self.ANNOTATION_ARITY[name]
                if len(args) < low or (high is not None and len(args) > high):
                    problem = self.error(f"wrong number of arguments for #[{name}]", hash_tok)
                else:
                    annotations.append(Annotation(name, args, hash_tok.line, hash_tok.col))

        if problem is not None:
            # the annotated entry is skipped together with its annotations
            if self.at("DIMENSION", "UNIT", "DEF", "QUANTITY", "CONSTANT"):
                self.pos += 1
            raise problem
        return annotations

    def _check_annotations(self, kind: str, annotations: list[Annotation]) -> None:
        allowed = self.ANNOTATIONS_BY_KIND[kind]
        for annotation in annotations:
            if annotation.name not in allowed:
                raise ParseError(
                    f"annotation #[{annotation.name}] is not allowed on {kind} entries",
                    annotation.line,
                    annotation.col,
                )

    @staticmethod
    def _build(model: type[BaseModel], tok: Token, **fields) -> BaseModel:
        """Construct an entry, turning validation failures into syntax errors."""
        try:
            return model(line=tok.line, col=tok.col, **fields)
        except ValidationError as exc:
            msg = exc.errors()[0]["msg"].removeprefix("Value error, ")
            raise ParseError(msg, tok.line, tok.col) from exc

    def _parse_name_or_string(self) -> str:
        if tok := self.match("STRING"):
            value = tok.value[1:-1]  # strip quotes
            if not value:
                raise self.error("empty string is not a valid name or symbol", tok)
            return value
        return self.consume("IDENT", "name").value

    def parse_dimension(self, annotations: list[Annotation]) -> ast.DimensionEntry:
        """Parse `dimension Name [= expr]`."""
        tok = self.consume("DIMENSION")
        self._check_annotations("dimension", annotations)
        name = self.consume("IDENT", "dimension name").value
        definition = self.parse_expr() if self.match("EQ") else None
        return self._build(ast.DimensionEntry, tok, name=name, definition=definition)

    def parse_unit(self, annotations: list[Annotation]) -> ast.UnitEntry:
        """Parse unit declaration."""
        tok = self.consume("UNIT")
        self._check_annotations("unit", annotations)
        symbol = None
        prefixes: list[str] = []
        if self.match("LPAREN"):
            name = self.consume("IDENT", "unit name").value
            self.consume("COMMA", "','")
            symbol = self._parse_name_or_string()
            if self.match("COMMA"):
                prefixes = self._parse_prefix_list()
            self.consume("RPAREN", "')'")
        else:
            name = self.consume("IDENT", "unit name").value

        annotation = None
        if self.match("COLON"):
            annotation = self.consume("IDENT", "dimension name").value

        base = None
        definition = None
        if self.match("EQ"):
            if self.at("IDENT") and self.peek().value == "base" and self.peek(1).type == "LPAREN":
                self.pos += 2
                base = self.consume("IDENT", "dimension name").value
                self.consume("RPAREN", "')'")
            else:
                definition = self.parse_expr()

        attrs = {a.name: a for a in annotations}
        if "symbol" in attrs:
            if symbol is not None:
                raise self.error(f"symbol of unit '{name}' given twice", tok)
            symbol = attrs["symbol"].args[0]
        if "base" in attrs:
            if base is not None:
                raise self.error(f"unit '{name}' tagged as base unit twice", tok)
            base = attrs["base"].args[0]
        if "prefix" in attrs:
            prefixes = prefixes + attrs["prefix"].args

        return self._build(
            ast.UnitEntry,
            tok,
            name=name,
            symbol=symbol,
            prefixes=prefixes,
            aliases=attrs["alias"].args if "alias" in attrs else [],
            metric_prefixes="metric_prefixes" in attrs,
            base=base,
            definition=definition,
            annotation=annotation,
        )

    def _parse_prefix_list(self) -> list[str]:
        self.consume("LBRACKET", "'['")
        prefixes = []
        while not self.at("RBRACKET"):
            prefixes.append(self._parse_name_or_string())
            if not self.match("COMMA"):
                break
        self.consume("RBRACKET", "']'")
        return prefixes

    def parse_quantity(self, annotations: list[Annotation]) -> ast.QuantityEntry:
        """Parse `def Name = expr` or `def Name = {Axis: n, ...}`."""
        tok = self.match("DEF", "QUANTITY")
        self._check_annotations("quantity", annotations)
        name = self.consume("IDENT", "quantity name").value
        self.consume("EQ", "'='")
        if self.at("LBRACE"):
            dimensions = self._parse_dimension_literal()
            return self._build(ast.QuantityEntry, tok, name=name, dimensions=dimensions)
        definition = self.parse_expr()
        return self._build(ast.QuantityEntry, tok, name=name, definition=definition)

    def _parse_dimension_literal(self) -> dict[str, tuple[int, int]]:
        self.consume("LBRACE")
        dimensions: dict[str, tuple[int, int]] = {}
        while not self.at("RBRACE"):
            axis_tok = self.consume("IDENT", "dimension name")
            self.consume("COLON", "':'")
            if axis_tok.value in dimensions:
                raise self.error(f"dimension '{axis_tok.value}' given twice", axis_tok)
            dimensions[axis_tok.value] = self._parse_exponent()
            if not self.match("COMMA"):
                break
        self.consume("RBRACE", "'}'")
        return dimensions

    def parse_constant(self, annotations: list[Annotation]) -> ast.ConstantEntry:
        """Parse `constant Name [: Dim] = expr`."""
        tok = self.consume("CONSTANT")
        self._check_annotations("constant", annotations)
        name = self.consume("IDENT", "constant name").value
        annotation = None
        if self.match("COLON"):
            annotation = self.consume("IDENT", "dimension name").value
        self.consume("EQ", "'='")
        definition = self.parse_expr()
        return self._build(
            ast.ConstantEntry, tok, name=name, definition=definition, annotation=annotation
        )

    # ------------------------------------------------------------------
    # Expressions

    def parse_expr(self) -> ast.Expr:
        """Products and quotients, left-associative."""
        left = self.parse_factor()
        while tok := self.match("STAR", "SLASH"):
            right = self.parse_factor()
            left = ast.BinOp(op=tok.value, left=left, right=right)
        return left

    def parse_factor(self) -> ast.Expr:
        if self.match("LPAREN"):
            value = self.parse_expr()
            self.consume("RPAREN", "')'")
        else:
            value = self.parse_value()
        if self.match("CARET"):
            num, den = self._parse_exponent()
            return ast.Power(base=value, num=num, den=den)
        return value

    def parse_value(self) -> ast.Expr:
        if tok := self.match("INT", "FLOAT"):
            return ast.Number(value=float(tok.value))
        if tok := self.match("IDENT"):
            return ast.Name(name=tok.value)
        raise self.error(f"unexpected {self.peek().describe()} in expression")

    def _parse_exponent(self) -> tuple[int, int]:
        """Integer or rational exponent, returned as (numerator, denominator) in lowest terms."""
        tok = self.peek()
        if self.match("LPAREN"):
            num = self._parse_signed_int()
            den = self._parse_signed_int() if self.match("SLASH") else 1
            self.consume("RPAREN", "')'")
        else:
            num, den = self._parse_signed_int(), 1
        if den == 0:
            raise self.error("zero denominator in exponent", tok)
        exponent = Fraction(num, den)
        return exponent.numerator, exponent.denominator

    def _parse_signed_int(self) -> int:
        negative = self.match("MINUS") is not None
        if self.at("FLOAT"):
            raise self.error(
                f"exponent must be an integer or a rational a/b, got {self.peek().describe()}"
            )
        value = int(self.consume("INT", "integer exponent").value)
        return -value if negative else value


def parse(source: str, path: str = "") -> ast.Definitions:
    """Parse definition block source code into an AST."""
    lexer = Lexer(source)
    parser = Parser(lexer.tokens)
    return parser.parse_definitions(path)


def parse_file(filepath: str | Path) -> ast.Definitions:
    """Parse a definition file."""
    filepath = Path(filepath)
    source = filepath.read_text()
    return parse(source, str(filepath))
