"""AST nodes for unit system definition blocks."""

from fractions import Fraction
from typing import Annotated
from typing import Literal as TypingLiteral

from pydantic import BaseModel, Field, model_validator

from .diagnostics import Diagnostic


# Expressions - using discriminated union for type safety
class Number(BaseModel):
    type: TypingLiteral["number"] = "number"
    value: float


class Name(BaseModel):
    """Reference to another definition (e.g., 'meters' or 'Length')."""

    type: TypingLiteral["name"] = "name"
    name: str


class BinOp(BaseModel):
    type: TypingLiteral["binop"] = "binop"
    op: TypingLiteral["*", "/"]
    left: "Expr"
    right: "Expr"


class Power(BaseModel):
    """Factor raised to an integer or rational exponent (e.g., seconds^(1/2))."""

    type: TypingLiteral["power"] = "power"
    base: "Expr"
    num: int
    den: int = 1

    @property
    def exponent(self) -> Fraction:
        return Fraction(self.num, self.den)


Expr = Annotated[Number | Name | BinOp | Power, Field(discriminator="type")]


def expression_names(expr: Expr) -> list[str]:
    """Names referenced by an expression, in first-use order."""
    names: list[str] = []

    def walk(node: Expr) -> None:
        match node:
            case Number():
                pass
            case Name(name=name):
                if name not in names:
                    names.append(name)
            case BinOp(left=left, right=right):
                walk(left)
                walk(right)
            case Power(base=base):
                walk(base)

    walk(expr)
    return names


# Entries
class DimensionEntry(BaseModel):
    """`dimension Name` (base) or `dimension Name = Expr` (derived)."""

    kind: TypingLiteral["dimension"] = "dimension"
    name: str
    definition: Expr | None = None  # None = base dimension
    line: int = 0
    col: int = 0

    @property
    def is_base(self) -> bool:
        return self.definition is None


class UnitEntry(BaseModel):
    """Unit declaration, user-authored or autogenerated from a prefix/alias."""

    kind: TypingLiteral["unit"] = "unit"
    name: str
    symbol: str | None = None
    prefixes: list[str] = []
    aliases: list[str] = []
    metric_prefixes: bool = False
    base: str | None = None  # dimension this unit is the base unit of
    definition: Expr | None = None
    annotation: str | None = None  # `unit foo: Length = ...`
    autogenerated_from: str | None = None  # parent unit name
    line: int = 0
    col: int = 0

    @model_validator(mode="after")
    def _check_definition(self) -> "UnitEntry":
        if self.base is not None and self.definition is not None:
            raise ValueError(
                f"unit '{self.name}' is tagged as base unit of '{self.base}' "
                "and cannot also have a defining expression"
            )
        if self.base is None and self.definition is None:
            raise ValueError(
                f"unit '{self.name}' needs a defining expression or a base(...) tag"
            )
        if self.autogenerated_from is not None and self.base is not None:
            raise ValueError("autogenerated units cannot be base units")
        return self

    @property
    def is_base(self) -> bool:
        return self.base is not None


class QuantityEntry(BaseModel):
    """`def Name = Expr` or `def Name = {Axis: n, ...}`."""

    kind: TypingLiteral["quantity"] = "quantity"
    name: str
    definition: Expr | None = None
    dimensions: dict[str, tuple[int, int]] | None = None  # axis -> (num, den)
    line: int = 0
    col: int = 0

    @model_validator(mode="after")
    def _check_definition(self) -> "QuantityEntry":
        if (self.definition is None) == (self.dimensions is None):
            raise ValueError(
                f"quantity '{self.name}' needs exactly one of an expression or a dimension literal"
            )
        return self


class ConstantEntry(BaseModel):
    """`constant Name = Expr`."""

    kind: TypingLiteral["constant"] = "constant"
    name: str
    definition: Expr
    annotation: str | None = None
    line: int = 0
    col: int = 0


Entry = DimensionEntry | UnitEntry | QuantityEntry | ConstantEntry


class Definitions(BaseModel):
    """A parsed definition block (names known, expressions unevaluated)."""

    path: str = ""
    quantity_types: list[str] = []
    dimension_types: list[str] = []
    dimensions: list[DimensionEntry] = []
    units: list[UnitEntry] = []
    quantities: list[QuantityEntry] = []
    constants: list[ConstantEntry] = []
    syntax_errors: list[Diagnostic] = []

    def entries(self) -> list[Entry]:
        return [*self.dimensions, *self.units, *self.constants, *self.quantities]


# Rebuild models for forward references
BinOp.model_rebuild()
Power.model_rebuild()
DimensionEntry.model_rebuild()
UnitEntry.model_rebuild()
QuantityEntry.model_rebuild()
ConstantEntry.model_rebuild()
