"""Resolver: turns parsed definition blocks into a resolved unit table.

Takes one or more parsed blocks, runs the symbol table passes and the
resolution engine, checks base units, and produces the table consumed by
code generators. Problems are collected as diagnostics; the table always
contains everything that could be resolved.
"""

import logging

from pydantic import BaseModel, ConfigDict

from . import ast
from .config import ResolverOptions
from .diagnostics import CompileError, Diagnostic, DiagnosticKind, Diagnostics
from .dimensions import DimensionVector
from .display import DisplayUnitTable
from .engine import resolve_table
from .prefixes import expand_prefixes
from .symbols import Kind, Slot, State, SymbolTable

logger = logging.getLogger(__name__)


class ResolvedDimension(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    dimension: DimensionVector
    is_base: bool = False


class ResolvedUnit(BaseModel):
    """A unit with its dimension and magnitude relative to the base units."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    symbol: str | None = None
    dimension: DimensionVector
    magnitude: float
    is_base_unit: bool = False
    autogenerated_from: str | None = None  # parent unit for prefixed / aliased units

    @property
    def autogenerated(self) -> bool:
        return self.autogenerated_from is not None


class ResolvedQuantity(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    dimension: DimensionVector


class ResolvedConstant(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    dimension: DimensionVector
    magnitude: float


class ResolvedDefs(BaseModel):
    """Resolved unit system: the output handed to code generators."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    quantity_type: str
    dimension_type: str
    base_dimensions: list[str]  # declaration order
    dimensions: list[ResolvedDimension] = []
    units: list[ResolvedUnit] = []
    quantities: list[ResolvedQuantity] = []
    constants: list[ResolvedConstant] = []
    diagnostics: list[Diagnostic] = []

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def raise_for_errors(self) -> "ResolvedDefs":
        if self.has_errors:
            raise CompileError(self.diagnostics)
        return self

    def unit(self, name: str) -> ResolvedUnit | None:
        return next((u for u in self.units if u.name == name), None)

    def quantity(self, name: str) -> ResolvedQuantity | None:
        return next((q for q in self.quantities if q.name == name), None)

    def constant(self, name: str) -> ResolvedConstant | None:
        return next((c for c in self.constants if c.name == name), None)

    def display_units(self) -> DisplayUnitTable:
        return DisplayUnitTable(self.units)

    def to_dict(self) -> dict:
        """Plain data (JSON/YAML friendly) view of the table."""
        order = self.base_dimensions

        def dims(vector: DimensionVector) -> dict[str, int | str]:
            return vector.to_dict(order)

        return {
            "quantity_type": self.quantity_type,
            "dimension_type": self.dimension_type,
            "base_dimensions": list(self.base_dimensions),
            "dimensions": [
                {"name": d.name, "dimension": dims(d.dimension), "base": d.is_base}
                for d in self.dimensions
            ],
            "units": [
                {
                    "name": u.name,
                    "symbol": u.symbol,
                    "dimension": dims(u.dimension),
                    "magnitude": u.magnitude,
                    "base_unit": u.is_base_unit,
                    "autogenerated": u.autogenerated,
                }
                for u in self.units
            ],
            "quantities": [
                {"name": q.name, "dimension": dims(q.dimension)} for q in self.quantities
            ],
            "constants": [
                {"name": c.name, "dimension": dims(c.dimension), "magnitude": c.magnitude}
                for c in self.constants
            ],
            "diagnostics": [d.model_dump(mode="json") for d in self.diagnostics],
        }


class Resolver:
    """Resolves parsed definition blocks into a ResolvedDefs table."""

    def __init__(self, blocks: list[ast.Definitions], options: ResolverOptions | None = None):
        self.blocks = blocks
        self.options = options or ResolverOptions()
        self.diagnostics = Diagnostics()
        self.table = SymbolTable(self.diagnostics)

    def resolve(self) -> ResolvedDefs:
        for block in self.blocks:
            self.diagnostics.extend(block.syntax_errors)

        quantity_type = self._single_type(
            [name for b in self.blocks for name in b.quantity_types], "quantity type", "Quantity"
        )
        dimension_type = self._single_type(
            [name for b in self.blocks for name in b.dimension_types], "dimension type", "Dimension"
        )

        units = expand_prefixes(
            [u for b in self.blocks for u in b.units],
            self.options.prefix_table(),
            self.diagnostics,
        )
        self.table.add(d for b in self.blocks for d in b.dimensions)
        self.table.add(units)
        self.table.add(c for b in self.blocks for c in b.constants)
        self.table.add(q for b in self.blocks for q in b.quantities)

        self._check_duplicate_symbols()
        self.table.purge()
        self._run_pass("undefined references", self.table.filter_undefined)
        self._run_pass("multiple definitions", self.table.filter_multiply_defined)
        self._run_pass("kinds", self.table.check_kinds)
        self._run_pass(
            "resolution", lambda: resolve_table(self.table, self.options, self.diagnostics)
        )
        self.table.check_type_annotations()

        base_dimensions = [
            slot.name
            for slot in self.table.resolved(Kind.DIMENSION)
            if slot.entry.definition is None
        ]
        self._check_base_units(base_dimensions)
        self._check_base_unit_symbols()

        defs = ResolvedDefs(
            quantity_type=quantity_type,
            dimension_type=dimension_type,
            base_dimensions=base_dimensions,
            dimensions=[self._dimension(s) for s in self.table.resolved(Kind.DIMENSION)],
            units=[self._unit(s) for s in self.table.resolved(Kind.UNIT)],
            quantities=[
                ResolvedQuantity(name=s.name, dimension=s.dimension)
                for s in self.table.resolved(Kind.QUANTITY)
            ],
            constants=[
                ResolvedConstant(name=s.name, dimension=s.dimension, magnitude=s.magnitude)
                for s in self.table.resolved(Kind.CONSTANT)
            ],
            diagnostics=self.diagnostics.flush(logger),
        )
        logger.debug(
            "resolved %d units, %d quantities, %d constants with %d diagnostics",
            len(defs.units),
            len(defs.quantities),
            len(defs.constants),
            len(defs.diagnostics),
        )
        return defs

    def _run_pass(self, name: str, run) -> None:
        before = len(self.diagnostics)
        run()
        self.table.purge()
        logger.debug("pass %s: %d new diagnostics", name, len(self.diagnostics) - before)

    def _single_type(self, names: list[str], type_name: str, default: str) -> str:
        names = list(dict.fromkeys(names))
        if len(names) == 1:
            return names[0]
        if not names:
            self.diagnostics.emit(
                DiagnosticKind.TYPE_DEFINITION,
                f"no {type_name} declared, using '{default}'",
            )
            return default
        self.diagnostics.emit(
            DiagnosticKind.TYPE_DEFINITION,
            f"{type_name} declared more than once: {', '.join(names)}",
            names=names,
        )
        return names[0]

    def _user_units(self) -> list[Slot]:
        return [
            slot
            for slot in self.table.slots
            if slot.kind is Kind.UNIT and not slot.is_autogenerated
        ]

    def _check_duplicate_symbols(self) -> None:
        by_symbol: dict[str, list[Slot]] = {}
        for slot in self._user_units():
            if slot.entry.symbol is not None:
                by_symbol.setdefault(slot.entry.symbol, []).append(slot)
        for symbol, slots in by_symbol.items():
            if len(slots) < 2:
                continue
            names = [slot.name for slot in slots]
            for slot in slots:
                slot.invalidate()
            self.diagnostics.emit(
                DiagnosticKind.DUPLICATE_DEFINITION,
                f"symbol '{symbol}' is used by more than one unit: {', '.join(names)}",
                names=names,
                line=slots[1].entry.line,
                col=slots[1].entry.col,
            )

    def _check_base_units(self, base_dimensions: list[str]) -> None:
        tagged: dict[str, list[Slot]] = {dim: [] for dim in base_dimensions}
        for slot in self._user_units():
            if slot.base is None:
                continue
            if slot.state is State.RESOLVED and slot.base not in tagged:
                self.diagnostics.emit(
                    DiagnosticKind.BASE_UNIT_FOR_NON_BASE_DIMENSION,
                    f"unit '{slot.name}' is tagged as base unit of '{slot.base}', "
                    "which is not a base dimension",
                    names=[slot.name, slot.base],
                    line=slot.entry.line,
                    col=slot.entry.col,
                )
            elif slot.base in tagged:
                tagged[slot.base].append(slot)

        for dimension, slots in tagged.items():
            # a base unit dropped for its own error already has a diagnostic
            if not slots:
                self.diagnostics.emit(
                    DiagnosticKind.MISSING_BASE_UNIT,
                    f"no base unit for dimension '{dimension}'",
                    names=[dimension],
                )
                continue
            resolved = [s for s in slots if s.state is State.RESOLVED]
            if len(resolved) > 1:
                names = [s.name for s in resolved]
                self.diagnostics.emit(
                    DiagnosticKind.MULTIPLE_BASE_UNITS,
                    f"multiple base units for dimension '{dimension}': {', '.join(names)}",
                    names=[dimension, *names],
                    line=resolved[1].entry.line,
                    col=resolved[1].entry.col,
                )

    def _check_base_unit_symbols(self) -> None:
        for slot in self._user_units():
            if slot.base is not None and slot.state is State.RESOLVED and slot.entry.symbol is None:
                self.diagnostics.emit(
                    DiagnosticKind.MISSING_SYMBOL_FOR_BASE_UNIT,
                    f"base unit '{slot.name}' has no symbol",
                    names=[slot.name],
                    line=slot.entry.line,
                    col=slot.entry.col,
                )

    @staticmethod
    def _dimension(slot: Slot) -> ResolvedDimension:
        return ResolvedDimension(
            name=slot.name, dimension=slot.dimension, is_base=slot.entry.definition is None
        )

    @staticmethod
    def _unit(slot: Slot) -> ResolvedUnit:
        return ResolvedUnit(
            name=slot.name,
            symbol=slot.entry.symbol,
            dimension=slot.dimension,
            magnitude=slot.magnitude,
            is_base_unit=slot.base is not None,
            autogenerated_from=slot.autogenerated_from,
        )


def resolve(
    definitions: ast.Definitions | list[ast.Definitions],
    options: ResolverOptions | None = None,
) -> ResolvedDefs:
    """Resolve one parsed block, or several blocks merged into one unit system."""
    blocks = definitions if isinstance(definitions, list) else [definitions]
    return Resolver(blocks, options).resolve()
