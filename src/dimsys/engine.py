"""Resolution engine: evaluates definitions into (dimension vector, magnitude).

Entries may reference each other in any order. The engine sweeps the
unresolved entries repeatedly, resolving every entry whose references are all
resolved already, until a sweep makes no progress. Whatever is left over is
either part of a reference cycle or blocked by an invalid definition.
"""

import logging
import math
from dataclasses import dataclass
from fractions import Fraction

from . import ast
from .config import ResolverOptions
from .diagnostics import DiagnosticKind, Diagnostics, DimensionalityError, DimsysError
from .dimensions import DIMENSIONLESS, DimensionVector, format_exponent
from .symbols import Kind, Slot, State, SymbolTable

logger = logging.getLogger(__name__)


class InvalidMagnitudeError(DimsysError):
    """Magnitude arithmetic that has no real, finite result."""


@dataclass(frozen=True)
class Value:
    dimension: DimensionVector
    magnitude: float = 1.0

    def __mul__(self, other: "Value") -> "Value":
        return Value(self.dimension * other.dimension, self.magnitude * other.magnitude)

    def __truediv__(self, other: "Value") -> "Value":
        if other.magnitude == 0:
            raise InvalidMagnitudeError("division by a zero magnitude")
        return Value(self.dimension / other.dimension, self.magnitude / other.magnitude)

    def pow(self, exponent: Fraction, *, allow_rational: bool) -> "Value":
        dimension = self.dimension.pow(exponent, allow_rational=allow_rational)
        if exponent.denominator != 1 and self.magnitude < 0:
            raise InvalidMagnitudeError(
                f"negative magnitude {self.magnitude:g} raised to non-integer power "
                f"{format_exponent(exponent)}"
            )
        if exponent < 0 and self.magnitude == 0:
            raise InvalidMagnitudeError("zero magnitude raised to a negative power")
        try:
            magnitude = self.magnitude ** float(exponent)
        except OverflowError as exc:
            raise InvalidMagnitudeError(
                f"magnitude {self.magnitude:g} raised to the power "
                f"{format_exponent(exponent)} is out of range"
            ) from exc
        return Value(dimension, magnitude)


class Evaluator:
    """Evaluates one slot against the current state of the table."""

    def __init__(self, table: SymbolTable, options: ResolverOptions):
        self.table = table
        self.allow_rational = options.rational_dimensions

    def evaluate(self, slot: Slot) -> Value | None:
        """Value of ``slot``, or None while one of its references is unresolved."""
        entry = slot.entry
        if slot.kind is Kind.DIMENSION and entry.definition is None:
            return Value(DimensionVector.axis(slot.name))
        if slot.base is not None:
            target = self.table.lookup(slot.base, "dimension")
            if target is None or target.state is not State.RESOLVED:
                return None
            return Value(target.dimension)
        if entry.definition is None:
            return self._dimension_literal(entry.dimensions)
        value = self._eval(entry.definition, slot)
        if value is not None and not math.isfinite(value.magnitude):
            raise InvalidMagnitudeError(f"magnitude of {slot.describe()} is not finite")
        return value

    def _dimension_literal(self, dimensions: dict[str, tuple[int, int]]) -> Value:
        vector = DimensionVector(
            {axis: Fraction(num, den) for axis, (num, den) in dimensions.items()}
        )
        if not self.allow_rational and not vector.is_integral():
            raise DimensionalityError(
                f"non-integer exponent in {vector} requires rational dimensions"
            )
        return Value(vector)

    def _eval(self, expr: ast.Expr, slot: Slot) -> Value | None:
        track_magnitude = slot.has_magnitude
        match expr:
            case ast.Number(value=number):
                return Value(DIMENSIONLESS, number if track_magnitude else 1.0)
            case ast.Name(name=name):
                dep = self.table.lookup(name, slot.scope, exclude=slot)
                if dep is None or dep.state is not State.RESOLVED:
                    return None
                magnitude = dep.magnitude if track_magnitude and dep.magnitude is not None else 1.0
                return Value(dep.dimension, magnitude)
            case ast.BinOp(op=op, left=left, right=right):
                lhs = self._eval(left, slot)
                rhs = self._eval(right, slot)
                if lhs is None or rhs is None:
                    return None
                return lhs * rhs if op == "*" else lhs / rhs
            case ast.Power(base=base):
                value = self._eval(base, slot)
                if value is None:
                    return None
                return value.pow(expr.exponent, allow_rational=self.allow_rational)
        raise TypeError(f"unknown expression node: {expr!r}")


def _seed(table: SymbolTable, evaluator: Evaluator) -> None:
    """Resolve base dimensions, then the base units attached to them."""
    for slot in table.active():
        if slot.kind is Kind.DIMENSION and slot.entry.definition is None:
            slot.resolve(evaluator.evaluate(slot).dimension, None)
    for slot in table.active():
        if slot.base is not None and slot.state is State.UNRESOLVED:
            value = evaluator.evaluate(slot)
            if value is not None:
                slot.resolve(value.dimension, 1.0)


def resolve_table(table: SymbolTable, options: ResolverOptions, diagnostics: Diagnostics) -> None:
    """Fixed-point sweep over every unresolved slot of ``table``."""
    evaluator = Evaluator(table, options)
    _seed(table, evaluator)

    pending = [slot for slot in table.active() if slot.state is State.UNRESOLVED]
    sweeps = 0
    progress = True
    while pending and progress:
        sweeps += 1
        progress = False
        blocked: list[Slot] = []
        for slot in pending:
            try:
                value = evaluator.evaluate(slot)
            except DimensionalityError as exc:
                _fail(slot, DiagnosticKind.DIMENSIONALITY, str(exc), diagnostics)
                progress = True
                continue
            except InvalidMagnitudeError as exc:
                _fail(slot, DiagnosticKind.INVALID_MAGNITUDE, str(exc), diagnostics)
                progress = True
                continue
            if value is None:
                blocked.append(slot)
                continue
            slot.resolve(value.dimension, value.magnitude)
            progress = True
        pending = blocked

    logger.debug("resolution finished after %d sweeps, %d entries unresolved", sweeps, len(pending))
    if pending:
        _report_unresolved(table, pending, diagnostics)


def _fail(slot: Slot, kind: DiagnosticKind, message: str, diagnostics: Diagnostics) -> None:
    slot.invalidate()
    diagnostics.emit(
        kind,
        f"in {slot.describe()}: {message}",
        names=[slot.name],
        line=slot.entry.line,
        col=slot.entry.col,
    )


def _report_unresolved(table: SymbolTable, pending: list[Slot], diagnostics: Diagnostics) -> None:
    """One diagnostic per reference cycle, one per entry blocked by something else."""
    position = {id(slot): i for i, slot in enumerate(pending)}
    edges: dict[int, list[Slot]] = {}
    blockers: dict[int, list[str]] = {}
    for slot in pending:
        edges[id(slot)] = []
        blockers[id(slot)] = []
        for name, scope in slot.dependencies():
            dep = table.lookup(name, scope, exclude=slot) or table.lookup(name, scope)
            if dep is not None and dep.state is State.RESOLVED:
                continue
            blockers[id(slot)].append(name)
            if dep is not None and id(dep) in position:
                edges[id(slot)].append(dep)

    in_cycle: set[int] = set()
    for component in _strongly_connected(pending, edges):
        slot = component[0]
        if len(component) == 1 and not any(dep is slot for dep in edges[id(slot)]):
            continue
        component.sort(key=lambda s: position[id(s)])
        in_cycle.update(id(s) for s in component)
        members = [s for s in component if not s.is_autogenerated] or component
        names = [s.name for s in members]
        first = members[0]
        diagnostics.emit(
            DiagnosticKind.UNRESOLVABLE_CYCLE,
            f"definitions of {', '.join(names)} depend on each other and cannot be resolved",
            names=names,
            line=first.entry.line,
            col=first.entry.col,
        )

    for slot in pending:
        slot.invalidate()
        if id(slot) in in_cycle or slot.is_autogenerated:
            continue
        names = list(dict.fromkeys(blockers[id(slot)]))
        diagnostics.emit(
            DiagnosticKind.UNRESOLVED_DEPENDENCY,
            f"{slot.describe()} depends on {', '.join(names)}, which could not be resolved",
            names=[slot.name, *names],
            line=slot.entry.line,
            col=slot.entry.col,
        )


def _strongly_connected(nodes: list[Slot], edges: dict[int, list[Slot]]) -> list[list[Slot]]:
    """Tarjan's algorithm over the unresolved slots.

    Iterative: dependency chains of any length are walked with an explicit
    work stack of (slot, next edge position) frames.
    """
    index: dict[int, int] = {}
    lowlink: dict[int, int] = {}
    stack: list[Slot] = []
    on_stack: set[int] = set()
    components: list[list[Slot]] = []

    for root in nodes:
        if id(root) in index:
            continue
        work: list[tuple[Slot, int]] = [(root, 0)]
        while work:
            slot, position = work.pop()
            key = id(slot)
            deps = edges[key]
            if position == 0:
                index[key] = lowlink[key] = len(index)
                stack.append(slot)
                on_stack.add(key)
            else:
                # back from visiting deps[position - 1]
                lowlink[key] = min(lowlink[key], lowlink[id(deps[position - 1])])

            descended = False
            while position < len(deps):
                dep = deps[position]
                position += 1
                if id(dep) not in index:
                    work.append((slot, position))
                    work.append((dep, 0))
                    descended = True
                    break
                if id(dep) in on_stack:
                    lowlink[key] = min(lowlink[key], index[id(dep)])
            if descended:
                continue

            if lowlink[key] == index[key]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(id(member))
                    component.append(member)
                    if member is slot:
                        break
                components.append(component)
    order = {id(slot): i for i, slot in enumerate(nodes)}
    components.sort(key=lambda c: min(order[id(s)] for s in c))
    return components
