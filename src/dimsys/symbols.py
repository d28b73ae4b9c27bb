"""Symbol table: every named definition, its kind and its resolution state.

Dimensions, units and constants share one namespace. Quantities live in a
namespace of their own so that `def Length = ...` can coexist with
`dimension Length`.

Each filtering pass marks offending slots INVALID and reports them; `purge`
then drops them (together with anything autogenerated from them) from the
lookup index so later passes never see them again.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from . import ast
from .diagnostics import DiagnosticKind, Diagnostics
from .dimensions import DimensionVector

logger = logging.getLogger(__name__)


class Kind(str, Enum):
    DIMENSION = "dimension"
    UNIT = "unit"
    CONSTANT = "constant"
    QUANTITY = "quantity"


class State(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    INVALID = "invalid"


MAIN = "main"
QUANTITIES = "quantities"

# Where a name may be looked up, by referencing context: (namespace, allowed kinds)
SCOPES: dict[str, list[tuple[str, set[Kind]]]] = {
    "dimension": [(MAIN, {Kind.DIMENSION})],
    "magnitude": [(MAIN, {Kind.UNIT, Kind.CONSTANT}), (QUANTITIES, {Kind.QUANTITY})],
    "quantity": [
        (QUANTITIES, {Kind.QUANTITY}),
        (MAIN, {Kind.DIMENSION, Kind.UNIT, Kind.CONSTANT}),
    ],
    "annotation": [(QUANTITIES, {Kind.QUANTITY}), (MAIN, {Kind.DIMENSION})],
}

SCOPE_DESCRIPTIONS = {
    "dimension": "a dimension expression (only dimensions are allowed)",
    "magnitude": "a unit or constant expression (only units, constants and quantities are allowed)",
    "quantity": "a quantity expression",
    "annotation": "a type annotation (only dimensions and quantities are allowed)",
}


@dataclass
class Slot:
    """One definition plus its resolution state and, once resolved, its value."""

    entry: ast.Entry
    state: State = State.UNRESOLVED
    dimension: DimensionVector | None = None
    magnitude: float | None = None

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def kind(self) -> Kind:
        return Kind(self.entry.kind)

    @property
    def namespace(self) -> str:
        return QUANTITIES if self.kind is Kind.QUANTITY else MAIN

    @property
    def scope(self) -> str:
        """Lookup scope for names in this entry's defining expression."""
        if self.kind is Kind.DIMENSION:
            return "dimension"
        if self.kind is Kind.QUANTITY:
            return "quantity"
        return "magnitude"

    @property
    def autogenerated_from(self) -> str | None:
        return getattr(self.entry, "autogenerated_from", None)

    @property
    def is_autogenerated(self) -> bool:
        return self.autogenerated_from is not None

    @property
    def has_magnitude(self) -> bool:
        return self.kind in (Kind.UNIT, Kind.CONSTANT)

    @property
    def annotation(self) -> str | None:
        return getattr(self.entry, "annotation", None)

    @property
    def base(self) -> str | None:
        """Target dimension when this slot is a unit tagged as base unit."""
        return getattr(self.entry, "base", None)

    @property
    def axes(self) -> list[str]:
        dimensions = getattr(self.entry, "dimensions", None)
        return list(dimensions or {})

    def dependencies(self) -> list[tuple[str, str]]:
        """(name, scope) pairs that must resolve before this slot can."""
        if self.base is not None:
            return [(self.base, "dimension")]
        if self.entry.definition is not None:
            return [(name, self.scope) for name in ast.expression_names(self.entry.definition)]
        return [(axis, "dimension") for axis in self.axes]

    def resolve(self, dimension: DimensionVector, magnitude: float | None) -> None:
        self.state = State.RESOLVED
        self.dimension = dimension
        self.magnitude = magnitude if self.has_magnitude else None

    def invalidate(self) -> None:
        self.state = State.INVALID
        self.dimension = None
        self.magnitude = None

    def describe(self) -> str:
        return f"{self.kind.value} '{self.name}'"


class SymbolTable:
    """Central resolver state, keyed by (namespace, name)."""

    def __init__(self, diagnostics: Diagnostics):
        self.diagnostics = diagnostics
        self.slots: list[Slot] = []
        self._index: dict[tuple[str, str], Slot] = {}
        self._all_names: set[str] = set()

    def add(self, entries: Iterable[ast.Entry]) -> list[Slot]:
        added = [Slot(entry) for entry in entries]
        self.slots.extend(added)
        self._all_names.update(slot.name for slot in added)
        self._reindex()
        return added

    def active(self) -> list[Slot]:
        return [slot for slot in self.slots if slot.state is not State.INVALID]

    def resolved(self, kind: Kind | None = None) -> list[Slot]:
        return [
            slot
            for slot in self.slots
            if slot.state is State.RESOLVED and (kind is None or slot.kind is kind)
        ]

    def _reindex(self) -> None:
        self._index = {}
        for slot in self.active():
            self._index.setdefault((slot.namespace, slot.name), slot)

    def lookup(self, name: str, scope: str, *, exclude: Slot | None = None) -> Slot | None:
        """Find the valid slot ``name`` refers to from ``scope``."""
        for namespace, kinds in SCOPES[scope]:
            slot = self._index.get((namespace, name))
            if slot is not None and slot is not exclude and slot.kind in kinds:
                return slot
        return None

    def find_any(self, name: str) -> Slot | None:
        return self._index.get((MAIN, name)) or self._index.get((QUANTITIES, name))

    def is_defined(self, name: str) -> bool:
        return name in self._all_names

    def _report(self, kind: DiagnosticKind, slot: Slot, message: str, names: list[str]) -> None:
        self.diagnostics.emit(kind, message, names=names, line=slot.entry.line, col=slot.entry.col)

    # ------------------------------------------------------------------
    # Passes

    def purge(self) -> None:
        """Drop invalid slots and everything autogenerated from them."""
        invalid_parents = {
            slot.name
            for slot in self.slots
            if slot.state is State.INVALID and not slot.is_autogenerated
        }
        for slot in self.active():
            if slot.is_autogenerated and slot.autogenerated_from in invalid_parents:
                slot.invalidate()
        self._reindex()

    def filter_undefined(self) -> None:
        """Invalidate entries that reference names defined nowhere."""
        for slot in self.active():
            names = [name for name, _ in slot.dependencies()]
            if slot.annotation is not None:
                names.append(slot.annotation)
            undefined = [name for name in dict.fromkeys(names) if not self.is_defined(name)]
            if not undefined:
                continue
            slot.invalidate()
            if not slot.is_autogenerated:
                self._report(
                    DiagnosticKind.UNDEFINED_REFERENCE,
                    slot,
                    f"{slot.describe()} references undefined name(s): {', '.join(undefined)}",
                    [slot.name, *undefined],
                )

    def filter_multiply_defined(self) -> None:
        """Invalidate every definition of a name that is defined more than once."""
        groups: dict[str, list[Slot]] = {}
        for slot in self.active():
            groups.setdefault(slot.name, []).append(slot)

        for name, group in groups.items():
            main = [s for s in group if s.namespace == MAIN]
            quantities = [s for s in group if s.namespace == QUANTITIES]
            # quantities may only share a name with a dimension
            if quantities and any(s.kind is not Kind.DIMENSION for s in main):
                clashing = group
            else:
                clashing = (main if len(main) > 1 else []) + (
                    quantities if len(quantities) > 1 else []
                )
            if not clashing:
                continue
            for slot in clashing:
                slot.invalidate()
            kinds = ", ".join(
                f"{s.kind.value} autogenerated from '{s.autogenerated_from}'"
                if s.is_autogenerated
                else s.kind.value
                for s in clashing
            )
            first = next((s for s in clashing if not s.is_autogenerated), clashing[0])
            self._report(
                DiagnosticKind.DUPLICATE_DEFINITION,
                first,
                f"'{name}' is defined {len(clashing)} times ({kinds})",
                [name],
            )

    def check_kinds(self) -> None:
        """Invalidate entries that use a name in a position its kind does not allow."""
        for slot in self.active():
            problems: list[str] = []
            offenders: list[str] = []

            for name, scope in slot.dependencies():
                if self.lookup(name, scope, exclude=slot) is not None:
                    continue
                other = self.find_any(name)
                if other is None or other is slot:
                    continue  # invalid already, reported where it failed
                problems.append(f"{other.describe()} cannot be used in {SCOPE_DESCRIPTIONS[scope]}")
                offenders.append(name)

            for axis in slot.axes:
                target = self.lookup(axis, "dimension")
                if target is not None and target.entry.definition is not None:
                    problems.append(f"'{axis}' is not a base dimension")
                    offenders.append(axis)

            if slot.kind is Kind.DIMENSION and slot.entry.definition is not None:
                for number in _numbers(slot.entry.definition):
                    if number != 1.0:
                        problems.append(f"numeric factor {number:g} in a dimension expression")

            if slot.annotation is not None and self.lookup(slot.annotation, "annotation") is None:
                other = self.find_any(slot.annotation)
                if other is not None:
                    problems.append(
                        f"{other.describe()} cannot be used in {SCOPE_DESCRIPTIONS['annotation']}"
                    )
                    offenders.append(slot.annotation)

            if not problems:
                continue
            slot.invalidate()
            if not slot.is_autogenerated:
                self._report(
                    DiagnosticKind.KIND_MISMATCH,
                    slot,
                    f"in {slot.describe()}: " + "; ".join(problems),
                    [slot.name, *offenders],
                )

    def check_type_annotations(self) -> None:
        """Report resolved entries whose dimension disagrees with their annotation."""
        for slot in self.resolved():
            if slot.annotation is None:
                continue
            target = self.lookup(slot.annotation, "annotation")
            if target is None or target.state is not State.RESOLVED:
                continue
            if target.dimension != slot.dimension:
                self._report(
                    DiagnosticKind.TYPE_ANNOTATION_MISMATCH,
                    slot,
                    f"{slot.describe()} is annotated as '{slot.annotation}' "
                    f"{target.dimension} but has dimension {slot.dimension}",
                    [slot.name, slot.annotation],
                )


def _numbers(expr: ast.Expr) -> list[float]:
    match expr:
        case ast.Number(value=value):
            return [value]
        case ast.BinOp(left=left, right=right):
            return _numbers(left) + _numbers(right)
        case ast.Power(base=base):
            return _numbers(base)
    return []
