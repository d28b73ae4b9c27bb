"""Metric prefixes and expansion of prefixed / aliased units.

A unit carrying prefixes or aliases spawns autogenerated unit entries that
are defined in terms of the parent unit, so they resolve (or fail) together
with it.
"""

import logging

from pydantic import BaseModel

from . import ast
from .diagnostics import DiagnosticKind, Diagnostics, Severity

logger = logging.getLogger(__name__)


class Prefix(BaseModel):
    name: str
    symbol: str
    factor: float


METRIC_PREFIXES: dict[str, Prefix] = {
    p.name: p
    for p in [
        Prefix(name="quetta", symbol="Q", factor=1e30),
        Prefix(name="ronna", symbol="R", factor=1e27),
        Prefix(name="yotta", symbol="Y", factor=1e24),
        Prefix(name="zetta", symbol="Z", factor=1e21),
        Prefix(name="exa", symbol="E", factor=1e18),
        Prefix(name="peta", symbol="P", factor=1e15),
        Prefix(name="tera", symbol="T", factor=1e12),
        Prefix(name="giga", symbol="G", factor=1e9),
        Prefix(name="mega", symbol="M", factor=1e6),
        Prefix(name="kilo", symbol="k", factor=1e3),
        Prefix(name="hecto", symbol="h", factor=1e2),
        Prefix(name="deca", symbol="da", factor=1e1),
        Prefix(name="deci", symbol="d", factor=1e-1),
        Prefix(name="centi", symbol="c", factor=1e-2),
        Prefix(name="milli", symbol="m", factor=1e-3),
        Prefix(name="micro", symbol="μ", factor=1e-6),
        Prefix(name="nano", symbol="n", factor=1e-9),
        Prefix(name="pico", symbol="p", factor=1e-12),
        Prefix(name="femto", symbol="f", factor=1e-15),
        Prefix(name="atto", symbol="a", factor=1e-18),
        Prefix(name="zepto", symbol="z", factor=1e-21),
        Prefix(name="yocto", symbol="y", factor=1e-24),
        Prefix(name="ronto", symbol="r", factor=1e-27),
        Prefix(name="quecto", symbol="q", factor=1e-30),
    ]
}


def _requested_prefixes(
    unit: ast.UnitEntry, table: dict[str, Prefix], diagnostics: Diagnostics
) -> list[Prefix]:
    requested = list(METRIC_PREFIXES.values()) if unit.metric_prefixes else []
    seen = {p.name for p in requested}
    for name in unit.prefixes:
        if name in seen:
            diagnostics.emit(
                DiagnosticKind.DUPLICATE_DEFINITION,
                f"prefix '{name}' requested more than once for unit '{unit.name}'",
                names=[unit.name],
                line=unit.line,
                col=unit.col,
                severity=Severity.WARNING,
            )
            continue
        prefix = table.get(name)
        if prefix is None:
            diagnostics.emit(
                DiagnosticKind.UNDEFINED_REFERENCE,
                f"unknown prefix '{name}' on unit '{unit.name}'",
                names=[unit.name],
                line=unit.line,
                col=unit.col,
            )
            continue
        seen.add(name)
        requested.append(prefix)
    return requested


def expand_unit(
    unit: ast.UnitEntry, table: dict[str, Prefix], diagnostics: Diagnostics
) -> list[ast.UnitEntry]:
    """Autogenerated entries for ``unit``'s prefixes and aliases."""
    generated: list[ast.UnitEntry] = []

    def add(name: str, symbol: str | None, definition: ast.Expr) -> None:
        generated.append(
            ast.UnitEntry(
                name=name,
                symbol=symbol,
                definition=definition,
                autogenerated_from=unit.name,
                line=unit.line,
                col=unit.col,
            )
        )

    parent = ast.Name(name=unit.name)
    for alias in unit.aliases:
        add(alias, None, parent)

    for prefix in _requested_prefixes(unit, table, diagnostics):
        scaled = ast.BinOp(op="*", left=ast.Number(value=prefix.factor), right=parent)
        symbol = prefix.symbol + unit.symbol if unit.symbol is not None else None
        add(prefix.name + unit.name, symbol, scaled)
        for alias in unit.aliases:
            add(prefix.name + alias, None, scaled)

    return generated


def expand_prefixes(
    units: list[ast.UnitEntry], table: dict[str, Prefix], diagnostics: Diagnostics
) -> list[ast.UnitEntry]:
    """Return ``units`` with autogenerated entries placed after their parent."""
    expanded: list[ast.UnitEntry] = []
    for unit in units:
        expanded.append(unit)
        if unit.autogenerated_from is None:
            expanded.extend(expand_unit(unit, table, diagnostics))
    logger.debug("prefix expansion: %d units -> %d", len(units), len(expanded))
    return expanded
