"""dimsys: parse and resolve dimensional unit system definitions.

Pipeline: parse definition blocks -> resolve dimensions and magnitudes ->
hand the resolved table to a code generator.

Example:
    from dimsys import compile

    defs = compile('''
        quantity_type Quantity;
        dimension_type Dimension;
        dimension Length;
        #[metric_prefixes]
        unit (meters, "m") = base(Length);
    ''')
    defs.unit("kilometers").magnitude  # 1000.0
"""

__version__ = "0.1.0"

from pathlib import Path

from .ast import (
    BinOp,
    ConstantEntry,
    Definitions,
    DimensionEntry,
    Expr,
    Name,
    Number,
    Power,
    QuantityEntry,
    UnitEntry,
)
from .config import ResolverOptions, load_options
from .diagnostics import (
    CompileError,
    Diagnostic,
    DiagnosticKind,
    DimensionalityError,
    DimsysError,
    ParseError,
    Severity,
)
from .dimensions import DIMENSIONLESS, DimensionVector
from .display import UNKNOWN_UNIT, DisplayUnitTable
from .parser import Lexer, Parser, parse, parse_file
from .prefixes import METRIC_PREFIXES, Prefix
from .resolver import (
    ResolvedConstant,
    ResolvedDefs,
    ResolvedDimension,
    ResolvedQuantity,
    ResolvedUnit,
    Resolver,
    resolve,
)


def compile(  # noqa: A001
    source: str | list[str], options: ResolverOptions | None = None, *, strict: bool = False
) -> ResolvedDefs:
    """Parse and resolve one or more definition blocks as a single unit system.

    With ``strict=True`` a CompileError is raised if any error was found.
    """
    sources = [source] if isinstance(source, str) else source
    defs = resolve([parse(s) for s in sources], options)
    return defs.raise_for_errors() if strict else defs


def compile_file(
    path: str | Path, options: ResolverOptions | None = None, *, strict: bool = False
) -> ResolvedDefs:
    """Parse and resolve a definition file."""
    defs = resolve(parse_file(path), options)
    return defs.raise_for_errors() if strict else defs


__all__ = [
    # Parse
    "parse",
    "parse_file",
    "ParseError",
    "Lexer",
    "Parser",
    # AST
    "Definitions",
    "DimensionEntry",
    "UnitEntry",
    "QuantityEntry",
    "ConstantEntry",
    "Expr",
    "Number",
    "Name",
    "BinOp",
    "Power",
    # Dimensions
    "DimensionVector",
    "DIMENSIONLESS",
    "DimensionalityError",
    "METRIC_PREFIXES",
    "Prefix",
    # Resolve
    "compile",
    "compile_file",
    "resolve",
    "Resolver",
    "ResolverOptions",
    "load_options",
    "ResolvedDefs",
    "ResolvedDimension",
    "ResolvedUnit",
    "ResolvedQuantity",
    "ResolvedConstant",
    # Diagnostics
    "Diagnostic",
    "DiagnosticKind",
    "Severity",
    "DimsysError",
    "CompileError",
    # Display
    "DisplayUnitTable",
    "UNKNOWN_UNIT",
]
