"""Diagnostics: structured errors and warnings collected by every pass.

Passes never raise for problems in the user's definitions. They emit a
Diagnostic into a shared Diagnostics sink and carry on with whatever can
still be resolved. The sink is flushed once at the end.
"""

import logging
from collections.abc import Iterable, Iterator
from enum import Enum

from pydantic import BaseModel


class DiagnosticKind(str, Enum):
    SYNTAX = "syntax_error"
    TYPE_DEFINITION = "type_definition_error"
    UNDEFINED_REFERENCE = "undefined_reference"
    DUPLICATE_DEFINITION = "duplicate_definition"
    KIND_MISMATCH = "kind_mismatch"
    UNRESOLVABLE_CYCLE = "unresolvable_cycle"
    UNRESOLVED_DEPENDENCY = "unresolved_dependency"
    DIMENSIONALITY = "dimensionality_error"
    INVALID_MAGNITUDE = "invalid_magnitude"
    MISSING_BASE_UNIT = "missing_base_unit"
    MULTIPLE_BASE_UNITS = "multiple_base_units"
    BASE_UNIT_FOR_NON_BASE_DIMENSION = "base_unit_for_non_base_dimension"
    MISSING_SYMBOL_FOR_BASE_UNIT = "missing_symbol_for_base_unit"
    TYPE_ANNOTATION_MISMATCH = "type_annotation_mismatch"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Diagnostic(BaseModel):
    """A single problem found in a definition block."""

    kind: DiagnosticKind
    message: str
    severity: Severity = Severity.ERROR
    names: list[str] = []  # offending definition names, for localizing the fix
    line: int | None = None
    col: int | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        where = f"line {self.line}, col {self.col}: " if self.line is not None else ""
        return f"{where}{self.severity.value}[{self.kind.value}]: {self.message}"


class DimsysError(Exception):
    """Base class for exceptions raised by dimsys."""


class ParseError(DimsysError):
    def __init__(self, msg: str, line: int, col: int):
        super().__init__(f"line {line}, col {col}: {msg}")
        self.msg = msg
        self.line = line
        self.col = col

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            kind=DiagnosticKind.SYNTAX, message=self.msg, line=self.line, col=self.col
        )


class DimensionalityError(DimsysError):
    """Raised by the dimension algebra for non-integer or indivisible exponents."""


class CompileError(DimsysError):
    """Raised when a caller asks for a definition block without errors."""

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = diagnostics
        errors = [d for d in diagnostics if d.is_error]
        lines = "\n".join(f"  {d}" for d in errors)
        super().__init__(f"{len(errors)} error(s) in unit system definition:\n{lines}")


class Diagnostics:
    """Accumulate-and-flush buffer shared by the parser and every resolver pass.

    Diagnostics keep the order in which they were emitted so that build logs
    are reproducible.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []
        self._flushed = 0

    def emit(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        names: Iterable[str] = (),
        line: int | None = None,
        col: int | None = None,
        severity: Severity = Severity.ERROR,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            kind=kind,
            message=message,
            severity=severity,
            names=list(names),
            line=line,
            col=col,
        )
        self._items.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._items.extend(diagnostics)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.is_error]

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self._items)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def flush(self, logger: logging.Logger | None = None) -> list[Diagnostic]:
        """Log every diagnostic not logged yet and return the full list."""
        if logger is not None:
            for diagnostic in self._items[self._flushed :]:
                level = logging.ERROR if diagnostic.is_error else logging.WARNING
                logger.log(level, "%s", diagnostic)
        self._flushed = len(self._items)
        return list(self._items)
