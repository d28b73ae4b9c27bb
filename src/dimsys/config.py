"""Resolver options and their YAML loader.

Example ``dimsys.yaml``:

    rational_dimensions: true
    extra_prefixes:
      kibi: {symbol: Ki, factor: 1024}
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from .prefixes import METRIC_PREFIXES, Prefix


class PrefixSpec(BaseModel):
    symbol: str
    factor: float


class ResolverOptions(BaseModel):
    """Switches that change how a definition block is resolved."""

    model_config = ConfigDict(extra="forbid")

    # Allow derived dimensions with non-integer exponents (e.g., Length^(1/2))
    rational_dimensions: bool = False
    extra_prefixes: dict[str, PrefixSpec] = {}

    @field_validator("extra_prefixes")
    @classmethod
    def _no_shadowed_prefixes(cls, value: dict[str, PrefixSpec]) -> dict[str, PrefixSpec]:
        clashes = sorted(set(value) & set(METRIC_PREFIXES))
        if clashes:
            raise ValueError(f"extra prefixes shadow metric prefixes: {', '.join(clashes)}")
        return value

    def prefix_table(self) -> dict[str, Prefix]:
        table = dict(METRIC_PREFIXES)
        for name, custom in self.extra_prefixes.items():
            table[name] = Prefix(name=name, symbol=custom.symbol, factor=custom.factor)
        return table


def load_options(path: str | Path) -> ResolverOptions:
    """Load resolver options from a YAML file. A missing or empty file gives defaults."""
    path = Path(path)
    if not path.exists():
        return ResolverOptions()
    with open(path) as f:
        data: Any = yaml.safe_load(f)
    return ResolverOptions.model_validate(data or {})
