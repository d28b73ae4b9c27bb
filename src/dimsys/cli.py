"""Resolve a unit system definition file and print the result.

Usage:
    dimsys units.dims
    dimsys units.dims --format json
    dimsys units.dims --config dimsys.yaml --rational-dimensions -v
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from .config import ResolverOptions, load_options
from .diagnostics import DimsysError
from .parser import parse_file
from .resolver import ResolvedDefs, resolve


def format_text(defs: ResolvedDefs) -> str:
    order = defs.base_dimensions
    lines = [
        f"quantity type:  {defs.quantity_type}",
        f"dimension type: {defs.dimension_type}",
        f"base dimensions: {', '.join(order) or '(none)'}",
    ]
    if defs.dimensions:
        lines += ["", "Dimensions:"]
        for d in defs.dimensions:
            tag = " (base)" if d.is_base else ""
            lines.append(f"  {d.name:20s} {d.dimension.format(order)}{tag}")
    if defs.units:
        lines += ["", "Units:"]
        for u in defs.units:
            symbol = u.symbol or "-"
            lines.append(f"  {u.name:20s} {symbol:6s} {u.magnitude:<12g} {u.dimension.format(order)}")
    if defs.quantities:
        lines += ["", "Quantities:"]
        for q in defs.quantities:
            lines.append(f"  {q.name:20s} {q.dimension.format(order)}")
    if defs.constants:
        lines += ["", "Constants:"]
        for c in defs.constants:
            lines.append(f"  {c.name:20s} {c.magnitude:<12g} {c.dimension.format(order)}")
    if defs.diagnostics:
        lines += ["", "Diagnostics:"]
        lines += [f"  {d}" for d in defs.diagnostics]
    return "\n".join(lines)


def render(defs: ResolvedDefs, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(defs.to_dict(), indent=2, ensure_ascii=False)
    if fmt == "yaml":
        return yaml.safe_dump(defs.to_dict(), sort_keys=False, allow_unicode=True)
    return format_text(defs)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve a unit system definition file")
    parser.add_argument("file", type=Path, help="Definition file to resolve")
    parser.add_argument(
        "--format",
        choices=["text", "json", "yaml"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML resolver options")
    parser.add_argument(
        "--rational-dimensions",
        action="store_true",
        help="Allow non-integer exponents in derived dimensions",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        options = load_options(args.config) if args.config else ResolverOptions()
        if args.rational_dimensions:
            options = options.model_copy(update={"rational_dimensions": True})
        defs = resolve(parse_file(args.file), options)
    except (OSError, DimsysError, ValueError) as e:
        print(f"  FAIL  {args.file}: {e}", file=sys.stderr)
        return 1

    print(render(defs, args.format))

    if defs.has_errors:
        print(f"\n  FAIL  {args.file}: {len(defs.errors)} error(s)", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
