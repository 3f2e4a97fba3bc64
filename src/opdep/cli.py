"""opdep CLI — report the npm dependencies a workspace project really uses.

Usage::

    python -m opdep PROJECT [options]

Options::

    --workspace DIR          Workspace root (default: current directory)
    --output PATH            Report path relative to the project root
    --target-lib DIR         Extra library root to seed as entry points (repeatable)
    --internal-pattern RE    Regex marking specifiers as internal (repeatable)
    --alias-pattern PATTERN  Extra alias, "@app/*" or "@app/*=apps/app/src/*" (repeatable)
    --optimize-manifest      Also write package.optimized.json
    --replace-manifest       Rewrite the project's package.json in place
    --max-depth N            Maximum import-chain depth (default 50)
    --json                   Print the JSON report instead of the text summary
    --verbose / -v           Enable verbose logging
"""

import argparse
import logging
import re
import sys
from pathlib import Path

from opdep.analyzer import DEFAULT_OUTPUT, AnalyzeConfig, run_analysis
from opdep.manifest import ManifestError
from opdep.registry import RegistryError
from opdep.tree import DiskTree, TreeError
from opdep.walker import MAX_DEPTH


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="opdep",
        description=(
            "opdep — find the external packages a workspace project actually "
            "reaches.\n\n"
            "Follows relative imports, tsconfig path aliases and sibling "
            "workspace libraries, then reduces the project's package.json to "
            "the dependencies in use."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "project",
        help="Name of the project to analyse (as registered in the workspace)",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        default=Path("."),
        help="Workspace root directory (default: current directory)",
    )
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT,
        help=f"Report path relative to the project root (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "--target-lib",
        action="append",
        default=[],
        metavar="DIR",
        help="Workspace-relative library root to seed as extra entry points",
    )
    parser.add_argument(
        "--internal-pattern",
        action="append",
        default=[],
        metavar="REGEX",
        help="Regex marking matching specifiers as internal",
    )
    parser.add_argument(
        "--alias-pattern",
        action="append",
        default=[],
        metavar="PATTERN",
        help='Extra path alias: "@app/*" or "@app/*=apps/app/src/*"',
    )
    parser.add_argument(
        "--optimize-manifest",
        action="store_true",
        default=False,
        help="Also write package.optimized.json next to the report",
    )
    parser.add_argument(
        "--replace-manifest",
        action="store_true",
        default=False,
        help="Rewrite the project's package.json with only the used dependencies",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=MAX_DEPTH,
        help=f"Maximum import-chain depth (default: {MAX_DEPTH})",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the JSON report instead of the text summary",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=False,
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns exit code (0=success, 1=failure)."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        tree = DiskTree(args.workspace)
    except TreeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    config = AnalyzeConfig(
        project_name=args.project,
        output_path=args.output,
        target_libs=args.target_lib,
        internal_module_patterns=args.internal_pattern,
        alias_patterns=args.alias_pattern,
        optimize_manifest=args.optimize_manifest,
        replace_manifest=args.replace_manifest,
        max_depth=args.max_depth,
    )

    try:
        result = run_analysis(tree, config)
    except (RegistryError, ManifestError, TreeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except re.error as exc:
        print(f"Error: invalid internal pattern: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(result.report.as_json(), end="")
    else:
        print(result.report.as_text())
        print(f"\nReport written: {result.report_path}")
        for path in result.manifest_paths:
            print(f"Manifest written: {path}")
        if result.warnings:
            print("\nWarnings:")
            for w in result.warnings:
                print(f"  - {w}")

    return 0
