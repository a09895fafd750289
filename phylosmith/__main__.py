#!/usr/bin/env python3
"""
Command-line interface for phylosmith.

  analyze   alignment -> distances -> NJ / UPGMA trees -> comparison
  compare   Robinson-Foulds matrix between the trees of Newick files
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, cast

from phylosmith.config import AnalysisConfig, SUPPORTED_METHODS
from phylosmith.distances.pairwise import ExcludePolicy
from phylosmith.distances.substitution_models import DEFAULT_MAX_DISTANCE, MODELS
from phylosmith.distances.tree_distances import pairwise_rf_matrix
from phylosmith.exceptions import PhylosmithError
from phylosmith.io import read_newick, write_distance_matrix
from phylosmith.logging_config import configure_logging
from phylosmith.pipeline.analysis import run_analysis
from phylosmith.tree import Node
from phylosmith.validators import NonNegativeIntegerAction, PositiveIntegerAction

logger = logging.getLogger("phylosmith.cli")


def setup_argument_parser() -> argparse.ArgumentParser:
    """
    Configure and return the argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="phylosmith",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", help="Console log level (default: INFO)", default=None)
    parser.add_argument("--log-dir", help="Also write a rotating log file here", type=Path)
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ------------------------------------------------------------------
    analyze = subparsers.add_parser(
        "analyze", help="Infer and compare distance trees from an alignment"
    )
    analyze.add_argument(
        "-i", "--input", help="Path to the alignment file", required=True, type=Path
    )
    analyze.add_argument(
        "-o", "--output-directory", help="Output directory", required=True, type=Path
    )
    analyze.add_argument(
        "--format",
        dest="alignment_format",
        help="Alignment format (default: auto-detect)",
    )

    distance_group = analyze.add_argument_group("distance options")
    distance_group.add_argument(
        "-m",
        "--model",
        help="Substitution model (default: F81)",
        default="F81",
        choices=sorted(MODELS),
        type=str.upper,
    )
    distance_group.add_argument(
        "--exclude",
        help="Gap exclusion policy (default: pairwise)",
        default=ExcludePolicy.PAIRWISE.value,
        choices=[p.value for p in ExcludePolicy],
    )
    distance_group.add_argument(
        "--max-distance",
        help=f"Cap for saturated distances (default: {DEFAULT_MAX_DISTANCE})",
        default=DEFAULT_MAX_DISTANCE,
        type=float,
    )

    tree_group = analyze.add_argument_group("tree options")
    tree_group.add_argument(
        "--method",
        dest="methods",
        help="Tree building method, repeatable (default: nj and upgma)",
        action="append",
        choices=SUPPORTED_METHODS,
    )
    tree_group.add_argument(
        "-b",
        "--bootstrap",
        help="Number of bootstrap replicates, 0 to skip (default: 0)",
        default=0,
        type=int,
        action=NonNegativeIntegerAction,
    )
    tree_group.add_argument("--seed", help="Random seed for bootstrapping", type=int)
    tree_group.add_argument(
        "--midpoint", help="Midpoint-root the trees", action="store_true"
    )
    tree_group.add_argument(
        "--support-fraction",
        help="Report support as fraction (0-1) instead of percent",
        action="store_true",
    )
    tree_group.add_argument(
        "--support-as-label",
        help="Write support values as internal node labels",
        action="store_true",
    )

    runtime_group = analyze.add_argument_group("runtime options")
    runtime_group.add_argument(
        "-j",
        "--workers",
        help="Worker processes (default: 1)",
        default=1,
        type=int,
        action=PositiveIntegerAction,
    )
    runtime_group.add_argument(
        "--no-progress", help="Hide progress bars", action="store_true"
    )

    # ------------------------------------------------------------------
    compare = subparsers.add_parser(
        "compare", help="Robinson-Foulds matrix between trees in Newick files"
    )
    compare.add_argument("trees", help="Newick files", nargs="+", type=Path)
    compare.add_argument("-o", "--output", help="CSV file for the matrix", type=Path)
    compare.add_argument(
        "--prune",
        help="Compare each pair over its common taxa",
        action="store_true",
    )
    compare.add_argument(
        "-j",
        "--workers",
        help="Worker processes (default: 1)",
        default=1,
        type=int,
        action=PositiveIntegerAction,
    )

    return parser


def _run_analyze(args: argparse.Namespace) -> None:
    config = AnalysisConfig(
        model=args.model,
        exclude=ExcludePolicy(args.exclude),
        methods=tuple(args.methods) if args.methods else SUPPORTED_METHODS,
        bootstrap_replicates=args.bootstrap,
        seed=args.seed,
        midpoint_root=args.midpoint,
        support_as_percentage=not args.support_fraction,
        support_as_label=args.support_as_label,
        workers=args.workers,
        max_distance=args.max_distance,
        alignment_format=args.alignment_format,
        show_progress=not args.no_progress,
    )
    result = run_analysis(args.input, args.output_directory, config)
    for method in result.methods:
        print(f"{method}\t{result.newick(method)}")


def _run_compare(args: argparse.Namespace) -> None:
    trees: List[Node] = []
    names: List[str] = []
    for path in args.trees:
        parsed = cast(List[Node], read_newick(path, force_list=True))
        for index, tree in enumerate(parsed, start=1):
            trees.append(tree)
            names.append(path.stem if len(parsed) == 1 else f"{path.stem}_{index}")

    matrix = pairwise_rf_matrix(trees, names=names, workers=args.workers, prune=args.prune)
    if args.output:
        write_distance_matrix(matrix, args.output)
        logger.info("Robinson-Foulds matrix written to %s", args.output)
    else:
        print(matrix.to_dataframe().to_string())


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.log_dir)

    try:
        if args.command == "analyze":
            _run_analyze(args)
        else:
            _run_compare(args)
    except (PhylosmithError, FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
