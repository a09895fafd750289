"""
End-to-end analysis of one alignment.

1. Read the alignment and compute the pairwise distance matrix.
2. Build a tree per method (NJ and/or UPGMA).
3. Optionally midpoint-root the trees and annotate bootstrap support.
4. Compare the trees (Robinson-Foulds matrix and split report).
5. Write distances.csv, <method>.newick, rf_matrix.csv and summary.json.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Union

from phylosmith.alignment import Alignment
from phylosmith.config import AnalysisConfig
from phylosmith.consensus.support import add_support_values, bootstrap_trees
from phylosmith.construction import TREE_BUILDERS
from phylosmith.distances.pairwise import compute_distances
from phylosmith.distances.tree_distances import compare_splits, pairwise_rf_matrix
from phylosmith.io import read_alignment, write_distance_matrix, write_json, write_newick
from phylosmith.pipeline.result import AnalysisResult
from phylosmith.rooting.core_rooting import midpoint_root
from phylosmith.tree import Node

DISTANCES_FILE = "distances.csv"
RF_MATRIX_FILE = "rf_matrix.csv"
SUMMARY_FILE = "summary.json"


def run_analysis(
    input_data: Union[str, Path, Alignment],
    output_directory: Union[str, Path, None] = None,
    config: Optional[AnalysisConfig] = None,
) -> AnalysisResult:
    """
    Run the analysis pipeline on an alignment file or an Alignment.

    Args:
        input_data: Path to an alignment file, or an Alignment.
        output_directory: Where to write the result files; nothing is written
            when None.
        config: Analysis settings; defaults to AnalysisConfig().

    Returns:
        AnalysisResult with the distance matrix, trees and comparisons.

    Raises:
        PhylosmithError: Any domain error of the individual steps.
    """
    config = config or AnalysisConfig()
    logger = logging.getLogger(config.logger_name)

    if isinstance(input_data, Alignment):
        alignment = input_data
    else:
        logger.info("Loading alignment from %s", input_data)
        alignment = read_alignment(input_data, config.alignment_format)
    logger.info(
        "Alignment: %d taxa, %d columns (%s)",
        len(alignment),
        alignment.width,
        alignment.sequence_type.name.lower(),
    )

    logger.info(
        "Computing %s distances (%s gap exclusion)", config.model, config.exclude.value
    )
    dm = compute_distances(
        alignment,
        model=config.model,
        exclude=config.exclude,
        max_distance=config.max_distance,
    )

    trees: Dict[str, Node] = {}
    for method in config.methods:
        logger.info("Building %s tree", method.upper())
        tree = TREE_BUILDERS[method](dm)
        if config.midpoint_root:
            tree = midpoint_root(tree)
        if config.bootstrap_replicates:
            replicates = bootstrap_trees(
                alignment,
                replicates=config.bootstrap_replicates,
                method=method,
                model=config.model,
                exclude=config.exclude,
                seed=config.seed,
                workers=config.workers,
                max_distance=config.max_distance,
                show_progress=config.show_progress,
            )
            add_support_values(
                tree, replicates=replicates, as_percentage=config.support_as_percentage
            )
        trees[method] = tree

    rf_matrix = pairwise_rf_matrix(list(trees.values()), names=list(trees), workers=config.workers)
    split_comparison = None
    if len(trees) >= 2:
        first, second = list(trees.values())[:2]
        split_comparison = compare_splits(first, second)
        logger.info(
            "%s vs %s: %d shared splits, RF distance %d",
            *list(trees)[:2],
            len(split_comparison.shared),
            split_comparison.robinson_foulds,
        )

    result = AnalysisResult(
        taxa=list(alignment.taxa),
        distance_matrix=dm,
        trees=trees,
        rf_matrix=rf_matrix,
        split_comparison=split_comparison,
        alignment_width=alignment.width,
        bootstrap_replicates=config.bootstrap_replicates,
    )

    if output_directory is not None:
        _write_outputs(result, Path(output_directory), config)
        logger.info("Results written to %s", output_directory)

    return result


def _write_outputs(result: AnalysisResult, output_dir: Path, config: AnalysisConfig) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)

    distances_path = output_dir / DISTANCES_FILE
    write_distance_matrix(result.distance_matrix, distances_path)
    result.output_files["distances"] = distances_path

    for method, tree in result.trees.items():
        tree_path = output_dir / f"{method}.newick"
        write_newick(tree, tree_path, support_as_label=config.support_as_label)
        result.output_files[method] = tree_path

    if result.rf_matrix is not None:
        rf_path = output_dir / RF_MATRIX_FILE
        write_distance_matrix(result.rf_matrix, rf_path)
        result.output_files["rf_matrix"] = rf_path

    summary_path = output_dir / SUMMARY_FILE
    result.output_files["summary"] = summary_path
    summary = result.to_dict()
    summary["config"] = config.to_dict()
    write_json(summary, summary_path)
