"""
Bootstrap replicates and split support.

Support values are attached to the node below each internal edge, under
``node.values["support"]``, so they are written as ``[support=...]`` Newick
comments.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
from tqdm import tqdm

from phylosmith.alignment import Alignment
from phylosmith.construction import TREE_BUILDERS
from phylosmith.distances.pairwise import ExcludePolicy, compute_distances
from phylosmith.distances.substitution_models import DEFAULT_MAX_DISTANCE
from phylosmith.elements.partition import Partition
from phylosmith.elements.partition_set import PartitionSet
from phylosmith.exceptions import LeafSetMismatchError
from phylosmith.tree import Node

logger = logging.getLogger(__name__)

SplitKey = Union[Partition, FrozenSet[str]]


def incorporate_split_counts(
    split_list: PartitionSet[Partition],
    number_of_splits: Dict[Partition, Dict[str, float]],
) -> None:
    """
    Increment the count for each split in the given split list.

    The dictionary is updated in place; unseen splits start with a count of 0.
    """
    for sp in split_list:
        number_of_splits.setdefault(sp, {"count": 0})["count"] += 1


def collect_count_of_splits(
    trees: Sequence[Node], encoding: Optional[Dict[str, int]] = None
) -> Dict[Partition, Dict[str, float]]:
    """
    Count the non-trivial bipartitions of a collection of trees.

    Returns:
        Mapping of each bipartition to {"count": n, "occurrence": n / len(trees)}.

    Raises:
        LeafSetMismatchError: If the trees do not share one leaf set.
    """
    if not trees:
        return {}
    reference = trees[0].leaf_set()
    for tree in trees[1:]:
        taxa = tree.leaf_set()
        if taxa != reference:
            LeafSetMismatchError.raise_mismatch(reference - taxa, taxa - reference)
    if encoding is None:
        encoding = {name: idx for idx, name in enumerate(sorted(reference))}

    count_of_splits: Dict[Partition, Dict[str, float]] = {}
    for tree in trees:
        incorporate_split_counts(tree.to_bipartitions(encoding), count_of_splits)
    for split in count_of_splits:
        count_of_splits[split]["occurrence"] = count_of_splits[split]["count"] / len(trees)
    return count_of_splits


def split_frequencies(
    trees: Sequence[Node], encoding: Optional[Dict[str, int]] = None
) -> Dict[Partition, float]:
    """Fraction of the trees containing each non-trivial bipartition."""
    return {
        split: stats["occurrence"]
        for split, stats in collect_count_of_splits(trees, encoding).items()
    }


def _normalise_frequencies(
    frequencies: Mapping[SplitKey, float], encoding: Dict[str, int]
) -> Dict[int, float]:
    """Key frequencies by canonical bipartition bitmask under ``encoding``."""
    normalised: Dict[int, float] = {}
    for key, value in frequencies.items():
        if isinstance(key, Partition):
            if key.encoding:
                # translate through names; the key may use another encoding
                partition = Partition.from_taxa(key.taxa, encoding)
            else:
                partition = Partition.from_bitmask(key.bitmask, encoding)
        else:
            partition = Partition.from_taxa(key, encoding)
        normalised[partition.canonical().bitmask] = float(value)
    return normalised


def add_support_values(
    tree: Node,
    replicates: Optional[Sequence[Node]] = None,
    frequencies: Optional[Mapping[SplitKey, float]] = None,
    as_percentage: bool = True,
) -> Node:
    """
    Attach a support value to every internal edge of ``tree``, in place.

    The support of an edge is the fraction of replicate trees containing its
    bipartition. Pass either the replicate trees or precomputed frequencies
    (fractions in [0, 1], keyed by Partition or by a set of taxon names on
    one side of the split).

    Args:
        tree: Tree to annotate.
        replicates: Bootstrap replicate trees over the same taxa.
        frequencies: Precomputed split frequencies.
        as_percentage: Store support as 0-100 instead of 0-1.

    Returns:
        The annotated tree.

    Raises:
        ValueError: Unless exactly one of replicates and frequencies is given.
        LeafSetMismatchError: If a replicate has a different leaf set.
    """
    if (replicates is None) == (frequencies is None):
        raise ValueError("Give either replicate trees or split frequencies")

    taxa = tree.leaf_set()
    encoding = {name: idx for idx, name in enumerate(sorted(taxa))}
    if replicates is not None:
        for replicate in replicates:
            replicate_taxa = replicate.leaf_set()
            if replicate_taxa != taxa:
                LeafSetMismatchError.raise_mismatch(taxa - replicate_taxa, replicate_taxa - taxa)
        counts = split_frequencies(replicates, encoding)
        support_by_mask = {split.bitmask: freq for split, freq in counts.items()}
    else:
        support_by_mask = _normalise_frequencies(frequencies or {}, encoding)

    scale = 100.0 if as_percentage else 1.0
    annotated = 0
    for node, split in tree.iter_edge_bipartitions(encoding):
        if not node.children:
            continue
        # trivial splits are present in every tree
        fraction = 1.0 if split.is_trivial() else support_by_mask.get(split.bitmask, 0.0)
        node.support = fraction * scale
        annotated += 1

    logger.debug("Annotated %d internal edges with support values", annotated)
    return tree


# ----------------------------------------------------------------------
# Bootstrap replicates
# ----------------------------------------------------------------------


def _bootstrap_replicate(
    alignment: Alignment,
    seed: np.random.SeedSequence,
    method: str,
    model: str,
    exclude: str,
    max_distance: float,
) -> Node:
    rng = np.random.default_rng(seed)
    replicate = alignment.bootstrap(rng)
    dm = compute_distances(replicate, model=model, exclude=exclude, max_distance=max_distance)
    return TREE_BUILDERS[method](dm)


def bootstrap_trees(
    alignment: Alignment,
    replicates: int = 100,
    method: str = "nj",
    model: str = "F81",
    exclude: Union[str, ExcludePolicy] = ExcludePolicy.PAIRWISE,
    seed: Optional[int] = None,
    workers: int = 1,
    max_distance: float = DEFAULT_MAX_DISTANCE,
    show_progress: bool = True,
) -> List[Node]:
    """
    Build one tree per column-bootstrap replicate of the alignment.

    Each replicate draws from its own child of ``SeedSequence(seed)``, so the
    trees depend on the seed only, not on the number of workers.

    Args:
        alignment: Alignment to resample.
        replicates: Number of replicate trees.
        method: Tree builder, "nj" or "upgma".
        model: Substitution model name.
        exclude: Gap exclusion policy.
        seed: Seed for reproducible replicates.
        workers: Number of worker processes; 1 builds in-process.
        max_distance: Upper bound for saturated pairs.
        show_progress: Report progress with tqdm.

    Raises:
        ValueError: If the method is unknown or replicates is not positive.
    """
    if method not in TREE_BUILDERS:
        raise ValueError(f"Unknown tree building method '{method}'. Choose from {sorted(TREE_BUILDERS)}")
    if replicates < 1:
        raise ValueError("Number of bootstrap replicates must be positive")

    exclude_value = ExcludePolicy(exclude).value
    seeds = np.random.SeedSequence(seed).spawn(replicates)
    logger.info("Building %d bootstrap replicates (%s, %s)", replicates, method, model)

    trees: List[Node] = []
    if workers > 1:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(
                    _bootstrap_replicate, alignment, s, method, model, exclude_value, max_distance
                )
                for s in seeds
            ]
            # results kept in submission order
            for future in tqdm(futures, desc="Bootstrap replicates", disable=not show_progress):
                trees.append(future.result())
    else:
        for s in tqdm(seeds, desc="Bootstrap replicates", disable=not show_progress):
            trees.append(
                _bootstrap_replicate(alignment, s, method, model, exclude_value, max_distance)
            )
    return trees


def bootstrap_support(
    tree: Node,
    replicate_trees: Iterable[Node],
    as_percentage: bool = True,
) -> Node:
    """Annotate a copy of ``tree`` with support from the replicate trees."""
    annotated = tree.deep_copy()
    return add_support_values(annotated, replicates=list(replicate_trees), as_percentage=as_percentage)
