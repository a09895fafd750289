from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.elements.partition import Partition
from phylosmith.elements.partition_set import PartitionSet
from phylosmith.exceptions import LeafSetMismatchError
from phylosmith.tree import Node


def _comparable(tree1: Node, tree2: Node, prune: bool) -> Tuple[Node, Node, Dict[str, int]]:
    """
    Return both trees over one leaf set together with their shared encoding.

    Raises:
        LeafSetMismatchError: If the leaf sets differ and ``prune`` is False, or
            the trees share no taxon at all.
    """
    taxa1, taxa2 = tree1.leaf_set(), tree2.leaf_set()
    if taxa1 != taxa2:
        common = taxa1 & taxa2
        if not prune or not common:
            LeafSetMismatchError.raise_mismatch(taxa1 - taxa2, taxa2 - taxa1)
        tree1 = tree1.prune_to_taxa(common)
        tree2 = tree2.prune_to_taxa(common)
        taxa1 = frozenset(common)
    encoding = {name: idx for idx, name in enumerate(sorted(taxa1))}
    return tree1, tree2, encoding


def _bipartition_pair(
    tree1: Node, tree2: Node, prune: bool
) -> Tuple[PartitionSet[Partition], PartitionSet[Partition]]:
    tree1, tree2, encoding = _comparable(tree1, tree2, prune)
    return tree1.to_bipartitions(encoding), tree2.to_bipartitions(encoding)


def robinson_foulds_distance(tree1: Node, tree2: Node, prune: bool = False) -> int:
    """
    Number of bipartitions found in exactly one of the two trees.

    Rooting is ignored. For two binary trees on N leaves the result is even
    and at most 2(N-3).

    Args:
        tree1: First tree.
        tree2: Second tree.
        prune: Restrict both trees to their common taxa instead of failing
            when the leaf sets differ.

    Raises:
        LeafSetMismatchError: If the leaf sets differ and ``prune`` is False.
    """
    splits1, splits2 = _bipartition_pair(tree1, tree2, prune)
    return len(splits1 ^ splits2)


def relative_robinson_foulds_distance(tree1: Node, tree2: Node, prune: bool = False) -> float:
    """RF distance divided by the number of internal edges of both trees (0 to 1)."""
    splits1, splits2 = _bipartition_pair(tree1, tree2, prune)
    total_splits: int = len(splits1) + len(splits2)
    if total_splits == 0:
        return 0.0
    return len(splits1 ^ splits2) / total_splits


def weighted_robinson_foulds_distance(tree1: Node, tree2: Node, prune: bool = False) -> float:
    """
    Calculate the weighted Robinson-Foulds distance between two trees.

    Sums, over every bipartition (pendant edges included), the absolute
    difference of its branch length in the two trees; a missing bipartition
    counts as length 0.

    Args:
        tree1 (Node): The first tree
        tree2 (Node): The second tree

    Returns:
        float: The weighted Robinson-Foulds distance between the two trees.
    """
    tree1, tree2, encoding = _comparable(tree1, tree2, prune)
    splits1: Dict[Partition, float] = tree1.to_weighted_bipartitions(encoding)
    splits2: Dict[Partition, float] = tree2.to_weighted_bipartitions(encoding)

    all_splits = set(splits1) | set(splits2)

    weighted_distance: float = sum(
        abs(splits1.get(split, 0.0) - splits2.get(split, 0.0)) for split in all_splits
    )

    return weighted_distance


def _masks_distance(
    i: int, j: int, masks_i: FrozenSet[int], masks_j: FrozenSet[int]
) -> Tuple[int, int, int]:
    return i, j, len(masks_i ^ masks_j)


def _pruned_distance(i: int, j: int, tree_i: Node, tree_j: Node) -> Tuple[int, int, int]:
    return i, j, robinson_foulds_distance(tree_i, tree_j, prune=True)


def pairwise_rf_matrix(
    trees: Sequence[Node],
    names: Optional[Sequence[str]] = None,
    workers: int = 1,
    prune: bool = False,
    show_progress: bool = False,
) -> DistanceMatrix:
    """
    Robinson-Foulds distance between every pair of trees.

    Args:
        trees: Trees to compare.
        names: One label per tree; defaults to "tree_1", "tree_2", ...
        workers: Number of worker processes; 1 computes in-process.
        prune: Compare each pair over its common taxa.
        show_progress: Report progress with tqdm.

    Raises:
        ValueError: If no trees are given or ``names`` does not match the
            number of trees.
        LeafSetMismatchError: If two trees have different leaf sets and
            ``prune`` is False.
    """
    if not trees:
        raise ValueError("Need at least one tree for a Robinson-Foulds matrix")
    n = len(trees)
    labels = list(names) if names is not None else [f"tree_{i + 1}" for i in range(n)]
    if len(labels) != n:
        raise ValueError(f"Got {len(labels)} names for {n} trees")

    pair_args: List[Tuple[int, int, Any, Any]]
    if prune:
        task = _pruned_distance
        pair_args = [(i, j, trees[i], trees[j]) for i in range(n) for j in range(i + 1, n)]
    else:
        reference = trees[0].leaf_set()
        for tree in trees[1:]:
            taxa = tree.leaf_set()
            if taxa != reference:
                LeafSetMismatchError.raise_mismatch(reference - taxa, taxa - reference)
        encoding = {name: idx for idx, name in enumerate(sorted(reference))}
        masks = [
            frozenset(p.bitmask for p in tree.to_bipartitions(encoding)) for tree in trees
        ]
        task = _masks_distance
        pair_args = [(i, j, masks[i], masks[j]) for i in range(n) for j in range(i + 1, n)]

    values = np.zeros((n, n), dtype=np.float64)
    if workers > 1 and len(pair_args) > 1:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(task, *arg) for arg in pair_args]
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Robinson-Foulds matrix",
                disable=not show_progress,
            ):
                i, j, distance = future.result()
                values[i, j] = values[j, i] = distance
    else:
        for arg in tqdm(pair_args, desc="Robinson-Foulds matrix", disable=not show_progress):
            i, j, distance = task(*arg)
            values[i, j] = values[j, i] = distance

    return DistanceMatrix(labels, values)


def shared_splits(tree1: Node, tree2: Node, prune: bool = False) -> PartitionSet[Partition]:
    """Non-trivial bipartitions present in both trees."""
    splits1, splits2 = _bipartition_pair(tree1, tree2, prune)
    return splits1 & splits2


def differing_splits(
    tree1: Node, tree2: Node, prune: bool = False
) -> Tuple[PartitionSet[Partition], PartitionSet[Partition]]:
    """Non-trivial bipartitions only in the first tree, and only in the second."""
    splits1, splits2 = _bipartition_pair(tree1, tree2, prune)
    return splits1 - splits2, splits2 - splits1


@dataclass
class SplitComparison:
    """Shared and differing bipartitions of two trees."""

    shared: PartitionSet[Partition]
    only_in_first: PartitionSet[Partition]
    only_in_second: PartitionSet[Partition]

    @property
    def robinson_foulds(self) -> int:
        return len(self.only_in_first) + len(self.only_in_second)

    @property
    def identical(self) -> bool:
        return self.robinson_foulds == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization; splits as sorted taxon lists."""
        return {
            "shared": [list(taxa) for taxa in self.shared.list_taxa_name],
            "only_in_first": [list(taxa) for taxa in self.only_in_first.list_taxa_name],
            "only_in_second": [list(taxa) for taxa in self.only_in_second.list_taxa_name],
            "robinson_foulds": self.robinson_foulds,
        }


def compare_splits(tree1: Node, tree2: Node, prune: bool = False) -> SplitComparison:
    """Split report supporting both "highlight common" and "highlight differing" views."""
    splits1, splits2 = _bipartition_pair(tree1, tree2, prune)
    return SplitComparison(
        shared=splits1 & splits2,
        only_in_first=splits1 - splits2,
        only_in_second=splits2 - splits1,
    )
