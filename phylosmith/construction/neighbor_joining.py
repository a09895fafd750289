import logging
from typing import List

import numpy as np

from phylosmith.construction.matrix_utils import closest_pair, reduce_matrix, surviving
from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.exceptions import DegenerateTreeError
from phylosmith.tree import Node

logger = logging.getLogger(__name__)


def _clamped(length: float, child: Node) -> float:
    if length < 0.0:
        logger.debug(
            "Clamping negative NJ branch length %.6g above %s to 0",
            length,
            child.name or "internal node",
        )
        return 0.0
    return float(length)


def neighbor_join(dm: DistanceMatrix) -> Node:
    """
    Build an unrooted tree with the Neighbor Joining algorithm.

    Active nodes are joined pairwise by minimising
    ``Q(i, j) = (n - 2) * d(i, j) - r(i) - r(j)`` until three remain, which
    become the children of a trifurcating root. The joined node is appended
    after the surviving nodes, and ties go to the first pair in row-major
    order, so the result is deterministic for a given matrix.

    Negative branch lengths produced by the NJ formula are clamped to zero.

    Args:
        dm: Distance matrix over the taxa.

    Returns:
        Root of the unrooted tree (``rooted`` is False). With exactly two taxa
        the root has both leaves as children, each at half their distance.

    Raises:
        DegenerateTreeError: If the matrix has fewer than two taxa.
    """
    n = len(dm)
    if n < 2:
        raise DegenerateTreeError(f"Neighbor Joining needs at least 2 taxa, got {n}")

    encoding = {name: idx for idx, name in enumerate(sorted(dm.labels))}
    active: List[Node] = [Node(name=label) for label in dm.labels]
    distances = np.array(dm.values, dtype=np.float64)

    if n == 2:
        half = distances[0, 1] / 2.0
        for leaf in active:
            leaf.length = half
        root = Node(children=active)
        root.initialize_split_indices(encoding)
        return root

    while len(active) > 3:
        m = len(active)
        r = distances.sum(axis=1)
        criterion = (m - 2) * distances - r[:, None] - r[None, :]
        i, j = closest_pair(criterion)

        d_ij = distances[i, j]
        delta = (r[i] - r[j]) / (m - 2)
        node_i, node_j = active[i], active[j]
        node_i.length = _clamped(0.5 * (d_ij + delta), node_i)
        node_j.length = _clamped(0.5 * (d_ij - delta), node_j)
        joined = Node(children=[node_i, node_j])

        keep = [k for k in range(m) if k not in (i, j)]
        new_row = 0.5 * (distances[i, keep] + distances[j, keep] - d_ij)
        logger.debug(
            "NJ join %s + %s (Q=%.6g, %d active)",
            node_i.name or "internal",
            node_j.name or "internal",
            criterion[i, j],
            m,
        )
        distances = reduce_matrix(distances, i, j, new_row)
        active = surviving(active, i, j) + [joined]

    a, b, c = active
    d_ab, d_ac, d_bc = distances[0, 1], distances[0, 2], distances[1, 2]
    a.length = _clamped(0.5 * (d_ab + d_ac - d_bc), a)
    b.length = _clamped(0.5 * (d_ab + d_bc - d_ac), b)
    c.length = _clamped(0.5 * (d_ac + d_bc - d_ab), c)

    root = Node(children=[a, b, c])
    root.initialize_split_indices(encoding)
    return root
