import logging
from typing import List

import numpy as np

from phylosmith.construction.matrix_utils import closest_pair, reduce_matrix, surviving
from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.exceptions import DegenerateTreeError
from phylosmith.tree import Node

logger = logging.getLogger(__name__)


class _Cluster:
    __slots__ = ("node", "size", "height")

    def __init__(self, node: Node, size: int, height: float):
        self.node = node
        self.size = size
        self.height = height


def upgma(dm: DistanceMatrix) -> Node:
    """
    Build a rooted ultrametric tree by average-linkage clustering.

    The two closest clusters are merged under a node at half their distance;
    distances to the merged cluster are size-weighted averages. Ties go to the
    first pair in row-major order and the merged cluster is appended last.

    Raises:
        DegenerateTreeError: If the matrix has fewer than two taxa.
    """
    n = len(dm)
    if n < 2:
        raise DegenerateTreeError(f"UPGMA needs at least 2 taxa, got {n}")

    encoding = {name: idx for idx, name in enumerate(sorted(dm.labels))}
    clusters: List[_Cluster] = [_Cluster(Node(name=label), 1, 0.0) for label in dm.labels]
    distances = np.array(dm.values, dtype=np.float64)

    while len(clusters) > 1:
        i, j = closest_pair(distances)
        first, second = clusters[i], clusters[j]
        height = distances[i, j] / 2.0
        # clamp round-off below the child heights
        first.node.length = max(height - first.height, 0.0)
        second.node.length = max(height - second.height, 0.0)
        merged = _Cluster(
            Node(children=[first.node, second.node]),
            first.size + second.size,
            max(height, first.height, second.height),
        )

        keep = [k for k in range(len(clusters)) if k not in (i, j)]
        new_row = (
            first.size * distances[i, keep] + second.size * distances[j, keep]
        ) / merged.size
        logger.debug(
            "UPGMA merge of clusters of size %d and %d at height %.6g",
            first.size,
            second.size,
            height,
        )
        distances = reduce_matrix(distances, i, j, new_row)
        clusters = surviving(clusters, i, j) + [merged]

    root = clusters[0].node
    root.rooted = True
    root.initialize_split_indices(encoding)
    return root
