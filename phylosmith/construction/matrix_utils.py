"""Working-matrix helpers shared by the agglomerative tree builders."""

from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray


def closest_pair(criterion: NDArray[np.float64]) -> Tuple[int, int]:
    """
    Return (i, j), i < j, minimising the criterion over the upper triangle.

    Ties go to the first pair in row-major order.
    """
    masked = np.array(criterion, dtype=np.float64)
    masked[np.tril_indices(masked.shape[0])] = np.inf
    flat_index = int(np.argmin(masked))
    i, j = divmod(flat_index, masked.shape[0])
    return i, j


def reduce_matrix(
    matrix: NDArray[np.float64], i: int, j: int, new_row: NDArray[np.float64]
) -> NDArray[np.float64]:
    """
    Drop rows/columns i and j and append the merged node last.

    Args:
        matrix: Current working matrix (m x m).
        new_row: Distances from the merged node to the m - 2 surviving nodes,
            in their current order.
    """
    keep = [k for k in range(matrix.shape[0]) if k not in (i, j)]
    size = len(keep) + 1
    reduced = np.zeros((size, size), dtype=np.float64)
    reduced[:-1, :-1] = matrix[np.ix_(keep, keep)]
    reduced[-1, :-1] = new_row
    reduced[:-1, -1] = new_row
    return reduced


def surviving(items: Sequence, i: int, j: int) -> list:
    """Items other than positions i and j, in order."""
    return [item for k, item in enumerate(items) if k not in (i, j)]
