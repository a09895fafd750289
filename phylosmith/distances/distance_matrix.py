from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from phylosmith.exceptions import DistanceMatrixError

# Tolerance for symmetry, zero-diagonal and non-negativity checks
MATRIX_TOLERANCE = 1e-9

Key = Union[str, int]


class DistanceMatrix:
    """
    Symmetric, non-negative, zero-diagonal matrix labelled by taxon (or tree) names.

    The matrix is immutable: ``values`` is a read-only numpy array and every
    derived matrix is a new object.
    """

    __slots__ = ("labels", "_values", "_index")

    def __init__(
        self,
        labels: Sequence[str],
        values: Union[Sequence[Sequence[float]], NDArray[np.float64]],
    ):
        """
        Args:
            labels: Row/column labels, unique.
            values: Square matrix of distances.

        Raises:
            DistanceMatrixError: If the labels are not unique, the matrix is not
                square, symmetric and finite, has a non-zero diagonal, or holds
                negative entries.
        """
        self.labels: Tuple[str, ...] = tuple(str(label) for label in labels)
        if not self.labels:
            raise DistanceMatrixError("Distance matrix needs at least one label")
        if len(set(self.labels)) != len(self.labels):
            raise DistanceMatrixError("Distance matrix labels must be unique")

        matrix = np.array(values, dtype=np.float64)
        n = len(self.labels)
        if matrix.shape != (n, n):
            raise DistanceMatrixError(
                f"Expected a {n}x{n} matrix for {n} labels, got shape {matrix.shape}"
            )
        if not np.all(np.isfinite(matrix)):
            raise DistanceMatrixError("Distance matrix contains non-finite values")
        if np.any(np.abs(np.diag(matrix)) > MATRIX_TOLERANCE):
            raise DistanceMatrixError("Distance matrix diagonal must be zero")
        if np.any(np.abs(matrix - matrix.T) > MATRIX_TOLERANCE):
            raise DistanceMatrixError("Distance matrix must be symmetric")
        if np.any(matrix < -MATRIX_TOLERANCE):
            raise DistanceMatrixError("Distance matrix entries must be non-negative")

        matrix = np.clip((matrix + matrix.T) / 2.0, 0.0, None)
        np.fill_diagonal(matrix, 0.0)
        matrix.setflags(write=False)
        self._values: NDArray[np.float64] = matrix
        self._index = {label: i for i, label in enumerate(self.labels)}

    @property
    def values(self) -> NDArray[np.float64]:
        """Read-only view of the matrix."""
        return self._values

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels)

    def __contains__(self, label: object) -> bool:
        return label in self._index

    def index(self, key: Key) -> int:
        if isinstance(key, (int, np.integer)):
            if not -len(self.labels) <= key < len(self.labels):
                raise IndexError(key)
            return key % len(self.labels)
        try:
            return self._index[key]
        except KeyError:
            raise KeyError(f"Unknown label '{key}'")

    def __getitem__(self, key: Tuple[Key, Key]) -> float:
        first, second = key
        return float(self._values[self.index(first), self.index(second)])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DistanceMatrix):
            return NotImplemented
        return self.labels == other.labels and np.array_equal(self._values, other._values)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"DistanceMatrix({list(self.labels)!r})"

    def subset(self, labels: Iterable[str]) -> "DistanceMatrix":
        """New matrix restricted to (and ordered by) the given labels."""
        wanted = list(labels)
        indices = [self.index(label) for label in wanted]
        return DistanceMatrix(wanted, self._values[np.ix_(indices, indices)])

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self._values.copy(), index=list(self.labels), columns=list(self.labels))

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame) -> "DistanceMatrix":
        """
        Build a matrix from a labelled square DataFrame.

        Raises:
            DistanceMatrixError: If row and column labels differ.
        """
        rows = [str(label) for label in frame.index]
        columns = [str(label) for label in frame.columns]
        if rows != columns:
            raise DistanceMatrixError("Row and column labels of the distance table differ")
        return cls(rows, frame.to_numpy(dtype=np.float64))

    def to_lower_triangle(self) -> List[List[float]]:
        """Rows of the lower triangle including the diagonal."""
        return [[float(v) for v in self._values[i, : i + 1]] for i in range(len(self.labels))]
