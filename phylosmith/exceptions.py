"""
Custom exceptions for phylosmith.
"""

from __future__ import annotations
from typing import NoReturn, Iterable


class PhylosmithError(Exception):
    """Base exception for all phylosmith errors."""

    pass


class AlignmentError(PhylosmithError, ValueError):
    """Raised when an alignment violates its invariants."""

    pass


class DistanceMatrixError(PhylosmithError, ValueError):
    """Raised when a distance matrix is not square, symmetric or non-negative."""

    pass


class InsufficientDataError(PhylosmithError):
    """Raised when a taxon pair has no comparable alignment columns."""

    @staticmethod
    def raise_for_pair(first: str, second: str, policy: str) -> NoReturn:
        raise InsufficientDataError(
            f"No comparable columns between '{first}' and '{second}' "
            f"after {policy} gap exclusion."
        )


class EmptyTreeError(PhylosmithError):
    """Raised when a tree has too few leaves for the requested operation."""

    pass


class DegenerateTreeError(PhylosmithError):
    """Raised when a tree cannot be built from the given number of taxa."""

    pass


class MalformedNewickError(PhylosmithError, ValueError):
    """Raised when a Newick string cannot be decoded."""

    def __init__(self, message: str, position: int | None = None):
        if position is not None:
            message = f"{message} (at character {position})"
        super().__init__(message)
        self.position = position


class LeafSetMismatchError(PhylosmithError):
    """Raised when two trees are compared over different leaf sets."""

    @staticmethod
    def raise_mismatch(only_first: Iterable[str], only_second: Iterable[str]) -> NoReturn:
        raise LeafSetMismatchError(
            "Trees have different leaf sets. "
            f"Only in first: {sorted(only_first)}, only in second: {sorted(only_second)}. "
            "Prune both trees to their common taxa before comparing."
        )
