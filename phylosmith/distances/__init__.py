"""
Distances between sequences and between trees.
"""

from .distance_matrix import DistanceMatrix
from .substitution_models import F81, JC69, SubstitutionModel, get_model
from .pairwise import ExcludePolicy, compute_distances
from .tree_distances import (
    SplitComparison,
    compare_splits,
    differing_splits,
    pairwise_rf_matrix,
    relative_robinson_foulds_distance,
    robinson_foulds_distance,
    shared_splits,
    weighted_robinson_foulds_distance,
)

__all__ = [
    "DistanceMatrix",
    "ExcludePolicy",
    "F81",
    "JC69",
    "SplitComparison",
    "SubstitutionModel",
    "compare_splits",
    "compute_distances",
    "differing_splits",
    "get_model",
    "pairwise_rf_matrix",
    "relative_robinson_foulds_distance",
    "robinson_foulds_distance",
    "shared_splits",
    "weighted_robinson_foulds_distance",
]
