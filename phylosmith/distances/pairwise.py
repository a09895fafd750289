from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from phylosmith.alignment import Alignment
from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.distances.substitution_models import (
    DEFAULT_MAX_DISTANCE,
    SubstitutionModel,
    get_model,
)
from phylosmith.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)


class ExcludePolicy(str, Enum):
    """Which gap/ambiguity columns are left out of a pairwise comparison."""

    # only columns with a gap in either of the two sequences
    PAIRWISE = "pairwise"
    # every column with a gap in any sequence of the alignment
    GLOBAL = "global"


def pair_counts(
    first: NDArray[np.int16], second: NDArray[np.int16], n_states: int
) -> NDArray[np.int64]:
    """
    Count state pairs over the columns where both rows hold an unambiguous state.

    Returns:
        n_states x n_states matrix, entry [i, j] counting columns with state i
        in ``first`` and state j in ``second``.
    """
    comparable = (first >= 0) & (second >= 0)
    codes = first[comparable].astype(np.intp) * n_states + second[comparable]
    return np.bincount(codes, minlength=n_states * n_states).reshape(n_states, n_states)


def compute_distances(
    alignment: Alignment,
    model: Union[str, SubstitutionModel] = "F81",
    exclude: Union[str, ExcludePolicy] = ExcludePolicy.PAIRWISE,
    max_distance: float = DEFAULT_MAX_DISTANCE,
) -> DistanceMatrix:
    """
    Compute the maximum-likelihood distance between every pair of taxa.

    Args:
        alignment: Aligned sequences.
        model: Model name ("F81", "JC69") or a model instance. Named models take
            their state frequencies from the whole alignment.
        exclude: Gap handling, see ExcludePolicy.
        max_distance: Upper bound for saturated pairs.

    Returns:
        DistanceMatrix labelled by the alignment's taxa, in alignment order.

    Raises:
        InsufficientDataError: If a pair has no comparable column left.
    """
    policy = ExcludePolicy(exclude)
    states = alignment.state_matrix()
    if policy is ExcludePolicy.GLOBAL:
        columns = alignment.gap_free_columns()
        logger.debug(
            "Global gap exclusion keeps %d of %d columns", len(columns), alignment.width
        )
        states = states[:, columns]

    # every pair needs a comparable column before model frequencies are defined
    n = len(alignment)
    k = len(alignment.states)
    counts: Dict[Tuple[int, int], NDArray[np.int64]] = {}
    for i in range(n):
        for j in range(i + 1, n):
            pair = pair_counts(states[i], states[j], k)
            if pair.sum() == 0:
                InsufficientDataError.raise_for_pair(
                    alignment.taxa[i], alignment.taxa[j], policy.value
                )
            counts[i, j] = pair

    substitution_model = model if isinstance(model, SubstitutionModel) else get_model(model, alignment)
    if substitution_model.n_states != k:
        raise ValueError(
            f"{substitution_model.name} has {substitution_model.n_states} states, "
            f"the alignment has {k}"
        )

    values = np.zeros((n, n), dtype=np.float64)
    for (i, j), pair in counts.items():
        values[i, j] = values[j, i] = substitution_model.estimate_distance(pair, max_distance)

    logger.debug(
        "Computed %s distances for %d taxa (%s exclusion)",
        substitution_model.name,
        n,
        policy.value,
    )
    return DistanceMatrix(alignment.taxa, values)
