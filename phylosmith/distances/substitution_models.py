"""
Substitution models for pairwise evolutionary distances.

Both models are members of the F81 family: the probability of ending in
state j after distance d is ``exp(-d/B)`` for staying put plus
``(1 - exp(-d/B)) * pi_j``, where ``B = 1 - sum(pi**2)`` scales time so that
d is the expected number of substitutions per site.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Type

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.optimize import minimize_scalar

from phylosmith.alignment import Alignment

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE = 10.0


class SubstitutionModel:
    """Base class of the F81 family, parametrised by equilibrium frequencies."""

    name = "F81-family"

    def __init__(self, frequencies: ArrayLike):
        freqs = np.asarray(frequencies, dtype=np.float64)
        if freqs.ndim != 1 or freqs.size < 2:
            raise ValueError("A substitution model needs at least two states")
        if np.any(freqs < 0) or not math.isclose(float(freqs.sum()), 1.0, abs_tol=1e-9):
            raise ValueError("State frequencies must be non-negative and sum to 1")
        self.frequencies: NDArray[np.float64] = freqs

    @classmethod
    def from_alignment(cls, alignment: Alignment) -> "SubstitutionModel":
        """Model with the empirical state frequencies of the alignment."""
        return cls(alignment.base_frequencies())

    @property
    def n_states(self) -> int:
        return int(self.frequencies.size)

    @property
    def saturation(self) -> float:
        """Expected proportion of differing sites at infinite distance (B)."""
        return float(1.0 - np.sum(self.frequencies**2))

    def transition_probabilities(self, distance: float) -> NDArray[np.float64]:
        """Matrix P(d) with P[i, j] the probability of state j given state i."""
        saturation = self.saturation
        stay = math.exp(-distance / saturation) if saturation > 0 else 1.0
        matrix = np.tile((1.0 - stay) * self.frequencies, (self.n_states, 1))
        matrix[np.diag_indices(self.n_states)] += stay
        return matrix

    def log_likelihood(self, distance: float, pair_counts: NDArray[np.int64]) -> float:
        """
        Log-likelihood of the observed state pairs of two sequences.

        Args:
            distance: Branch length separating the two sequences.
            pair_counts: k x k matrix counting columns with state i in the first
                sequence and state j in the second.
        """
        joint = self.frequencies[:, None] * self.transition_probabilities(distance)
        observed = pair_counts > 0
        with np.errstate(divide="ignore"):
            return float(np.sum(pair_counts[observed] * np.log(joint[observed])))

    def closed_form_distance(self, p_distance: float) -> Optional[float]:
        """
        ``-B * ln(1 - p/B)``, or None when the observed difference has reached
        saturation and the formula is undefined.
        """
        if p_distance <= 0.0:
            return 0.0
        saturation = self.saturation
        if p_distance >= saturation:
            return None
        return -saturation * math.log(1.0 - p_distance / saturation)

    def estimate_distance(
        self,
        pair_counts: NDArray[np.int64],
        max_distance: float = DEFAULT_MAX_DISTANCE,
    ) -> float:
        """
        Maximum-likelihood distance for one pair of sequences.

        Uses the closed form where it is defined and falls back to bounded
        one-dimensional maximisation otherwise. The result is capped at
        ``max_distance``.

        Raises:
            ValueError: If there is no comparable column.
        """
        total = int(pair_counts.sum())
        if total == 0:
            raise ValueError("No comparable columns")
        p_distance = 1.0 - float(np.trace(pair_counts)) / total

        distance = self.closed_form_distance(p_distance)
        if distance is not None:
            return min(distance, max_distance)

        logger.debug(
            "%s: p-distance %.4f at saturation %.4f, maximising likelihood numerically",
            self.name,
            p_distance,
            self.saturation,
        )
        result = minimize_scalar(
            lambda d: -self.log_likelihood(d, pair_counts),
            bounds=(0.0, max_distance),
            method="bounded",
        )
        best = float(result.x)
        if self.log_likelihood(max_distance, pair_counts) >= self.log_likelihood(best, pair_counts):
            best = max_distance
        return best

    def __repr__(self) -> str:
        return f"{self.name}(frequencies={np.round(self.frequencies, 4).tolist()})"


class JC69(SubstitutionModel):
    """Jukes-Cantor: equal frequencies for every state."""

    name = "JC69"

    def __init__(self, n_states: int = 4):
        super().__init__(np.full(n_states, 1.0 / n_states))

    @classmethod
    def from_alignment(cls, alignment: Alignment) -> "JC69":
        return cls(len(alignment.states))


class F81(SubstitutionModel):
    """Felsenstein 1981: empirical state frequencies."""

    name = "F81"


MODELS: Dict[str, Type[SubstitutionModel]] = {
    "JC69": JC69,
    "F81": F81,
}


def get_model(name: str, alignment: Alignment) -> SubstitutionModel:
    """
    Instantiate a model by name for the given alignment.

    Raises:
        ValueError: If the model name is unknown.
    """
    try:
        model_class = MODELS[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown substitution model '{name}'. Choose from {sorted(MODELS)}")
    return model_class.from_alignment(alignment)
