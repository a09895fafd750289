"""Analysis result dataclass."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.distances.tree_distances import SplitComparison
from phylosmith.tree import Node


@dataclass
class AnalysisResult:
    """Result from running the alignment-to-trees analysis."""

    taxa: List[str]
    """Taxa of the alignment, in input order."""

    distance_matrix: DistanceMatrix
    """Pairwise evolutionary distances between the taxa."""

    trees: Dict[str, Node] = field(default_factory=dict)
    """Inferred tree per method name ("nj", "upgma")."""

    rf_matrix: Optional[DistanceMatrix] = None
    """Robinson-Foulds distances between the inferred trees."""

    split_comparison: Optional[SplitComparison] = None
    """Shared and differing splits of the first two trees."""

    output_files: Dict[str, Path] = field(default_factory=dict)
    """Written files keyed by content ("distances", "nj", "rf_matrix", ...)."""

    alignment_width: int = 0
    """Number of alignment columns."""

    bootstrap_replicates: int = 0
    """Number of bootstrap replicates behind the support values."""

    @property
    def methods(self) -> List[str]:
        return list(self.trees)

    def newick(self, method: str) -> str:
        return self.trees[method].to_newick()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "taxa": self.taxa,
            "alignment_width": self.alignment_width,
            "trees": {method: tree.to_newick() for method, tree in self.trees.items()},
            "bootstrap_replicates": self.bootstrap_replicates,
            "rf_matrix": (
                {"labels": list(self.rf_matrix.labels), "values": self.rf_matrix.values.tolist()}
                if self.rf_matrix is not None
                else None
            ),
            "split_comparison": (
                self.split_comparison.to_dict() if self.split_comparison is not None else None
            ),
            "output_files": {key: str(path) for key, path in self.output_files.items()},
        }
