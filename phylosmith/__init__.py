"""Distance-based phylogenetic tree inference and comparison."""

__version__ = "0.1.0"

__all__ = [
    "Alignment",
    "AnalysisConfig",
    "DistanceMatrix",
    "ExcludePolicy",
    "Node",
    "add_support_values",
    "compute_distances",
    "midpoint_root",
    "neighbor_join",
    "pairwise_rf_matrix",
    "parse_newick",
    "robinson_foulds_distance",
    "run_analysis",
    "upgma",
]

_EXPORTS = {
    "Alignment": "phylosmith.alignment",
    "AnalysisConfig": "phylosmith.config",
    "DistanceMatrix": "phylosmith.distances",
    "ExcludePolicy": "phylosmith.distances",
    "Node": "phylosmith.tree",
    "add_support_values": "phylosmith.consensus",
    "compute_distances": "phylosmith.distances",
    "midpoint_root": "phylosmith.rooting",
    "neighbor_join": "phylosmith.construction",
    "pairwise_rf_matrix": "phylosmith.distances",
    "parse_newick": "phylosmith.parser",
    "robinson_foulds_distance": "phylosmith.distances",
    "run_analysis": "phylosmith.pipeline",
    "upgma": "phylosmith.construction",
}


def __getattr__(name):
    if name in _EXPORTS:
        from importlib import import_module

        return getattr(import_module(_EXPORTS[name]), name)
    raise AttributeError(name)
