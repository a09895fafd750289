"""
Rerooting of phylogenetic trees.
"""

from .core_rooting import (
    find_farthest_leaves,
    midpoint_root,
    path_between,
    reroot_at_node,
)

__all__ = [
    "find_farthest_leaves",
    "midpoint_root",
    "path_between",
    "reroot_at_node",
]
