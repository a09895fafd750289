"""
Distance-based tree construction.
"""

from .neighbor_joining import neighbor_join
from .upgma import upgma

TREE_BUILDERS = {
    "nj": neighbor_join,
    "upgma": upgma,
}

__all__ = ["neighbor_join", "upgma", "TREE_BUILDERS"]
