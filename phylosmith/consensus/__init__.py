"""
Split frequencies and bootstrap support.
"""

from .support import (
    add_support_values,
    bootstrap_support,
    bootstrap_trees,
    collect_count_of_splits,
    split_frequencies,
)

__all__ = [
    "add_support_values",
    "bootstrap_support",
    "bootstrap_trees",
    "collect_count_of_splits",
    "split_frequencies",
]
