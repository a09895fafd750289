"""
Newick format parser module for phylogenetic trees.

This module provides functionality to parse Newick format strings into tree structures.
"""

from .newick_parser import (
    parse_newick,
    split_token,
    parse_metadata,
)

__all__ = [
    "parse_newick",
    "split_token",
    "parse_metadata",
]
