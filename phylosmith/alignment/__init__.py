"""
Alignment model for phylosmith.

Provides the read-only multiple sequence alignment consumed by the distance
engine, sequence type detection and column bootstrap resampling.
"""

from .models import SequenceType
from .alignment import Alignment, bootstrap_alignment
from .sequence_analysis import detect_sequence_type

__all__ = [
    "Alignment",
    "SequenceType",
    "bootstrap_alignment",
    "detect_sequence_type",
]
