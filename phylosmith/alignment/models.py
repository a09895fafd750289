"""Data models for the alignment module."""

from enum import Enum


class SequenceType(Enum):
    """Enumeration of supported sequence types."""

    NUCLEOTIDE = 1
    AMINO_ACID = 2
    OTHER = 3
