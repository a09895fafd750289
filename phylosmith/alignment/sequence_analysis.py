"""Sequence type detection."""

import re
from typing import Iterable

from .constants import (
    AMINO_ACID_CHARACTERS,
    DETECTION_SAMPLE_SIZE,
    NUCLEOTIDE_CHARACTERS,
)
from .models import SequenceType


def detect_sequence_type(sequences: Iterable[str]) -> SequenceType:
    """
    Detect the type of sequences in an alignment.

    Examines a sample of sequences to determine if they are nucleotides,
    amino acids, or other. Uses IUPAC character sets for detection.

    Args:
        sequences: The aligned sequences to analyze.

    Returns:
        The detected sequence type.
    """
    nuc_pattern = re.compile(f"[^{re.escape(NUCLEOTIDE_CHARACTERS)}]")
    amino_pattern = re.compile(f"[^{re.escape(AMINO_ACID_CHARACTERS)}]")

    sample: list[str] = []
    for index, sequence in enumerate(sequences):
        if index >= DETECTION_SAMPLE_SIZE:
            break
        sample.append(sequence)
    sample_text = "".join(sample).upper()

    if nuc_pattern.search(sample_text) is None:
        return SequenceType.NUCLEOTIDE
    elif amino_pattern.search(sample_text) is None:
        return SequenceType.AMINO_ACID
    else:
        return SequenceType.OTHER
