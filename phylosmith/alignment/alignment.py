"""Multiple sequence alignment model."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from Bio.Align import MultipleSeqAlignment

from phylosmith.exceptions import AlignmentError

from .constants import (
    AMINO_ACID_STATES,
    GAP_STATE,
    NUCLEOTIDE_STATES,
    NUCLEOTIDE_SYNONYMS,
)
from .models import SequenceType
from .sequence_analysis import detect_sequence_type

# Never treated as states of an OTHER-type alphabet
_GAP_SYMBOLS = frozenset("-.?~!*")


def _state_lookup(states: str, synonyms: Mapping[str, str]) -> np.ndarray:
    """Byte -> state index table; every unlisted byte maps to GAP_STATE."""
    table = np.full(256, GAP_STATE, dtype=np.int16)
    for index, char in enumerate(states):
        table[ord(char.upper())] = index
        table[ord(char.lower())] = index
    for synonym, target in synonyms.items():
        table[ord(synonym.upper())] = states.index(target)
        table[ord(synonym.lower())] = states.index(target)
    return table


class Alignment:
    """
    Equal-length aligned sequences keyed by taxon name.

    The alignment is read-only after construction. Characters outside the
    state alphabet of its sequence type (gaps, ``N``, ``X``, IUPAC ambiguity
    codes) are treated as gaps by every comparison.

    Attributes:
        taxa: Taxon names in input order
        sequences: Aligned sequences, parallel to ``taxa``
        sequence_type: Nucleotide, amino acid or other
    """

    __slots__ = ("taxa", "sequences", "sequence_type", "states", "_state_matrix")

    def __init__(
        self,
        records: Union[Mapping[str, str], Iterable[Tuple[str, str]]],
        sequence_type: Optional[SequenceType] = None,
    ):
        """
        Args:
            records: Mapping or (taxon, sequence) pairs.
            sequence_type: Skip detection and use this type.

        Raises:
            AlignmentError: If there are no sequences, taxa are duplicated, or
                sequence lengths differ.
        """
        pairs = list(records.items()) if isinstance(records, Mapping) else list(records)
        if not pairs:
            raise AlignmentError("Alignment must contain at least one sequence")

        taxa: List[str] = []
        sequences: List[str] = []
        seen: set[str] = set()
        for taxon, sequence in pairs:
            taxon = str(taxon)
            if taxon in seen:
                raise AlignmentError(f"Duplicate taxon '{taxon}' in alignment")
            seen.add(taxon)
            taxa.append(taxon)
            sequences.append(str(sequence))

        widths = {len(s) for s in sequences}
        if len(widths) != 1:
            raise AlignmentError(
                f"Sequences have different lengths: {sorted(widths)}"
            )

        self.taxa: Tuple[str, ...] = tuple(taxa)
        self.sequences: Tuple[str, ...] = tuple(sequences)
        self.sequence_type: SequenceType = (
            sequence_type if sequence_type is not None else detect_sequence_type(sequences)
        )
        self.states: str = self._alphabet()
        self._state_matrix: Optional[np.ndarray] = None

    @classmethod
    def from_biopython(
        cls, alignment: MultipleSeqAlignment, sequence_type: Optional[SequenceType] = None
    ) -> "Alignment":
        return cls(((rec.id, str(rec.seq)) for rec in alignment), sequence_type)

    def _alphabet(self) -> str:
        match self.sequence_type:
            case SequenceType.NUCLEOTIDE:
                return NUCLEOTIDE_STATES
            case SequenceType.AMINO_ACID:
                return AMINO_ACID_STATES
            case SequenceType.OTHER:
                chars = {c.upper() for s in self.sequences for c in s}
                return "".join(sorted(c for c in chars if c.isascii() and c not in _GAP_SYMBOLS))
            case _:
                raise AlignmentError(f"Invalid sequence type: {self.sequence_type}")

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.taxa)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(zip(self.taxa, self.sequences))

    def __getitem__(self, taxon: str) -> str:
        try:
            return self.sequences[self.taxa.index(taxon)]
        except ValueError:
            raise KeyError(taxon)

    def __contains__(self, taxon: object) -> bool:
        return taxon in self.taxa

    def __repr__(self) -> str:
        return (
            f"Alignment({len(self.taxa)} taxa, width={self.width}, "
            f"type={self.sequence_type.name})"
        )

    @property
    def width(self) -> int:
        """Number of alignment columns."""
        return len(self.sequences[0])

    def to_dict(self) -> Dict[str, str]:
        return dict(zip(self.taxa, self.sequences))

    # ------------------------------------------------------------------
    # Numeric views
    # ------------------------------------------------------------------
    def state_matrix(self) -> np.ndarray:
        """
        Integer matrix of shape (taxa, width) holding the state index of every
        character, or GAP_STATE (-1) for gap and ambiguity characters.
        """
        if self._state_matrix is None:
            synonyms = (
                NUCLEOTIDE_SYNONYMS if self.sequence_type is SequenceType.NUCLEOTIDE else {}
            )
            table = _state_lookup(self.states, synonyms)
            rows = [
                table[np.frombuffer(s.encode("ascii", errors="replace"), dtype=np.uint8)]
                for s in self.sequences
            ]
            matrix = np.vstack(rows) if rows else np.empty((0, 0), dtype=np.int16)
            matrix.setflags(write=False)
            self._state_matrix = matrix
        return self._state_matrix

    def base_frequencies(self) -> np.ndarray:
        """
        Empirical state frequencies over all unambiguous characters.

        Raises:
            AlignmentError: If the alignment contains no unambiguous character.
        """
        matrix = self.state_matrix()
        valid = matrix[matrix != GAP_STATE]
        if valid.size == 0:
            raise AlignmentError("Alignment contains no unambiguous characters")
        counts = np.bincount(valid, minlength=len(self.states))
        return counts / counts.sum()

    def gap_free_columns(self) -> np.ndarray:
        """Indices of the columns without gap or ambiguity in any sequence."""
        return np.flatnonzero((self.state_matrix() != GAP_STATE).all(axis=0))

    # ------------------------------------------------------------------
    # Derived alignments
    # ------------------------------------------------------------------
    def select_columns(self, columns: Sequence[int]) -> "Alignment":
        """New alignment built from the given columns, in the given order (repeats allowed)."""
        cols = np.asarray(columns, dtype=np.intp)
        chars = np.array([list(s) for s in self.sequences], dtype="<U1").reshape(
            len(self.sequences), self.width
        )
        selected = chars[:, cols]
        return Alignment(
            zip(self.taxa, ("".join(row) for row in selected)),
            sequence_type=self.sequence_type,
        )

    def subset(self, taxa: Iterable[str]) -> "Alignment":
        """New alignment restricted to the given taxa, in the given order."""
        wanted = list(taxa)
        missing = [t for t in wanted if t not in self.taxa]
        if missing:
            raise AlignmentError(f"Taxa not in alignment: {missing}")
        return Alignment(((t, self[t]) for t in wanted), sequence_type=self.sequence_type)

    def bootstrap(self, rng: Optional[np.random.Generator] = None) -> "Alignment":
        """Resample columns with replacement to the original width."""
        rng = rng if rng is not None else np.random.default_rng()
        columns = rng.integers(0, self.width, size=self.width) if self.width else []
        return self.select_columns(columns)


def bootstrap_alignment(
    alignment: Alignment, rng: Optional[np.random.Generator] = None
) -> Alignment:
    """Return a column-bootstrap replicate of the alignment."""
    return alignment.bootstrap(rng)
