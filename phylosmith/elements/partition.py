from typing import Tuple, FrozenSet, Dict, Iterator, List, Any, Optional
from functools import total_ordering


@total_ordering
class Partition:
    """
    Set of taxa stored as sorted indices plus the equivalent bitmask.

    A node's partition is the cluster of leaves below it; the canonical form
    of that cluster identifies the unrooted bipartition of the edge above it.
    """

    __slots__ = ("indices", "encoding", "bitmask", "_cached_reverse_encoding")

    def __init__(
        self, indices: Tuple[int, ...], encoding: Optional[Dict[str, int]] = None
    ):
        """
        Args:
            indices: Taxon indices; duplicates are dropped.
            encoding: Taxon name to index mapping shared by a tree and its splits.
        """
        self.indices: Tuple[int, ...] = tuple(sorted(set(indices)))
        self.encoding: Dict[str, int] = encoding or {}
        bitmask = 0
        for idx in self.indices:
            bitmask |= 1 << idx
        self.bitmask: int = bitmask
        self._cached_reverse_encoding: Optional[Dict[int, str]] = None

    @classmethod
    def from_bitmask(
        cls, bitmask: int, encoding: Optional[Dict[str, int]] = None
    ) -> "Partition":
        """Create a Partition directly from a bitmask, skipping index sorting."""
        partition = object.__new__(cls)
        indices: List[int] = []
        remaining = bitmask
        while remaining:
            low_bit = remaining & -remaining
            indices.append(low_bit.bit_length() - 1)
            remaining ^= low_bit
        partition.indices = tuple(indices)
        partition.encoding = encoding or {}
        partition.bitmask = bitmask
        partition._cached_reverse_encoding = None
        return partition

    @classmethod
    def from_taxa(cls, names: Any, encoding: Dict[str, int]) -> "Partition":
        """Create a Partition from taxon names using the given encoding."""
        try:
            return cls(tuple(encoding[name] for name in names), encoding)
        except KeyError as e:
            raise ValueError(f"Unknown taxon name '{e.args[0]}' for this encoding")

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    def __len__(self) -> int:
        return len(self.indices)

    def __bool__(self) -> bool:
        return self.bitmask != 0

    def __lt__(self, other: Any) -> bool:
        if isinstance(other, Partition):
            return self.indices < other.indices
        return NotImplemented

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Partition):
            return self.bitmask == other.bitmask
        if isinstance(other, tuple):
            return self.indices == tuple(sorted(set(other)))
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.bitmask)

    @property
    def full_bitmask(self) -> int:
        """Bitmask covering every taxon of the encoding."""
        mask = 0
        for idx in self.encoding.values():
            mask |= 1 << idx
        return mask

    @property
    def taxa(self) -> FrozenSet[str]:
        """
        Taxon names of the partition, resolved through the encoding.
        """
        return frozenset(self.reverse_encoding[i] for i in self.indices)

    @property
    def reverse_encoding(self) -> Dict[int, str]:
        if self._cached_reverse_encoding is None:
            self._cached_reverse_encoding = {v: k for k, v in self.encoding.items()}
        return self._cached_reverse_encoding

    def complement(self) -> "Partition":
        """Return the taxa of the encoding that are not in this partition."""
        return Partition.from_bitmask(self.full_bitmask & ~self.bitmask, self.encoding)

    def canonical(self) -> "Partition":
        """
        Return the canonical side of the bipartition this partition induces.

        The canonical side is the one that does not contain the lowest taxon
        index of the encoding, so both sides of one edge map to the same value.
        """
        full = self.full_bitmask
        if not full:
            return self
        reference_bit = full & -full
        if self.bitmask & reference_bit:
            return self.complement()
        return self

    def is_trivial(self) -> bool:
        """True for bipartitions that separate fewer than two taxa from the rest."""
        size = len(self.indices)
        total = len(self.encoding)
        return size < 2 or size > total - 2

    def __str__(self) -> str:
        taxa_names: List[str] = sorted(
            self.reverse_encoding.get(i, str(i)) for i in self.indices
        )
        return f"({', '.join(taxa_names)})"

    def __repr__(self) -> str:
        return f"Partition{self}"
