from typing import (
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
    cast,
)
from collections.abc import MutableSet

from phylosmith.elements.partition import Partition

T = TypeVar("T", bound="Partition")


class PartitionSet(Generic[T], MutableSet[T]):
    """
    A set of partitions with common encoding information.

    Membership is decided by bitmask, so two Partition objects describing the
    same taxa are the same element regardless of how they were constructed.

    Attributes:
        _bitmask_to_partition: Mapping from bitmask to Partition objects
        encoding: Mapping from taxon names to indices
        name: Name of this partition set
    """

    __slots__ = ("_bitmask_to_partition", "encoding", "name")

    def __init__(
        self,
        splits: Optional[Iterable[Union[T, Partition]]] = None,
        encoding: Optional[Dict[str, int]] = None,
        name: str = "PartitionSet",
    ) -> None:
        self._bitmask_to_partition: Dict[int, Partition] = {}
        self.encoding: Dict[str, int] = encoding or {}
        self.name = name
        if splits:
            for split in splits:
                self.add(split)

    def _element_to_partition(
        self, element: Union[Partition, Tuple[int, ...], int]
    ) -> Partition:
        if isinstance(element, Partition):
            return element
        if isinstance(element, tuple):
            return Partition(element, self.encoding)
        if isinstance(element, int):
            return Partition((element,), self.encoding)
        raise TypeError(f"Cannot store {type(element).__name__} in a PartitionSet")

    def _from_bitmasks(self, bitmasks: Iterable[int], suffix: str) -> "PartitionSet[T]":
        result: PartitionSet[T] = PartitionSet(encoding=self.encoding, name=self.name + suffix)
        for bitmask in bitmasks:
            result._bitmask_to_partition[bitmask] = self._bitmask_to_partition.get(
                bitmask
            ) or Partition.from_bitmask(bitmask, self.encoding)
        return result

    def _bitmasks_of(self, other: Iterable[object]) -> set[int]:
        if isinstance(other, PartitionSet):
            return set(other._bitmask_to_partition)
        return {
            self._element_to_partition(cast(Partition, elem)).bitmask for elem in other
        }

    def __contains__(self, x: object) -> bool:
        if isinstance(x, (Partition, tuple, int)):
            return self._element_to_partition(x).bitmask in self._bitmask_to_partition
        return False

    def __iter__(self) -> Iterator[T]:
        # Sorted by bitmask for deterministic iteration
        for bitmask in sorted(self._bitmask_to_partition):
            yield cast(T, self._bitmask_to_partition[bitmask])

    def __len__(self) -> int:
        return len(self._bitmask_to_partition)

    def add(self, value: Union[T, Partition, Tuple[int, ...], int]) -> None:
        partition = self._element_to_partition(value)
        self._bitmask_to_partition.setdefault(partition.bitmask, partition)

    def discard(self, value: Union[T, Partition, Tuple[int, ...], int]) -> None:
        partition = self._element_to_partition(value)
        self._bitmask_to_partition.pop(partition.bitmask, None)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PartitionSet):
            return set(self._bitmask_to_partition) == set(other._bitmask_to_partition)
        if isinstance(other, (set, frozenset)):
            return set(self._bitmask_to_partition) == self._bitmasks_of(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def union(self, *others: Iterable[T]) -> "PartitionSet[T]":
        result = self._from_bitmasks(self._bitmask_to_partition, "_union")
        for other in others:
            for elem in other:
                result.add(elem)
        return result

    def intersection(self, *others: Iterable[T]) -> "PartitionSet[T]":
        bitmasks = set(self._bitmask_to_partition)
        for other in others:
            bitmasks &= self._bitmasks_of(other)
        return self._from_bitmasks(bitmasks, "_intersection")

    def difference(self, *others: Iterable[T]) -> "PartitionSet[T]":
        bitmasks = set(self._bitmask_to_partition)
        for other in others:
            bitmasks -= self._bitmasks_of(other)
        return self._from_bitmasks(bitmasks, "_difference")

    def symmetric_difference(self, other: Iterable[T]) -> "PartitionSet[T]":
        other_partitions = [self._element_to_partition(cast(Partition, e)) for e in other]
        result = self._from_bitmasks(
            set(self._bitmask_to_partition) ^ {p.bitmask for p in other_partitions},
            "_symdiff",
        )
        for partition in other_partitions:
            if partition.bitmask in result._bitmask_to_partition:
                result._bitmask_to_partition[partition.bitmask] = partition
        return result

    def __or__(self, other: object) -> "PartitionSet[T]":
        if isinstance(other, Iterable):
            return self.union(cast(Iterable[T], other))
        return NotImplemented

    def __and__(self, other: object) -> "PartitionSet[T]":
        if isinstance(other, Iterable):
            return self.intersection(cast(Iterable[T], other))
        return NotImplemented

    def __sub__(self, other: object) -> "PartitionSet[T]":
        if isinstance(other, Iterable):
            return self.difference(cast(Iterable[T], other))
        return NotImplemented

    def __xor__(self, other: object) -> "PartitionSet[T]":
        if isinstance(other, Iterable):
            return self.symmetric_difference(cast(Iterable[T], other))
        return NotImplemented

    def issubset(self, other: Iterable[T]) -> bool:
        return set(self._bitmask_to_partition) <= self._bitmasks_of(other)

    def issuperset(self, other: Iterable[T]) -> bool:
        return set(self._bitmask_to_partition) >= self._bitmasks_of(other)

    def __le__(self, other: object) -> bool:
        return self.issubset(cast(Iterable[T], other))

    def __ge__(self, other: object) -> bool:
        return self.issuperset(cast(Iterable[T], other))

    @property
    def list_taxa_name(self) -> List[Tuple[str, ...]]:
        """Return a list of tuples of taxa names for each partition."""
        return sorted(tuple(sorted(p.taxa)) for p in self)

    def __str__(self) -> str:
        return "\n".join(str(s) for s in sorted(self))

    def __repr__(self) -> str:
        return f"PartitionSet({sorted(self)!r})"
