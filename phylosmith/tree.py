from __future__ import annotations

import math
import re
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from typing import Self

from phylosmith.elements.partition import Partition
from phylosmith.elements.partition_set import PartitionSet
from phylosmith.exceptions import EmptyTreeError

# Characters that force a Newick label to be quoted
_NEEDS_QUOTING = re.compile(r"[\s()\[\]':;,]")

NEWICK_PRECISION = 6

# Rooting comments written before a tree whose root shape would be misread
ROOTED_COMMENT = "&R"
UNROOTED_COMMENT = "&U"


def format_number(value: float, precision: int = NEWICK_PRECISION) -> str:
    """Format a branch length or support value with `precision` significant digits."""
    return format(float(value), f".{precision}g")


def format_value(value: Any, precision: int = NEWICK_PRECISION) -> str:
    """Format a comment value so the Newick parser reads it back unchanged."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return format_number(value, precision)
    if isinstance(value, str):
        return repr(value)
    return str(value)


def quote_label(label: str) -> str:
    if label and _NEEDS_QUOTING.search(label):
        return "'" + label.replace("'", "''") + "'"
    return label


class Node:
    """
    Tree node; the root node doubles as the handle for the whole tree.

    The branch stored on a node (``length`` and ``values["support"]``) is the
    edge connecting it to its parent. ``rooted`` is only meaningful on the root.
    """

    __slots__ = (
        "children",
        "parent",
        "name",
        "length",
        "values",
        "split_indices",
        "taxa_encoding",
        "rooted",
        "_traverse_cache",
        "_leaves_cache",
    )

    children: List[Self]
    parent: Optional[Self]
    name: str
    length: Optional[float]
    values: Dict[str, Any]
    split_indices: Partition
    taxa_encoding: Dict[str, int]
    rooted: bool

    def __init__(
        self,
        children: Optional[List[Self]] = None,
        name: str = "",
        length: Optional[float] = None,
        values: Optional[Dict[str, Any]] = None,
        split_indices: Optional[Partition] = None,
        taxa_encoding: Optional[Dict[str, int]] = None,
        rooted: bool = False,
    ):
        self.children = list(children) if children is not None else []
        for child in self.children:
            child.parent = self
        self.parent = None
        self.name = name
        self.length = length
        self.values = dict(values) if values is not None else {}
        self.taxa_encoding = taxa_encoding if taxa_encoding is not None else {}
        self.split_indices = (
            split_indices
            if split_indices is not None
            else Partition((), self.taxa_encoding)
        )
        self.rooted = rooted
        self._traverse_cache: Optional[List[Self]] = None
        self._leaves_cache: Optional[List[Self]] = None

    def __repr__(self) -> str:
        return f"Node('{self.name}')"

    def __str__(self) -> str:
        return self.to_newick()

    # ------------------------------------------------------------------------
    # Edge annotations
    # ------------------------------------------------------------------------
    @property
    def support(self) -> Optional[float]:
        """Support value of the edge above this node, if any."""
        value = self.values.get("support")
        return None if value is None else float(value)

    @support.setter
    def support(self, value: Optional[float]) -> None:
        if value is None:
            self.values.pop("support", None)
        else:
            self.values["support"] = float(value)

    @property
    def branch_length(self) -> float:
        """Length of the edge above this node, with unset or NaN read as 0."""
        if self.length is None or math.isnan(self.length):
            return 0.0
        return self.length

    # ------------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------------
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def is_root(self) -> bool:
        return self.parent is None

    def traverse(self) -> List[Self]:
        """
        Return a list of all nodes in the subtree rooted at this node (pre-order).
        Uses an iterative stack to avoid recursion depth issues.
        """
        if self._traverse_cache is not None:
            return self._traverse_cache

        nodes: List[Self] = []
        stack: List[Self] = [self]
        while stack:
            current = stack.pop()
            nodes.append(current)
            for child in reversed(current.children):
                stack.append(child)

        self._traverse_cache = nodes
        return nodes

    def postorder(self) -> Iterator[Self]:
        return reversed(self.traverse())

    def get_leaves(self) -> List[Self]:
        """Return all leaf nodes in the subtree rooted at this node."""
        if self._leaves_cache is None:
            self._leaves_cache = [nd for nd in self.traverse() if not nd.children]
        return self._leaves_cache

    @property
    def leaves(self) -> List[Self]:
        return self.get_leaves()

    def get_current_order(self) -> Tuple[str, ...]:
        """Return the leaf names in their current left-to-right order."""
        return tuple(leaf.name for leaf in self.get_leaves())

    def leaf_set(self) -> FrozenSet[str]:
        """Return the taxa at the leaves of this (sub)tree."""
        return frozenset(self.get_current_order())

    def find_leaf(self, name: str) -> Optional[Self]:
        for leaf in self.get_leaves():
            if leaf.name == name:
                return leaf
        return None

    def distance_to_root(self) -> float:
        """Sum of branch lengths from this node up to the root."""
        total = 0.0
        cur = self
        while cur.parent is not None:
            total += cur.branch_length
            cur = cur.parent
        return total

    def total_length(self) -> float:
        return sum(nd.branch_length for nd in self.traverse() if nd is not self)

    # ------------------------------------------------------------------------
    # Splits
    # ------------------------------------------------------------------------
    def default_encoding(self) -> Dict[str, int]:
        """Encoding that numbers the taxa in sorted name order."""
        return {name: idx for idx, name in enumerate(sorted(self.leaf_set()))}

    def initialize_split_indices(self, encoding: Optional[Dict[str, int]] = None) -> None:
        """
        Assign every node the Partition of leaves below it.

        Args:
            encoding: Mapping from taxon name to index. Defaults to sorted leaf names.

        Raises:
            ValueError: If a leaf name is missing from the encoding.
        """
        if encoding is None:
            encoding = self.default_encoding()
        for nd in self.postorder():
            nd.taxa_encoding = encoding
            if not nd.children:
                if nd.name not in encoding:
                    raise ValueError(f"Leaf '{nd.name}' is not part of the encoding")
                nd.split_indices = Partition.from_bitmask(1 << encoding[nd.name], encoding)
            else:
                combined_mask = 0
                for ch in nd.children:
                    combined_mask |= ch.split_indices.bitmask
                nd.split_indices = Partition.from_bitmask(combined_mask, encoding)
        self.invalidate_caches(propagate_up=False, propagate_down=True)

    def _resolve_encoding(self, encoding: Optional[Dict[str, int]]) -> Dict[str, int]:
        if encoding is not None:
            return encoding
        if self.taxa_encoding and set(self.taxa_encoding) == self.leaf_set():
            return self.taxa_encoding
        return self.default_encoding()

    def _edge_masks(self, encoding: Dict[str, int]) -> List[Tuple[Self, int]]:
        """Pair every non-root node with the bitmask of leaves below it."""
        masks: Dict[int, int] = {}
        result: List[Tuple[Self, int]] = []
        for nd in self.postorder():
            if not nd.children:
                try:
                    mask = 1 << encoding[nd.name]
                except KeyError:
                    raise ValueError(f"Leaf '{nd.name}' is not part of the encoding")
            else:
                mask = 0
                for ch in nd.children:
                    mask |= masks[id(ch)]
            masks[id(nd)] = mask
            if nd is not self:
                result.append((nd, mask))
        return result

    def iter_edge_bipartitions(
        self, encoding: Optional[Dict[str, int]] = None
    ) -> Iterator[Tuple[Self, Partition]]:
        """
        Yield (node, bipartition) for every edge, the edge being the one above node.

        Bipartitions are in canonical form, so both root edges of a bifurcating
        root yield the same value.
        """
        encoding = self._resolve_encoding(encoding)
        for nd, mask in self._edge_masks(encoding):
            yield nd, Partition.from_bitmask(mask, encoding).canonical()

    def to_bipartitions(
        self, encoding: Optional[Dict[str, int]] = None
    ) -> PartitionSet[Partition]:
        """
        Return the non-trivial bipartitions of the unrooted tree.

        Args:
            encoding: Taxon encoding shared with the trees this one is compared to.
        """
        encoding = self._resolve_encoding(encoding)
        bipartitions: PartitionSet[Partition] = PartitionSet(
            encoding=encoding, name="bipartitions"
        )
        for _, split in self.iter_edge_bipartitions(encoding):
            if split and not split.is_trivial():
                bipartitions.add(split)
        return bipartitions

    def to_weighted_bipartitions(
        self, encoding: Optional[Dict[str, int]] = None
    ) -> Dict[Partition, float]:
        """Map every bipartition (trivial ones included) to its branch length."""
        weights: Dict[Partition, float] = {}
        for nd, split in self.iter_edge_bipartitions(encoding):
            if split:
                weights[split] = weights.get(split, 0.0) + nd.branch_length
        return weights

    # ------------------------------------------------------------------------
    # Copying and pruning
    # ------------------------------------------------------------------------
    def deep_copy(self) -> Self:
        new_node = object.__new__(type(self))
        new_node.name = self.name
        new_node.length = self.length
        new_node.values = dict(self.values)
        new_node.split_indices = self.split_indices
        new_node.taxa_encoding = self.taxa_encoding
        new_node.rooted = self.rooted
        new_node.parent = None
        new_node._traverse_cache = None
        new_node._leaves_cache = None
        new_node.children = [child.deep_copy() for child in self.children]
        for child in new_node.children:
            child.parent = new_node
        return new_node

    def prune_to_taxa(self, taxa: Iterable[str]) -> Self:
        """
        Return a copy restricted to the given taxa.

        Internal nodes left with a single child are suppressed and their branch
        lengths are merged into the surviving child.

        Raises:
            EmptyTreeError: If none of the taxa are in this tree.
        """
        keep = set(taxa)
        pruned = self.deep_copy()
        # post-order, so emptied subtrees are dropped by their parents
        for nd in list(pruned.postorder()):
            nd.children = [
                ch for ch in nd.children if ch.children or ch.name in keep
            ]
        pruned.invalidate_caches(propagate_up=False, propagate_down=True)
        if not pruned.leaf_set() & keep:
            raise EmptyTreeError("None of the requested taxa are present in the tree")
        pruned = pruned.suppress_unifurcations()
        pruned.initialize_split_indices()
        return pruned

    def suppress_unifurcations(self) -> Self:
        """
        Remove internal nodes with exactly one child, summing branch lengths.

        Returns the (possibly new) root; the root keeps its rooting state.
        """
        root = self
        while len(root.children) == 1:
            only_child = root.children[0]
            only_child.parent = None
            only_child.length = None
            only_child.rooted = root.rooted
            root = only_child

        stack: List[Self] = [root]
        while stack:
            nd = stack.pop()
            new_children: List[Self] = []
            for ch in nd.children:
                while len(ch.children) == 1:
                    grandchild = ch.children[0]
                    if ch.length is not None or grandchild.length is not None:
                        grandchild.length = ch.branch_length + grandchild.branch_length
                    ch = grandchild
                ch.parent = nd
                new_children.append(ch)
            nd.children = new_children
            stack.extend(new_children)
        root.invalidate_caches(propagate_up=False, propagate_down=True)
        return root

    # ------------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------------
    def to_newick(
        self,
        lengths: bool = True,
        support_as_label: bool = False,
        precision: int = NEWICK_PRECISION,
    ) -> str:
        """
        Encode the subtree as a Newick string.

        Args:
            lengths: Write branch lengths (unset and NaN lengths are omitted).
            support_as_label: Write support values as internal node labels
                instead of ``[support=...]`` comments.
            precision: Significant digits for numbers.

        A root whose ``rooted`` flag disagrees with its shape (two children
        read as rooted, more as unrooted) is prefixed with ``[&R]`` or ``[&U]``.
        """
        prefix = ""
        if self.parent is None and self.children and self.rooted != (len(self.children) == 2):
            prefix = f"[{ROOTED_COMMENT if self.rooted else UNROOTED_COMMENT}]"
        return prefix + self._to_newick(lengths, support_as_label, precision) + ";"

    def _to_newick(self, lengths: bool, support_as_label: bool, precision: int) -> str:
        label = quote_label(self.name or "")
        values = dict(self.values)
        if support_as_label and self.children and "support" in values and not label:
            label = format_number(values.pop("support"), precision)

        meta = ""
        if values:
            meta = "[" + ",".join(
                f"{k}={format_value(v, precision)}" for k, v in values.items()
            ) + "]"

        length_str = ""
        if lengths and self.length is not None and not math.isnan(self.length):
            length_str = ":" + format_number(self.length, precision)

        if self.children:
            child_str = ",".join(
                ch._to_newick(lengths, support_as_label, precision) for ch in self.children
            )
            return f"({child_str}){label}{meta}{length_str}"
        return f"{label}{meta}{length_str}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "length": self.length,
            "values": dict(self.values),
            "children": [child.to_dict() for child in self.children],
        }

    # ------------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------------
    def invalidate_caches(
        self, propagate_up: bool = True, propagate_down: bool = False
    ) -> None:
        """
        Invalidate the traversal and leaf caches after a structural change.
        """
        self._traverse_cache = None
        self._leaves_cache = None

        if propagate_down:
            for child in self.children:
                child.invalidate_caches(propagate_up=False, propagate_down=True)

        if propagate_up and self.parent is not None:
            self.parent.invalidate_caches(propagate_up=True, propagate_down=False)


def leaf_set(tree: Node) -> FrozenSet[str]:
    """Return the set of taxa at the leaves of a tree."""
    return tree.leaf_set()
