"""
Core rerooting implementation for phylogenetic trees.

This module provides:
- Rerooting at an existing node (edge data moves with the flipped edges)
- Leaf-to-leaf paths and the tree diameter
- Midpoint rooting
"""

import logging
from collections import deque
from typing import Any, Dict, List, Optional, Tuple

from phylosmith.exceptions import EmptyTreeError
from phylosmith.tree import Node

logger = logging.getLogger(__name__)

# Distances closer than this to an existing node snap to it
MIDPOINT_TOLERANCE = 1e-9

EdgeData = Tuple[Optional[float], Optional[Any]]

# =============================================================================
# HELPER FUNCTIONS FOR TREE STRUCTURE MANIPULATION
# =============================================================================


def _collect_path_to_root(start_node: Node) -> List[Node]:
    """
    Collect all nodes from start_node up to the current root.

    Returns:
        List of nodes from start_node to root (inclusive)
    """
    path: List[Node] = []
    node: Optional[Node] = start_node
    while node is not None:
        path.append(node)
        node = node.parent
    return path


def _edge_data(node: Node) -> EdgeData:
    return node.length, node.values.get("support")


def _set_edge_data(node: Node, data: EdgeData) -> None:
    node.length, support = data
    if support is None:
        node.values.pop("support", None)
    else:
        node.values["support"] = support


def _suppress_unary(node: Node) -> None:
    """Splice out a non-root node left with a single child, merging the two edges."""
    parent = node.parent
    if parent is None or len(node.children) != 1:
        return
    child = node.children[0]
    if node.length is not None or child.length is not None:
        child.length = node.branch_length + child.branch_length
    if child.support is None and node.support is not None:
        child.support = node.support
    parent.children = [child if c is node else c for c in parent.children]
    child.parent = parent
    node.parent = None
    node.children = []


def _flip_upward(node: Node) -> Node:
    """
    Flip the tree structure upward from the given node to make it the new root.

    Parent-child relationships along the path to the current root are
    reversed. Each edge keeps its length and support value, which are moved
    to whichever node is the child end of the edge afterwards.

    Returns:
        The new root node (same as input node)
    """
    if node.parent is None:
        return node

    path: List[Node] = _collect_path_to_root(node)
    old_root = path[-1]
    # edge data is read before any flip overwrites it
    edges: List[EdgeData] = [_edge_data(nd) for nd in path]

    for i in range(len(path) - 1):
        child_node = path[i]
        parent_node = path[i + 1]
        parent_node.children = [c for c in parent_node.children if c is not child_node]
        child_node.children.append(parent_node)
        parent_node.parent = child_node
        _set_edge_data(parent_node, edges[i])

    node.parent = None
    _set_edge_data(node, (None, None))
    node.rooted = old_root.rooted
    old_root.rooted = False
    _suppress_unary(old_root)
    node.invalidate_caches(propagate_up=False, propagate_down=True)
    return node


# =============================================================================
# CORE REROOTING OPERATIONS
# =============================================================================


def reroot_at_node(node: Node) -> Node:
    """
    Reroot the tree at the specified node, in place.

    A former root that is left with a single child is suppressed.

    Args:
        node: The node to reroot at

    Returns:
        The new root node
    """
    root = _flip_upward(node)
    root.initialize_split_indices(root.taxa_encoding or None)
    return root


# =============================================================================
# PATHS AND DIAMETER
# =============================================================================


def _get_node_neighbors_with_distances(node: Node) -> List[Tuple[Node, float]]:
    """
    Get all neighboring nodes with their edge distances.
    """
    neighbors: List[Tuple[Node, float]] = []
    if node.parent is not None:
        neighbors.append((node.parent, node.branch_length))
    for child in node.children:
        neighbors.append((child, child.branch_length))
    return neighbors


def _distances_from(start_node: Node) -> Dict[int, float]:
    """Distance from start_node to every node, keyed by node id."""
    distances: Dict[int, float] = {id(start_node): 0.0}
    queue = deque([start_node])
    while queue:
        current = queue.popleft()
        for neighbor, edge_distance in _get_node_neighbors_with_distances(current):
            if id(neighbor) not in distances:
                distances[id(neighbor)] = distances[id(current)] + edge_distance
                queue.append(neighbor)
    return distances


def find_farthest_leaves(root: Node) -> Tuple[Node, Node, float]:
    """
    Find the two leaves that are farthest apart in the tree.

    Every pair of leaves is considered; ties go to the first pair in leaf order.

    Args:
        root: Root of the tree

    Returns:
        Tuple of (leaf1, leaf2, distance_between_them)

    Raises:
        EmptyTreeError: If the tree has fewer than two leaves.
    """
    leaves: List[Node] = root.get_leaves()
    if len(leaves) < 2:
        raise EmptyTreeError("Tree must have at least 2 leaves for midpoint rooting")

    max_distance = -1.0
    farthest_pair = (leaves[0], leaves[1])
    for i in range(len(leaves) - 1):
        distances = _distances_from(leaves[i])
        for j in range(i + 1, len(leaves)):
            distance = distances[id(leaves[j])]
            if distance > max_distance:
                max_distance = distance
                farthest_pair = (leaves[i], leaves[j])

    return farthest_pair[0], farthest_pair[1], max_distance


def path_between(node1: Node, node2: Node) -> List[Tuple[Node, float]]:
    """
    Find the path between two nodes in the tree.

    Returns:
        List of (node, edge_weight) tuples representing the path. The first
        tuple has edge_weight=0 for the starting node; every later weight is
        the length of the edge from the previous node.
    """
    ancestors1 = _collect_path_to_root(node1)
    ancestors2 = _collect_path_to_root(node2)
    on_path2 = {id(nd) for nd in ancestors2}
    lca = next(nd for nd in ancestors1 if id(nd) in on_path2)

    result: List[Tuple[Node, float]] = [(node1, 0.0)]
    current = node1
    while current is not lca:
        weight = current.branch_length
        current = current.parent  # type: ignore[assignment]
        result.append((current, weight))

    down_path: List[Node] = []
    current = node2
    while current is not lca:
        down_path.append(current)
        current = current.parent  # type: ignore[assignment]
    for nd in reversed(down_path):
        result.append((nd, nd.branch_length))

    return result


# =============================================================================
# MIDPOINT ROOTING
# =============================================================================


def _insert_node_on_edge(upper: Node, lower: Node, distance_from_lower: float) -> Node:
    """Split the edge upper-lower with a new node ``distance_from_lower`` above lower."""
    new_node = Node()
    total = lower.branch_length
    new_node.length = max(total - distance_from_lower, 0.0)
    if lower.support is not None:
        new_node.support = lower.support
    lower.length = distance_from_lower
    upper.children = [new_node if c is lower else c for c in upper.children]
    new_node.parent = upper
    new_node.children = [lower]
    lower.parent = new_node
    return new_node


def _midpoint_node(leaf1: Node, leaf2: Node, total_distance: float) -> Node:
    """
    Return the node at the midpoint of the leaf1-leaf2 path, inserting one on
    the edge when the midpoint does not fall on an internal node.
    """
    target_distance = total_distance / 2.0
    path_edges = path_between(leaf1, leaf2)

    travelled = 0.0
    for k in range(1, len(path_edges)):
        previous = path_edges[k - 1][0]
        node, edge_weight = path_edges[k]
        if travelled + edge_weight < target_distance - MIDPOINT_TOLERANCE:
            travelled += edge_weight
            continue

        remainder = max(target_distance - travelled, 0.0)
        if remainder <= MIDPOINT_TOLERANCE and previous.children:
            return previous
        if edge_weight - remainder <= MIDPOINT_TOLERANCE and node.children:
            return node
        # the edge is stored on whichever end is the child
        if node.parent is previous:
            return _insert_node_on_edge(previous, node, edge_weight - remainder)
        return _insert_node_on_edge(node, previous, remainder)

    raise EmptyTreeError("Midpoint could not be located on the longest path")


def midpoint_root(tree: Node) -> Node:
    """
    Root a copy of the tree at the midpoint of its longest leaf-to-leaf path.

    If the midpoint falls within MIDPOINT_TOLERANCE of an internal node, that
    node becomes the root; otherwise a new node is inserted on the edge.
    Applying the function again yields the same topology, except that a
    midpoint lying exactly on an existing node is snapped to it.

    Args:
        tree: Root of the tree; it is not modified.

    Returns:
        The rerooted copy, with ``rooted`` set.

    Raises:
        EmptyTreeError: If the tree has fewer than two leaves.
    """
    work = tree.deep_copy()
    leaf1, leaf2, total_distance = find_farthest_leaves(work)
    logger.debug(
        "Midpoint rooting: diameter %.6g between %s and %s",
        total_distance,
        leaf1.name,
        leaf2.name,
    )

    midpoint = _midpoint_node(leaf1, leaf2, total_distance)
    root = _flip_upward(midpoint)
    root.rooted = True
    root.initialize_split_indices(tree.taxa_encoding or None)
    return root
