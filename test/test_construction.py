from io import StringIO

import numpy as np
import pytest
from Bio import Phylo
from hypothesis import given, settings, strategies as st
from Bio.Phylo.TreeConstruction import DistanceMatrix as BioDistanceMatrix
from Bio.Phylo.TreeConstruction import DistanceTreeConstructor

from phylosmith.construction import neighbor_join, upgma
from phylosmith.construction.matrix_utils import closest_pair, reduce_matrix
from phylosmith.distances import DistanceMatrix, robinson_foulds_distance
from phylosmith.exceptions import DegenerateTreeError
from phylosmith.parser import parse_newick
from phylosmith.rooting import path_between

FOUR_TAXA = DistanceMatrix(
    ["A", "B", "C", "D"],
    [
        [0, 2, 4, 4],
        [2, 0, 4, 4],
        [4, 4, 0, 2],
        [4, 4, 2, 0],
    ],
)

REFERENCE_TREE = "((A:1,B:2):1.5,(C:0.5,D:3):0.7,(E:1.2,F:0.8):2.1);"


def patristic_matrix(newick: str) -> DistanceMatrix:
    """Leaf-to-leaf path lengths of a tree; an additive matrix."""
    tree = parse_newick(newick)
    leaves = tree.get_leaves()
    values = [
        [sum(weight for _, weight in path_between(a, b)) for b in leaves] for a in leaves
    ]
    return DistanceMatrix([leaf.name for leaf in leaves], values)


def test_closest_pair_breaks_ties_row_major():
    criterion = np.array([[0, 1, 1], [1, 0, 1], [1, 1, 0]], dtype=float)
    assert closest_pair(criterion) == (0, 1)


def test_reduce_matrix_appends_merged_node():
    matrix = np.array([[0, 1, 2], [1, 0, 3], [2, 3, 0]], dtype=float)
    reduced = reduce_matrix(matrix, 0, 1, np.array([7.0]))
    np.testing.assert_array_equal(reduced, [[0, 7], [7, 0]])


def test_neighbor_join_four_taxa():
    tree = neighbor_join(FOUR_TAXA)
    assert tree.to_newick() == "(C:1,D:1,(A:1,B:1):2);"
    assert not tree.rooted
    assert tree.leaf_set() == {"A", "B", "C", "D"}
    assert tree.to_bipartitions().list_taxa_name == [("C", "D")]


def test_neighbor_join_is_deterministic():
    dm = patristic_matrix(REFERENCE_TREE)
    assert neighbor_join(dm).to_newick() == neighbor_join(dm).to_newick()


def test_neighbor_join_recovers_additive_tree():
    dm = patristic_matrix(REFERENCE_TREE)
    tree = neighbor_join(dm)
    reference = parse_newick(REFERENCE_TREE)
    assert robinson_foulds_distance(tree, reference) == 0
    assert tree.total_length() == pytest.approx(reference.total_length())
    for leaf in reference.get_leaves():
        assert tree.find_leaf(leaf.name).length == pytest.approx(leaf.length)


def test_neighbor_join_matches_biopython():
    dm = patristic_matrix(REFERENCE_TREE)
    bio_dm = BioDistanceMatrix(list(dm.labels), dm.to_lower_triangle())
    bio_tree = DistanceTreeConstructor().nj(bio_dm)
    handle = StringIO()
    Phylo.write(bio_tree, handle, "newick")
    bio_newick = handle.getvalue()

    assert robinson_foulds_distance(neighbor_join(dm), parse_newick(bio_newick)) == 0


def test_neighbor_join_clamps_negative_lengths():
    dm = DistanceMatrix(["A", "B", "C"], [[0, 10, 1], [10, 0, 1], [1, 1, 0]])
    tree = neighbor_join(dm)
    lengths = {leaf.name: leaf.length for leaf in tree.get_leaves()}
    assert lengths == {"A": 5.0, "B": 5.0, "C": 0.0}


def test_neighbor_join_two_taxa():
    tree = neighbor_join(DistanceMatrix(["A", "B"], [[0, 1], [1, 0]]))
    assert tree.to_newick() == "[&U](A:0.5,B:0.5);"
    assert not parse_newick(tree.to_newick()).rooted


@pytest.mark.parametrize("builder", [neighbor_join, upgma])
def test_single_taxon_is_degenerate(builder):
    with pytest.raises(DegenerateTreeError):
        builder(DistanceMatrix(["A"], [[0]]))


def test_upgma_four_taxa():
    tree = upgma(FOUR_TAXA)
    assert tree.to_newick() == "((A:1,B:1):1,(C:1,D:1):1);"
    assert tree.rooted


def test_upgma_is_ultrametric(six_taxon_fasta):
    from phylosmith.distances import compute_distances
    from phylosmith.io import read_alignment

    dm = compute_distances(read_alignment(six_taxon_fasta))
    tree = upgma(dm)
    heights = [leaf.distance_to_root() for leaf in tree.get_leaves()]
    assert heights == pytest.approx([heights[0]] * len(heights))
    assert tree.leaf_set() == set(dm.labels)
    assert all(nd.length >= 0 for nd in tree.traverse() if nd is not tree)


def test_upgma_uses_average_linkage():
    dm = DistanceMatrix(
        ["A", "B", "C"],
        [[0, 2, 6], [2, 0, 8], [6, 8, 0]],
    )
    tree = upgma(dm)
    # C joins the (A,B) cluster at (6 + 8) / 2 / 2
    assert tree.find_leaf("C").length == pytest.approx(3.5)
    assert tree.find_leaf("A").length == pytest.approx(1.0)


@st.composite
def random_matrices(draw):
    n = draw(st.integers(min_value=2, max_value=9))
    values = np.zeros((n, n))
    for i in range(n):
        for j in range(i + 1, n):
            values[i, j] = values[j, i] = draw(
                st.floats(min_value=0.0, max_value=5.0, allow_nan=False, allow_infinity=False)
            )
    return DistanceMatrix([f"s{i}" for i in range(n)], values)


@pytest.mark.parametrize("builder", [neighbor_join, upgma])
@given(dm=random_matrices())
@settings(max_examples=50, deadline=None)
def test_builders_keep_every_label(builder, dm):
    tree = builder(dm)
    assert tree.leaf_set() == frozenset(dm.labels)
    assert len(tree.get_leaves()) == len(dm.labels)
    assert all(nd.length is not None and nd.length >= 0.0 for nd in tree.traverse() if nd is not tree)
