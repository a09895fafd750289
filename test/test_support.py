import pytest

from phylosmith.alignment import Alignment
from phylosmith.consensus import (
    add_support_values,
    bootstrap_support,
    bootstrap_trees,
    collect_count_of_splits,
    split_frequencies,
)
from phylosmith.elements.partition import Partition
from phylosmith.exceptions import LeafSetMismatchError
from phylosmith.parser import parse_newick
from phylosmith.tree import Node


def clade_support(tree: Node, *taxa: str):
    for nd in tree.traverse():
        if nd.children and nd.leaf_set() == set(taxa):
            return nd.support
    raise AssertionError(f"No clade {taxa}")


REPLICATES = [
    "((A,B),C,(D,E));",
    "((A,B),D,(C,E));",
    "((A,C),B,(D,E));",
    "((A,B),C,(D,E));",
]


def test_collect_count_of_splits():
    counts = collect_count_of_splits([parse_newick(t) for t in REPLICATES])
    encoding = {"A": 0, "B": 1, "C": 2, "D": 3, "E": 4}
    ab = Partition.from_taxa({"C", "D", "E"}, encoding)
    de = Partition.from_taxa({"D", "E"}, encoding)
    assert counts[ab] == {"count": 3, "occurrence": 0.75}
    assert counts[de] == {"count": 3, "occurrence": 0.75}


def test_split_frequencies_need_one_leaf_set():
    with pytest.raises(LeafSetMismatchError):
        split_frequencies([parse_newick("(A,B,(C,D));"), parse_newick("(A,B,(C,E));")])


def test_add_support_from_replicates():
    tree = parse_newick("((A:1,B:1):1,C:1,(D:1,E:1):1);")
    replicates = [parse_newick(t) for t in REPLICATES]
    result = add_support_values(tree, replicates=replicates)
    assert result is tree
    assert clade_support(tree, "A", "B") == 75.0
    assert clade_support(tree, "D", "E") == 75.0
    assert all(leaf.support is None for leaf in tree.get_leaves())
    assert "(A:1,B:1)[support=75]:1" in tree.to_newick()


def test_add_support_as_fraction_and_label():
    tree = parse_newick("((A:1,B:1):1,C:1,(D:1,E:1):1);")
    add_support_values(tree, replicates=[parse_newick(t) for t in REPLICATES], as_percentage=False)
    assert clade_support(tree, "A", "B") == 0.75
    assert tree.to_newick(support_as_label=True) == "((A:1,B:1)0.75:1,C:1,(D:1,E:1)0.75:1);"


def test_add_support_from_frequencies():
    tree = parse_newick("((A,B),C,(D,E));")
    add_support_values(tree, frequencies={frozenset({"A", "B"}): 0.4})
    # a split given by either side is found
    assert clade_support(tree, "A", "B") == pytest.approx(40.0)
    assert clade_support(tree, "D", "E") == 0.0


def test_add_support_from_frequencies_under_another_encoding():
    encoding = {"E": 0, "D": 1, "C": 2, "B": 3, "A": 4}
    replicates = [parse_newick("((A,C),B,(D,E));") for _ in range(4)]
    frequencies = split_frequencies(replicates, encoding)
    tree = parse_newick("((A,C),B,(D,E));")
    add_support_values(tree, frequencies=frequencies)
    assert clade_support(tree, "A", "C") == 100.0
    assert clade_support(tree, "D", "E") == 100.0


def test_add_support_requires_one_source():
    tree = parse_newick("((A,B),C,(D,E));")
    with pytest.raises(ValueError):
        add_support_values(tree)
    with pytest.raises(ValueError):
        add_support_values(tree, replicates=[tree], frequencies={})


def test_add_support_rejects_other_taxa():
    tree = parse_newick("((A,B),C,(D,E));")
    with pytest.raises(LeafSetMismatchError):
        add_support_values(tree, replicates=[parse_newick("((A,B),C,(D,F));")])


def test_rooted_tree_root_edges_share_support():
    tree = parse_newick("((A,B),(C,(D,E)));")
    add_support_values(tree, replicates=[parse_newick(t) for t in REPLICATES])
    assert clade_support(tree, "A", "B") == 75.0
    # {C,D,E} is the other side of the same split
    assert clade_support(tree, "C", "D", "E") == 75.0


@pytest.fixture
def alignment() -> Alignment:
    return Alignment(
        [
            ("A", "ACGTACGTACGTACGTACGTACGTAC"),
            ("B", "ACGTACGTACGTACGTACGTACGTAA"),
            ("C", "ACGAACGTTCGTACCTACGTACGTAC"),
            ("D", "ACGAACGTTCGTACCTACGAACGTAA"),
            ("E", "TCGAACGTTCGAACCTACGAACCTAA"),
        ]
    )


def test_bootstrap_trees_are_reproducible(alignment):
    first = bootstrap_trees(alignment, replicates=5, seed=7, show_progress=False)
    second = bootstrap_trees(alignment, replicates=5, seed=7, show_progress=False)
    assert len(first) == 5
    assert [t.to_newick() for t in first] == [t.to_newick() for t in second]
    assert all(t.leaf_set() == {"A", "B", "C", "D", "E"} for t in first)


def test_bootstrap_trees_do_not_depend_on_workers(alignment):
    serial = bootstrap_trees(alignment, replicates=4, method="upgma", seed=3, show_progress=False)
    parallel = bootstrap_trees(
        alignment, replicates=4, method="upgma", seed=3, workers=2, show_progress=False
    )
    assert [t.to_newick() for t in serial] == [t.to_newick() for t in parallel]


def test_bootstrap_trees_validates_arguments(alignment):
    with pytest.raises(ValueError):
        bootstrap_trees(alignment, method="parsimony")
    with pytest.raises(ValueError):
        bootstrap_trees(alignment, replicates=0)


def test_bootstrap_support_works_on_a_copy(alignment):
    tree = parse_newick("((A,B),C,(D,E));")
    replicates = bootstrap_trees(alignment, replicates=10, seed=1, show_progress=False)
    annotated = bootstrap_support(tree, replicates)
    assert annotated is not tree
    assert all(nd.support is None for nd in tree.traverse())
    supports = [nd.support for nd in annotated.traverse() if nd.children and nd is not annotated]
    assert all(0.0 <= s <= 100.0 for s in supports)
