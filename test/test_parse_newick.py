import pytest
from hypothesis import given, settings, strategies as st

from phylosmith.exceptions import MalformedNewickError
from phylosmith.parser import parse_newick
from phylosmith.tree import Node


def get_child(node: Node, *path: int) -> Node:
    for index in path:
        node = node.children[index]
    return node


def test_parse_newick_topology():
    root = parse_newick("(A,B,(C,D));")
    assert len(root.children) == 3
    assert len(root.children[2].children) == 2
    assert get_child(root, 0).name == "A"
    assert get_child(root, 1).name == "B"
    assert get_child(root, 2, 0).name == "C"
    assert get_child(root, 2, 1).name == "D"


def test_parse_newick_lengths():
    root = parse_newick("(A:0.1,B:0.2,(C:0.3,D:0.4):0.5);")
    assert get_child(root, 0).length == 0.1
    assert get_child(root, 1).length == 0.2
    assert get_child(root, 2, 0).length == 0.3
    assert get_child(root, 2, 1).length == 0.4
    assert get_child(root, 2).length == 0.5
    assert root.length is None


def test_parse_newick_internal_names():
    root = parse_newick("(A,B,(C,D)E)F;")
    assert get_child(root, 2).name == "E"
    assert root.name == "F"


def test_numeric_internal_labels_become_support():
    root = parse_newick("(A:1,B:1,(C:1,D:1)87:0.5);")
    inner = get_child(root, 2)
    assert inner.name == ""
    assert inner.support == 87.0


def test_numeric_internal_labels_kept_on_request():
    root = parse_newick("(A:1,B:1,(C:1,D:1)87:0.5);", internal_labels_as_support=False)
    assert get_child(root, 2).name == "87"
    assert get_child(root, 2).support is None


def test_nhx_metadata():
    root = parse_newick("(A:1,B:1,(C:1,D:1)[&&NHX:support=0.9:color=red]:0.5);")
    inner = get_child(root, 2)
    assert inner.values == {"support": 0.9, "color": "red"}


def test_whitespace_and_newlines_are_ignored():
    root = parse_newick("(A : 1,\n B:2 ,\t(C:3, D:4) : 5 ) ;\n")
    assert root.get_current_order() == ("A", "B", "C", "D")
    assert get_child(root, 2).length == 5.0


def test_multiple_trees():
    trees = parse_newick("(A,B,(C,D));\n((A,C),B,D);")
    assert isinstance(trees, list)
    assert len(trees) == 2
    single = parse_newick("(A,B,(C,D));", force_list=True)
    assert isinstance(single, list) and len(single) == 1


def test_rooting_state():
    assert parse_newick("((A,B),(C,D));").rooted
    assert not parse_newick("(A,B,(C,D));").rooted
    assert parse_newick("[&R](A,B,(C,D));").rooted
    assert not parse_newick("[&U]((A,B),(C,D));").rooted


def test_shared_encoding():
    encoding = {"D": 0, "C": 1, "B": 2, "A": 3}
    tree = parse_newick("((A,B),(C,D));", encoding=encoding)
    assert tree.taxa_encoding is encoding
    assert tree.find_leaf("D").split_indices.indices == (0,)


@pytest.mark.parametrize(
    "newick",
    [
        "((A,B),C;",  # unclosed parenthesis
        "(A,B));",  # extra closing parenthesis
        "(A,B),C;",  # comma outside parentheses
        "(A,B)",  # missing semicolon
        "(A,A);",  # duplicate leaf
        "(A,,B);",  # unlabelled leaf
        "(A:x,B);",  # invalid length
        "(A:,B);",  # empty length
        "",  # empty input
        "   ",  # blank input
        "(A,B)(C,D);",  # two groups for one node
        "(A[support=1,B);",  # unterminated comment
        "('A,B);",  # unterminated quote
        "(A,B)];",  # stray bracket
    ],
)
def test_malformed_newick(newick):
    with pytest.raises(MalformedNewickError):
        parse_newick(newick)


def test_malformed_newick_reports_position():
    with pytest.raises(MalformedNewickError) as excinfo:
        parse_newick("(A,B));")
    assert excinfo.value.position == 5
    assert "character 5" in str(excinfo.value)


# =============================================================================
# Round-trip law: decode(encode(T)) reproduces topology and branch lengths
# =============================================================================


@st.composite
def random_trees(draw):
    n_leaves = draw(st.integers(min_value=2, max_value=12))
    lengths = st.floats(min_value=0.0, max_value=100.0, allow_nan=False, allow_infinity=False)
    nodes = [Node(name=f"t{i}", length=draw(lengths)) for i in range(n_leaves)]
    while len(nodes) > 1:
        size = draw(st.integers(min_value=2, max_value=min(3, len(nodes))))
        start = draw(st.integers(min_value=0, max_value=len(nodes) - size))
        group = nodes[start : start + size]
        parent = Node(children=group, length=draw(lengths))
        if draw(st.booleans()):
            parent.support = draw(st.integers(min_value=0, max_value=100))
        nodes[start : start + size] = [parent]
    root = nodes[0]
    root.length = None
    root.support = None
    root.rooted = draw(st.booleans())
    return root


def _signature(node: Node):
    """Nested structure of names, lengths rounded to 6 significant digits, support."""
    length = None if node.length is None else float(f"{node.length:.6g}")
    if not node.children:
        return (node.name, length)
    return (tuple(_signature(ch) for ch in node.children), length, node.support)


@given(random_trees())
@settings(max_examples=100, deadline=None)
def test_newick_round_trip(tree):
    decoded = parse_newick(tree.to_newick())
    assert _signature(decoded) == _signature(tree)
    assert decoded.rooted == tree.rooted
    assert decoded.to_newick() == tree.to_newick()


def test_rooting_comment_written_when_shape_misleads():
    two_taxa = parse_newick("[&U](A:1,B:1);")
    assert two_taxa.to_newick() == "[&U](A:1,B:1);"
    assert not parse_newick(two_taxa.to_newick()).rooted

    polytomy = parse_newick("[&R](A,B,C);")
    assert polytomy.to_newick() == "[&R](A,B,C);"
    assert parse_newick(polytomy.to_newick()).rooted

    # shapes that are read correctly need no comment
    assert parse_newick("((A,B),C);").to_newick() == "((A,B),C);"
    assert parse_newick("(A,B,C);").to_newick() == "(A,B,C);"


def test_string_annotations_survive_round_trip():
    tree = parse_newick("(A,B,(C,D));")
    inner = get_child(tree, 2)
    inner.values["note"] = "x y"
    inner.values["label"] = "a,b]c"
    inner.values["flag"] = True
    decoded = get_child(parse_newick(tree.to_newick()), 2)
    assert decoded.values == {"note": "x y", "label": "a,b]c", "flag": True}


def test_unquoted_comment_values_with_apostrophes():
    root = parse_newick("(A,B,(C,D)[&&NHX:who=O'Brien]);")
    assert get_child(root, 2).values == {"who": "O'Brien"}
