import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st

from phylosmith.alignment import Alignment, SequenceType
from phylosmith.distances import DistanceMatrix, compute_distances
from phylosmith.exceptions import DistanceMatrixError


@pytest.fixture
def dm() -> DistanceMatrix:
    return DistanceMatrix(
        ["A", "B", "C"],
        [[0.0, 1.0, 2.0], [1.0, 0.0, 3.0], [2.0, 3.0, 0.0]],
    )


def test_lookup_by_label_and_index(dm):
    assert dm["A", "C"] == 2.0
    assert dm["C", "A"] == 2.0
    assert dm[1, 2] == 3.0
    assert dm[np.int64(0), "B"] == 1.0
    assert dm.index("C") == 2
    assert list(dm) == ["A", "B", "C"]
    assert "B" in dm and "Z" not in dm


def test_unknown_label(dm):
    with pytest.raises(KeyError):
        dm["A", "Z"]
    with pytest.raises(IndexError):
        dm[0, 5]


def test_values_are_read_only(dm):
    with pytest.raises(ValueError):
        dm.values[0, 1] = 5.0


def test_tiny_asymmetry_is_symmetrised():
    dm = DistanceMatrix(["A", "B"], [[0.0, 1.0], [1.0 + 1e-12, 0.0]])
    assert dm.values[0, 1] == dm.values[1, 0]


@pytest.mark.parametrize(
    "labels, values",
    [
        ([], []),
        (["A", "A"], [[0, 1], [1, 0]]),
        (["A", "B"], [[0, 1, 2], [1, 0, 2]]),
        (["A", "B"], [[0, 1], [2, 0]]),
        (["A", "B"], [[1, 1], [1, 0]]),
        (["A", "B"], [[0, -1], [-1, 0]]),
        (["A", "B"], [[0, np.nan], [np.nan, 0]]),
        (["A", "B"], [[0, np.inf], [np.inf, 0]]),
    ],
    ids=[
        "no-labels",
        "duplicate-labels",
        "not-square",
        "asymmetric",
        "non-zero-diagonal",
        "negative",
        "nan",
        "infinite",
    ],
)
def test_invalid_matrices(labels, values):
    with pytest.raises(DistanceMatrixError):
        DistanceMatrix(labels, values)


def test_subset_reorders(dm):
    sub = dm.subset(["C", "A"])
    assert sub.labels == ("C", "A")
    assert sub["C", "A"] == 2.0
    assert sub.values.shape == (2, 2)


def test_dataframe_round_trip(dm):
    frame = dm.to_dataframe()
    assert list(frame.index) == ["A", "B", "C"]
    assert frame.loc["B", "C"] == 3.0
    assert DistanceMatrix.from_dataframe(frame) == dm


def test_from_dataframe_with_mismatched_labels():
    frame = pd.DataFrame([[0, 1], [1, 0]], index=["A", "B"], columns=["A", "C"])
    with pytest.raises(DistanceMatrixError):
        DistanceMatrix.from_dataframe(frame)


def test_lower_triangle(dm):
    assert dm.to_lower_triangle() == [[0.0], [1.0, 0.0], [2.0, 3.0, 0.0]]


# =============================================================================
# Invariants of matrices computed from random alignments
# =============================================================================


@st.composite
def random_alignments(draw):
    n_taxa = draw(st.integers(min_value=2, max_value=6))
    width = draw(st.integers(min_value=1, max_value=30))
    rows = []
    for i in range(n_taxa):
        # the first column is never a gap, so every pair stays comparable
        first = draw(st.sampled_from("ACGT"))
        rest = draw(st.text(alphabet="ACGT-N", min_size=width - 1, max_size=width - 1))
        rows.append((f"taxon{i}", first + rest))
    return Alignment(rows, sequence_type=SequenceType.NUCLEOTIDE)


@given(
    random_alignments(),
    st.sampled_from(["F81", "JC69"]),
    st.sampled_from(["pairwise", "global"]),
)
@settings(max_examples=60, deadline=None)
def test_computed_matrix_is_symmetric_with_zero_diagonal(aln, model, exclude):
    dm = compute_distances(aln, model=model, exclude=exclude, max_distance=10.0)
    assert dm.labels == aln.taxa
    np.testing.assert_array_equal(dm.values, dm.values.T)
    assert np.all(np.diag(dm.values) == 0.0)
    assert np.all((dm.values >= 0.0) & (dm.values <= 10.0))
    for taxon in aln.taxa:
        assert dm[taxon, taxon] == 0.0
