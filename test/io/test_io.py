import json

import numpy as np
import pytest

from phylosmith.alignment import SequenceType
from phylosmith.distances import DistanceMatrix
from phylosmith.exceptions import AlignmentError
from phylosmith.io import (
    TaxonRecord,
    load_alignment,
    read_alignment,
    read_distance_matrix,
    read_metadata,
    read_newick,
    write_distance_matrix,
    write_json,
    write_newick,
)
from phylosmith.parser import parse_newick

PHYLIP = """ 3 8
human   ACGTACGT
chimp   ACGTACGA
gorilla ACGAACGA
"""

NEXUS = """#NEXUS
begin data;
    dimensions ntax=3 nchar=8;
    format datatype=dna missing=? gap=-;
    matrix
    human   ACGTACGT
    chimp   ACGTACGA
    gorilla ACGAACGA
    ;
end;
"""


def test_read_fasta(four_taxon_fasta):
    aln = read_alignment(four_taxon_fasta)
    assert aln.taxa == ("A", "B", "C", "D")
    assert aln.width == 20
    assert aln.sequence_type is SequenceType.NUCLEOTIDE


@pytest.mark.parametrize(
    "content, expected_format",
    [(PHYLIP, "phylip-relaxed"), (NEXUS, "nexus")],
)
def test_alignment_format_detection(tmp_path, content, expected_format):
    path = tmp_path / "alignment.txt"
    path.write_text(content)
    records, detected = load_alignment(path)
    assert detected == expected_format
    assert [rec.id for rec in records] == ["human", "chimp", "gorilla"]


def test_alignment_format_hint(four_taxon_fasta):
    _, detected = load_alignment(four_taxon_fasta, "fasta")
    assert detected == "fasta"
    with pytest.raises(AlignmentError):
        load_alignment(four_taxon_fasta, "phylip")


def test_unreadable_alignment(tmp_path):
    path = tmp_path / "broken.txt"
    path.write_text("this is not an alignment\n")
    with pytest.raises(AlignmentError, match="Tried formats"):
        read_alignment(path)


def test_unequal_fasta_sequences(tmp_path):
    path = tmp_path / "ragged.fasta"
    path.write_text(">A\nACGT\n>B\nACG\n")
    with pytest.raises((AlignmentError, ValueError)):
        read_alignment(path, "fasta")


def test_newick_file_round_trip(tmp_path):
    trees = [
        parse_newick("((A:1,B:2)[support=90]:0.5,C:3);"),
        parse_newick("(A:1,B:1,C:1);"),
    ]
    path = tmp_path / "trees.newick"
    write_newick(trees, path)
    assert path.read_text().splitlines() == [t.to_newick() for t in trees]

    loaded = read_newick(path, force_list=True)
    assert [t.to_newick() for t in loaded] == [t.to_newick() for t in trees]
    assert loaded[0].children[0].support == 90.0


def test_write_newick_support_as_label(tmp_path):
    path = tmp_path / "tree.newick"
    write_newick(parse_newick("((A:1,B:2)[support=90]:0.5,C:3);"), path, support_as_label=True)
    assert path.read_text() == "((A:1,B:2)90:0.5,C:3);\n"
    assert read_newick(path).children[0].support == 90.0


def test_distance_matrix_csv_round_trip(tmp_path):
    dm = DistanceMatrix(["x", "y", "z"], [[0, 0.125, 1], [0.125, 0, 2.5], [1, 2.5, 0]])
    path = tmp_path / "distances.csv"
    write_distance_matrix(dm, path)
    assert read_distance_matrix(path) == dm


def test_read_metadata_csv(tmp_path):
    path = tmp_path / "taxa.csv"
    path.write_text(
        "Taxon,Family,Colour,short_name\n"
        "human,Hominidae,#ff0000,Hs\n"
        "macaque,Cercopithecidae,#0000ff,Mm\n"
    )
    metadata = read_metadata(path)
    assert metadata["human"] == TaxonRecord(family="Hominidae", color="#ff0000", short_name="Hs")
    assert metadata["macaque"].family == "Cercopithecidae"


def test_read_metadata_tsv_with_optional_columns(tmp_path):
    path = tmp_path / "taxa.tsv"
    path.write_text("id\tfamily\nhuman\tHominidae\nchimp\tHominidae\n")
    metadata = read_metadata(path)
    assert set(metadata) == {"human", "chimp"}
    assert metadata["chimp"] == TaxonRecord(family="Hominidae")


def test_read_metadata_errors(tmp_path):
    no_taxon = tmp_path / "no_taxon.csv"
    no_taxon.write_text("family,color\nHominidae,red\n")
    with pytest.raises(ValueError, match="No taxon column"):
        read_metadata(no_taxon)

    duplicated = tmp_path / "duplicated.csv"
    duplicated.write_text("taxon,family\nhuman,Hominidae\nhuman,Hominidae\n")
    with pytest.raises(ValueError, match="Duplicate"):
        read_metadata(duplicated)


def test_write_json_handles_domain_objects(tmp_path):
    tree = parse_newick("((A:1,B:1):1,C:1,(D:1,E:1):1);")
    dm = DistanceMatrix(["A", "B"], [[0, 1], [1, 0]])
    path = tmp_path / "out.json"
    write_json(
        {
            "splits": tree.to_bipartitions(),
            "matrix": dm,
            "count": np.int64(3),
            "path": tmp_path,
        },
        path,
    )
    data = json.loads(path.read_text())
    assert data["splits"] == [["D", "E"], ["C", "D", "E"]]
    assert data["matrix"] == {"labels": ["A", "B"], "values": [[0.0, 1.0], [1.0, 0.0]]}
    assert data["count"] == 3
    assert data["path"] == str(tmp_path)
