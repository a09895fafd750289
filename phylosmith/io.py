"""File input and output: Newick trees, alignments, metadata tables, matrices."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from Bio import AlignIO
from Bio.Align import MultipleSeqAlignment

from phylosmith.alignment import Alignment, SequenceType
from phylosmith.alignment.constants import SUPPORTED_ALIGNMENT_FORMATS
from phylosmith.distances.distance_matrix import DistanceMatrix
from phylosmith.elements.partition import Partition
from phylosmith.elements.partition_set import PartitionSet
from phylosmith.exceptions import AlignmentError
from phylosmith.parser.newick_parser import parse_newick
from phylosmith.tree import NEWICK_PRECISION, Node

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PhylosmithJSONEncoder(json.JSONEncoder):
    def default(self, o: Any):
        if isinstance(o, Partition):
            return sorted(o.taxa) if o.encoding else list(o.indices)
        if isinstance(o, PartitionSet):
            return [self.default(partition) for partition in o]
        if isinstance(o, Node):
            return o.to_dict()
        if isinstance(o, DistanceMatrix):
            return {"labels": list(o.labels), "values": o.values.tolist()}
        if isinstance(o, Path):
            return str(o)
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if isinstance(o, np.ndarray):
            return o.tolist()
        return super().default(o)


def dump_json(data: Any, f: IO[str]) -> None:
    json.dump(data, f, cls=PhylosmithJSONEncoder, indent=2)


def write_json(data: Any, path: PathLike) -> None:
    with open(path, mode="w", encoding="utf-8") as f:
        dump_json(data, f)


# ----------------------------------------------------------------------
# Newick
# ----------------------------------------------------------------------


def read_newick(
    path: PathLike,
    encoding: Optional[Dict[str, int]] = None,
    force_list: bool = False,
) -> Union[Node, List[Node]]:
    """Read one or more ';'-terminated trees from a Newick file."""
    with open(path, encoding="utf-8") as f:
        newick_string: str = f.read()

    return parse_newick(newick_string, encoding=encoding, force_list=force_list)


def write_newick(
    trees: Union[Node, Iterable[Node]],
    path: PathLike,
    lengths: bool = True,
    support_as_label: bool = False,
    precision: int = NEWICK_PRECISION,
) -> None:
    """Write trees to a file, one per line."""
    tree_list = [trees] if isinstance(trees, Node) else list(trees)
    with open(path, mode="w", encoding="utf-8") as f:
        for tree in tree_list:
            f.write(
                tree.to_newick(
                    lengths=lengths, support_as_label=support_as_label, precision=precision
                )
                + "\n"
            )


# ----------------------------------------------------------------------
# Alignments
# ----------------------------------------------------------------------


def load_alignment(
    file_path: PathLike,
    format_hint: Optional[str] = None,
) -> Tuple[MultipleSeqAlignment, str]:
    """
    Load an alignment file and auto-detect its format.

    Attempts to parse the alignment using the supported formats in turn.

    Args:
        file_path: Path to the alignment file.
        format_hint: Optional format specifier to skip auto-detection.

    Returns:
        Tuple of (alignment object, detected format string).

    Raises:
        AlignmentError: If the file cannot be parsed in any supported format.
    """
    if format_hint:
        try:
            return AlignIO.read(file_path, format_hint), format_hint
        except ValueError as e:
            raise AlignmentError(f"Unable to parse {file_path} as {format_hint}: {e}")

    failures: List[str] = []
    for seq_format in SUPPORTED_ALIGNMENT_FORMATS:
        try:
            alignment = AlignIO.read(file_path, seq_format)
        except Exception as e:  # parsers raise assorted error types on foreign formats
            logger.debug("Alignment %s is not %s: %s", file_path, seq_format, e)
            failures.append(f"{seq_format}: {e}")
            continue
        logger.debug("Read %s as %s", file_path, seq_format)
        return alignment, seq_format

    raise AlignmentError(
        f"Unable to parse alignment file {file_path}. Tried formats: "
        + "; ".join(failures)
    )


def read_alignment(
    path: PathLike,
    format_hint: Optional[str] = None,
    sequence_type: Optional[SequenceType] = None,
) -> Alignment:
    """Read an alignment file (FASTA, PHYLIP, NEXUS, MSF or Clustal)."""
    records, _ = load_alignment(path, format_hint)
    return Alignment.from_biopython(records, sequence_type)


# ----------------------------------------------------------------------
# Metadata
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class TaxonRecord:
    """Display metadata for one taxon."""

    family: str = ""
    color: str = ""
    short_name: str = ""


_COLUMN_ALIASES = {
    "taxon": ("taxon", "taxa", "id", "name", "label", "tip"),
    "family": ("family",),
    "color": ("color", "colour"),
    "short_name": ("short_name", "shortname", "short", "abbreviation"),
}


def _find_column(columns: Iterable[str], field_name: str) -> Optional[str]:
    lowered = {str(c).strip().lower(): c for c in columns}
    for alias in _COLUMN_ALIASES[field_name]:
        if alias in lowered:
            return lowered[alias]
    return None


def read_metadata(path: PathLike, sep: Optional[str] = None) -> Dict[str, TaxonRecord]:
    """
    Read a taxon metadata table (CSV or TSV).

    The taxon column may be called taxon, id, name, label or tip; family,
    color and short_name columns are optional.

    Raises:
        ValueError: If no taxon column is found or a taxon is listed twice.
    """
    frame = pd.read_csv(path, sep=sep, engine="python", dtype=str, keep_default_na=False)
    taxon_column = _find_column(frame.columns, "taxon")
    if taxon_column is None:
        raise ValueError(f"No taxon column in {path}; columns are {list(frame.columns)}")
    if frame[taxon_column].duplicated().any():
        duplicates = sorted(frame.loc[frame[taxon_column].duplicated(), taxon_column])
        raise ValueError(f"Duplicate taxa in metadata: {duplicates}")

    columns = {f: _find_column(frame.columns, f) for f in ("family", "color", "short_name")}
    metadata: Dict[str, TaxonRecord] = {}
    for _, row in frame.iterrows():
        metadata[str(row[taxon_column]).strip()] = TaxonRecord(
            **{f: str(row[c]).strip() if c is not None else "" for f, c in columns.items()}
        )
    return metadata


# ----------------------------------------------------------------------
# Distance matrices
# ----------------------------------------------------------------------


def write_distance_matrix(dm: DistanceMatrix, path: PathLike) -> None:
    dm.to_dataframe().to_csv(path)


def read_distance_matrix(path: PathLike) -> DistanceMatrix:
    frame = pd.read_csv(path, index_col=0)
    return DistanceMatrix.from_dataframe(frame)
