import logging
from pathlib import Path

import pytest


def pytest_configure(config):
    """Set up test environment before tests run."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


FOUR_TAXON_FASTA = """>A
ACGTACGTACGTACGTACGT
>B
ACGTACGTACGTACGTACGA
>C
ACGAACGTTCGTACCTACGT
>D
ACGAACGTTCGTACCTACGA
"""

SIX_TAXON_FASTA = """>human
ACGTACGTACGTACGTACGTACGTACGTAC
>chimp
ACGTACGTACGTACGTACGTACGTACGTAA
>gorilla
ACGTACGAACGTACGTACGTACGTACGAAA
>orangutan
ACGTTCGAACGTACGTAGGTACGTACGAAA
>macaque
ACCTTCGAACGAACGTAGGTACGTTCGAAG
>marmoset
ACCTTCGTACGAACGAAGGTTCGTTCGAAG
"""


@pytest.fixture
def four_taxon_fasta(tmp_path: Path) -> Path:
    path = tmp_path / "four.fasta"
    path.write_text(FOUR_TAXON_FASTA)
    return path


@pytest.fixture
def six_taxon_fasta(tmp_path: Path) -> Path:
    path = tmp_path / "primates.fasta"
    path.write_text(SIX_TAXON_FASTA)
    return path
