"""Constants used by the alignment model."""

# Unambiguous states, in state-index order
NUCLEOTIDE_STATES = "ACGT"
AMINO_ACID_STATES = "ACDEFGHIKLMNPQRSTVWY"

# Read as another state before encoding
NUCLEOTIDE_SYNONYMS = {"U": "T"}

# Characters accepted during sequence type detection (IUPAC plus gap symbols)
NUCLEOTIDE_CHARACTERS = "ACGTURYWSMKBHDVNOX?-.~!*"
AMINO_ACID_CHARACTERS = "ARNDCQEGHILKMFPOSTWYVBZJUX?-.~*!"

# Value of gap and ambiguity characters in a state matrix
GAP_STATE = -1

# Number of sequences inspected by sequence type detection
DETECTION_SAMPLE_SIZE = 10

# Supported alignment file formats, tried in this order
SUPPORTED_ALIGNMENT_FORMATS = [
    "fasta",
    "phylip-relaxed",
    "phylip",
    "nexus",
    "msf",
    "clustal",
]
