"""Configuration for phylosmith analyses."""

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from phylosmith.distances.pairwise import ExcludePolicy
from phylosmith.distances.substitution_models import DEFAULT_MAX_DISTANCE, MODELS


class Settings:
    """Environment-driven settings."""

    # Logging
    LOG_LEVEL = os.environ.get("PHYLOSMITH_LOG_LEVEL", "INFO")
    LOG_DIR: Optional[Path] = (
        Path(os.environ["PHYLOSMITH_LOG_DIR"]) if os.environ.get("PHYLOSMITH_LOG_DIR") else None
    )
    LOG_FILE_NAME = "phylosmith.log"


SUPPORTED_METHODS = ("nj", "upgma")


@dataclass
class AnalysisConfig:
    """Configuration for the alignment-to-trees analysis."""

    model: str = "F81"
    exclude: ExcludePolicy = ExcludePolicy.PAIRWISE
    methods: Tuple[str, ...] = ("nj", "upgma")
    bootstrap_replicates: int = 0
    seed: Optional[int] = None
    midpoint_root: bool = False
    support_as_percentage: bool = True
    support_as_label: bool = False
    workers: int = 1
    max_distance: float = DEFAULT_MAX_DISTANCE
    alignment_format: Optional[str] = None
    show_progress: bool = True
    logger_name: str = "phylosmith.pipeline"

    def __post_init__(self) -> None:
        self.exclude = ExcludePolicy(self.exclude)
        self.methods = tuple(m.lower() for m in self.methods)
        if self.model.upper() not in MODELS:
            raise ValueError(f"Unknown substitution model '{self.model}'. Choose from {sorted(MODELS)}")
        unknown = [m for m in self.methods if m not in SUPPORTED_METHODS]
        if unknown or not self.methods:
            raise ValueError(
                f"Unknown tree building method(s) {unknown}. Choose from {list(SUPPORTED_METHODS)}"
            )
        if self.bootstrap_replicates < 0:
            raise ValueError("bootstrap_replicates must not be negative")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.max_distance <= 0:
            raise ValueError("max_distance must be positive")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["exclude"] = self.exclude.value
        data["methods"] = list(self.methods)
        return data
