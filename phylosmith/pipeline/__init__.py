"""
Alignment-to-trees analysis pipeline.
"""

from .analysis import run_analysis
from .result import AnalysisResult

__all__ = ["run_analysis", "AnalysisResult"]
