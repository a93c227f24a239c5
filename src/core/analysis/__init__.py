"""Corpus-wide static analysis"""

from src.core.analysis.dependency_graph import (
    DEFAULT_EPHEMERAL_PREFIX,
    DependencyClassification,
    DependencyGraphAnalyzer,
    FlagClass,
    FlagOccurrence,
)

__all__ = [
    "DEFAULT_EPHEMERAL_PREFIX",
    "DependencyClassification",
    "DependencyGraphAnalyzer",
    "FlagClass",
    "FlagOccurrence",
]
