"""Looptale Core Engine"""
__version__ = "0.1.0"

from src.core.analysis import DependencyClassification, DependencyGraphAnalyzer, FlagClass
from src.core.diagnostics import CorpusLoadError, Diagnostic, DiagnosticKind, DiagnosticLog
from src.core.dialogue import (
    Choice,
    ChoiceOutcome,
    ChoiceRef,
    DialogueEntry,
    DialogueRepository,
    DialogueSession,
    SessionPhase,
)
from src.core.memory import LoopProgressionValidator, LoopState, MemoryStore
from src.core.engine import LoopEngine

__all__ = [
    "DependencyClassification",
    "DependencyGraphAnalyzer",
    "FlagClass",
    "CorpusLoadError",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticLog",
    "Choice",
    "ChoiceOutcome",
    "ChoiceRef",
    "DialogueEntry",
    "DialogueRepository",
    "DialogueSession",
    "SessionPhase",
    "LoopProgressionValidator",
    "LoopState",
    "MemoryStore",
    "LoopEngine",
]
