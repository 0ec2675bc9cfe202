"""Search engine, local optimizer and failure analysis."""

from .diagnostics import FailureAnalyzer
from .optimizer import LocalOptimizer, OptimizationResult
from .search import RoomResolver, SearchBudget, SearchEngine, SearchOutcome

__all__ = [
    "FailureAnalyzer",
    "LocalOptimizer",
    "OptimizationResult",
    "RoomResolver",
    "SearchBudget",
    "SearchEngine",
    "SearchOutcome",
]
