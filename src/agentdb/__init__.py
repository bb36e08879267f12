"""AgentDB: pattern memory for browser automation."""

from agentdb.agentdb import AgentDB
from agentdb.exceptions import (
    AgentDBError,
    DimensionMismatchError,
    InvalidTrainingDataError,
    StorageError,
    StoreClosedError,
)
from agentdb.recognizer import PatternRecognizer
from agentdb.types import (
    ActionPattern,
    PatternSummary,
    SemanticPattern,
    SimilarityResult,
    Statistics,
    StoredEntry,
)

__all__ = [
    "AgentDB",
    "ActionPattern",
    "PatternSummary",
    "SemanticPattern",
    "SimilarityResult",
    "Statistics",
    "StoredEntry",
    "PatternRecognizer",
    "AgentDBError",
    "DimensionMismatchError",
    "InvalidTrainingDataError",
    "StorageError",
    "StoreClosedError",
]
