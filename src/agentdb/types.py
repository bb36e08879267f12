"""Core data types for AgentDB."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class ActionPattern:
    """A single observed automation action.

    Only ``action``, ``selector``, ``value`` and ``url`` participate in the
    embedding. ``success``, ``metadata`` and ``timestamp`` are carried along
    for filtering and statistics.
    """

    action: str
    selector: Optional[str] = None
    value: Optional[str] = None
    url: Optional[str] = None
    success: Optional[bool] = None
    metadata: Optional[Dict[str, str]] = None
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict, omitting absent fields."""
        d: Dict[str, Any] = {"action": self.action}
        for name in ("selector", "value", "url", "success", "timestamp"):
            val = getattr(self, name)
            if val is not None:
                d[name] = val
        if self.metadata is not None:
            d["metadata"] = dict(self.metadata)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionPattern":
        metadata = data.get("metadata")
        return cls(
            action=data["action"],
            selector=data.get("selector"),
            value=data.get("value"),
            url=data.get("url"),
            success=data.get("success"),
            metadata=dict(metadata) if metadata is not None else None,
            timestamp=data.get("timestamp"),
        )


@dataclass
class StoredEntry:
    """An ActionPattern together with its identifier and embedding."""

    id: int
    pattern: ActionPattern
    embedding: np.ndarray


@dataclass
class SimilarityResult:
    """A single search hit: the matched pattern and its similarity in [0, 1]."""

    pattern: ActionPattern
    similarity: float
    id: int


@dataclass
class Statistics:
    total_actions: int = 0
    success_rate: float = 0.0
    action_types: Dict[str, int] = field(default_factory=dict)
    average_embedding_time: float = 0.0  # milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalActions": self.total_actions,
            "successRate": self.success_rate,
            "actionTypes": dict(self.action_types),
            "averageEmbeddingTime": self.average_embedding_time,
        }


@dataclass
class PatternSummary:
    """Occurrence count of an ``(action, selector)`` group."""

    action: str
    selector: Optional[str]
    count: int
    success_rate: float

    @property
    def pattern(self) -> str:
        return f"{self.action}:{self.selector or 'any'}"


@dataclass
class SemanticPattern:
    """A recurring action sequence recognised by PatternRecognizer."""

    intent: str
    confidence: float
    actions: List[ActionPattern]
    frequency: int = 1
