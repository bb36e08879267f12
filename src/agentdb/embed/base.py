"""Abstract embedder interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np

from agentdb.types import ActionPattern


class Embedder(ABC):
    """Abstract base class for action-pattern embedding engines."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of the vectors produced by this embedder."""

    @abstractmethod
    def embed(self, pattern: ActionPattern) -> np.ndarray:
        """Embed a single pattern. Returns a float32 vector."""

    def embed_batch(self, patterns: Sequence[ActionPattern]) -> np.ndarray:
        """Embed multiple patterns. Returns a ``(len(patterns), dimensions)`` array."""
        if not patterns:
            return np.zeros((0, self.dimensions), dtype=np.float32)
        return np.vstack([self.embed(p) for p in patterns])
