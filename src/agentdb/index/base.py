"""Abstract vector index interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from agentdb.exceptions import DimensionMismatchError

PathLike = Union[str, Path]


class VectorIndex(ABC):
    """Nearest-neighbour index over unit vectors keyed by integer ids.

    Only vectors and ids live here; everything else about an entry belongs
    to the catalog.
    """

    #: Short name recorded in the snapshot to pick the loader.
    kind: str = ""
    #: File name of the index inside the store directory.
    filename: str = ""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Dimension of the indexed vectors."""

    @abstractmethod
    def add(self, id: int, vector: np.ndarray) -> None:
        """Insert a single vector under *id*."""

    @abstractmethod
    def search(self, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        """Return at most *k* ``(id, similarity)`` pairs, best first."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of indexed vectors."""

    @abstractmethod
    def save(self, path: PathLike) -> None:
        """Write the index to *path*."""

    @classmethod
    @abstractmethod
    def load(cls, path: PathLike) -> "VectorIndex":
        """Read an index previously written with :meth:`save`."""

    def _as_row(self, vector: np.ndarray) -> np.ndarray:
        """Validate *vector* and reshape it to a contiguous float32 row."""
        arr = np.ascontiguousarray(vector, dtype=np.float32).reshape(1, -1)
        if arr.shape[1] != self.dimensions:
            raise DimensionMismatchError(self.dimensions, arr.shape[1])
        return arr


def clamp_similarity(score: float) -> float:
    """Clamp an inner-product score of unit vectors into [0, 1]."""
    return max(0.0, min(1.0, float(score)))
