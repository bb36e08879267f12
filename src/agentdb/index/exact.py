"""Brute-force numpy index.

Scores every stored vector on each query. Used as a recall reference for
the HNSW index and for small stores where exact results are preferred.
"""

from __future__ import annotations

import zipfile
from typing import List, Tuple

import numpy as np

from agentdb.index.base import PathLike, VectorIndex, clamp_similarity


class ExactIndex(VectorIndex):
    """Exact inner-product index over an in-memory matrix."""

    kind = "exact"
    filename = "index.npz"

    def __init__(self, dimensions: int) -> None:
        self._dimensions = dimensions
        self._ids: List[int] = []
        self._rows: List[np.ndarray] = []
        self._matrix: np.ndarray = np.zeros((0, dimensions), dtype=np.float32)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def add(self, id: int, vector: np.ndarray) -> None:
        row = self._as_row(vector)
        self._ids.append(id)
        self._rows.append(row[0])

    def _vectors(self) -> np.ndarray:
        # Restacked only after adds.
        if self._matrix.shape[0] != len(self._rows):
            self._matrix = np.vstack(self._rows).astype(np.float32)
        return self._matrix

    def search(self, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        if k <= 0 or not self._ids:
            return []
        row = self._as_row(vector)
        scores = self._vectors() @ row[0]
        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [(self._ids[i], clamp_similarity(scores[i])) for i in order]

    def __len__(self) -> int:
        return len(self._ids)

    def save(self, path: PathLike) -> None:
        with open(path, "wb") as f:
            np.savez(
                f,
                ids=np.array(self._ids, dtype=np.int64),
                vectors=self._vectors() if self._ids else self._matrix,
                dimensions=np.array(self._dimensions, dtype=np.int64),
            )

    @classmethod
    def load(cls, path: PathLike) -> "ExactIndex":
        try:
            with np.load(str(path)) as data:
                obj = cls(int(data["dimensions"]))
                vectors = data["vectors"].astype(np.float32)
                ids = data["ids"].tolist()
        except zipfile.BadZipFile as e:
            raise ValueError(f"{path} is not a valid index archive: {e}") from e
        for id, row in zip(ids, vectors):
            obj.add(int(id), row)
        return obj
