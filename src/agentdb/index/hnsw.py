"""HNSW index backed by faiss."""

from __future__ import annotations

import logging
from typing import List, Tuple

import faiss
import numpy as np

from agentdb.index.base import PathLike, VectorIndex, clamp_similarity

logger = logging.getLogger(__name__)

_DEFAULT_M = 16
_DEFAULT_EF_CONSTRUCTION = 200
_DEFAULT_EF_SEARCH = 64


class HnswIndex(VectorIndex):
    """Graph-based approximate index (faiss ``IndexHNSWFlat``).

    Vectors are compared by inner product, which equals cosine similarity
    for the unit vectors the embedder produces. The HNSW graph is wrapped in
    an ``IndexIDMap2`` so search results carry the catalog ids directly.
    """

    kind = "hnsw"
    filename = "index.faiss"

    def __init__(
        self,
        dimensions: int,
        m: int = _DEFAULT_M,
        ef_construction: int = _DEFAULT_EF_CONSTRUCTION,
        ef_search: int = _DEFAULT_EF_SEARCH,
    ) -> None:
        hnsw = faiss.IndexHNSWFlat(dimensions, m, faiss.METRIC_INNER_PRODUCT)
        hnsw.hnsw.efConstruction = ef_construction
        hnsw.hnsw.efSearch = ef_search
        self._init(faiss.IndexIDMap2(hnsw), hnsw, ef_search)

    def _init(self, index: faiss.Index, hnsw: faiss.Index, ef_search: int) -> None:
        self._index = index
        self._hnsw = hnsw
        self._ef_search = ef_search

    @property
    def dimensions(self) -> int:
        return self._index.d

    def add(self, id: int, vector: np.ndarray) -> None:
        row = self._as_row(vector)
        self._index.add_with_ids(row, np.array([id], dtype=np.int64))

    def search(self, vector: np.ndarray, k: int) -> List[Tuple[int, float]]:
        if k <= 0 or self._index.ntotal == 0:
            return []
        row = self._as_row(vector)
        k = min(k, self._index.ntotal)
        self._hnsw.hnsw.efSearch = max(self._ef_search, k)
        scores, ids = self._index.search(row, k)
        hits = [
            (int(i), clamp_similarity(s))
            for s, i in zip(scores[0], ids[0])
            if i >= 0
        ]
        hits.sort(key=lambda hit: (-hit[1], hit[0]))
        return hits

    def __len__(self) -> int:
        return int(self._index.ntotal)

    def save(self, path: PathLike) -> None:
        faiss.write_index(self._index, str(path))

    @classmethod
    def load(cls, path: PathLike, ef_search: int = _DEFAULT_EF_SEARCH) -> "HnswIndex":
        # read_index already returns the concrete IndexIDMap2 proxy; it owns
        # the wrapped HNSW index and must stay referenced while that is used.
        index = faiss.read_index(str(path))
        if not isinstance(index, faiss.IndexIDMap2):
            raise ValueError(f"{path} does not contain an id-mapped index")
        hnsw = faiss.downcast_index(index.index)
        if not isinstance(hnsw, faiss.IndexHNSW):
            raise ValueError(f"{path} does not contain an HNSW index")
        obj = cls.__new__(cls)
        obj._init(index, hnsw, ef_search)
        logger.debug("Loaded HNSW index from %s (%d vectors)", path, index.ntotal)
        return obj
