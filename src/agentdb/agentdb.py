"""Main AgentDB class: the pattern-memory store."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, Union

import numpy as np
from pydantic import ValidationError

from agentdb import persist
from agentdb.catalog import (
    PatternCatalog,
    Predicate,
    metadata_matches,
    success_only as _success_only,
    url_contains,
)
from agentdb.config import Settings
from agentdb.embed.base import Embedder
from agentdb.embed.hashing import HashingEmbedder
from agentdb.exceptions import (
    DimensionMismatchError,
    InvalidTrainingDataError,
    StorageError,
    StoreClosedError,
)
from agentdb.index import INDEX_TYPES, HnswIndex, VectorIndex
from agentdb.models import FORMAT_VERSION, PatternModel, TrainingDocument
from agentdb.stats import StatisticsAggregator
from agentdb.types import (
    ActionPattern,
    PatternSummary,
    SimilarityResult,
    Statistics,
    StoredEntry,
)

logger = logging.getLogger(__name__)

_EMBEDDING_DIM = 384
_DEFAULT_OVERFETCH = 2

# Self-retrieval score a freshly loaded index must reach to be trusted.
_SELF_CHECK_MIN_SIMILARITY = 0.999
_SELF_CHECK_K = 10

PatternLike = Union[ActionPattern, Mapping[str, Any]]


class AgentDB:
    """Vector memory of browser-automation actions.

    Usage::

        db = AgentDB("~/.agentdb/signup")
        db.store_action(ActionPattern(action="click", selector="#submit", success=True))
        results = db.find_similar(ActionPattern(action="click", selector="#go"), k=3)
        db.save()

    The store is single-process and single-writer. Every write completes
    fully before returning; nothing is persisted until :meth:`save`.
    """

    def __init__(
        self,
        path: Union[str, Path],
        dimensions: int = _EMBEDDING_DIM,
        embedder: Optional[Embedder] = None,
        index: str = HnswIndex.kind,
        hnsw_m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 64,
        overfetch: int = _DEFAULT_OVERFETCH,
    ) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        if overfetch < 1:
            raise ValueError(f"overfetch must be at least 1, got {overfetch}")
        if index not in INDEX_TYPES:
            raise ValueError(
                f"index must be one of {sorted(INDEX_TYPES)}, got {index!r}"
            )

        self._path = Path(path).expanduser()
        self._dimensions = dimensions
        self._overfetch = overfetch
        self._index_cls: Type[VectorIndex] = INDEX_TYPES[index]
        self._hnsw_options = {
            "m": hnsw_m,
            "ef_construction": ef_construction,
            "ef_search": ef_search,
        }

        if embedder is None:
            embedder = HashingEmbedder(dimensions)
        elif embedder.dimensions != dimensions:
            raise DimensionMismatchError(dimensions, embedder.dimensions)
        self._embedder = embedder

        self._closed = False
        self._catalog = PatternCatalog()
        self._index = self._new_index()
        self._next_id = 0
        self._stats = StatisticsAggregator()
        self._restore()

    @classmethod
    def from_settings(
        cls, settings: Settings, embedder: Optional[Embedder] = None
    ) -> "AgentDB":
        return cls(
            settings.path,
            dimensions=settings.dimensions,
            embedder=embedder,
            index=settings.index,
            hnsw_m=settings.hnsw_m,
            ef_construction=settings.ef_construction,
            ef_search=settings.ef_search,
            overfetch=settings.overfetch,
        )

    @classmethod
    async def open_async(cls, path: Union[str, Path], **kwargs: Any) -> "AgentDB":
        """Construct a store, loading from disk in a worker thread."""
        return await asyncio.to_thread(cls, path, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_open(self) -> bool:
        return not self._closed

    def close(self) -> None:
        """Close the store. Unsaved entries are discarded."""
        self._closed = True

    def __enter__(self) -> "AgentDB":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._catalog)

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Store at {self._path} is closed")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_action(self, pattern: PatternLike) -> int:
        """Embed and store a pattern. Returns its identifier.

        A missing ``timestamp`` is filled in with the current UTC time.
        """
        self._check_open()
        pattern = _coerce_pattern(pattern)

        start = time.perf_counter()
        vector = self._embed(pattern)
        embedding_ms = (time.perf_counter() - start) * 1000.0

        stored = replace(
            pattern,
            metadata=dict(pattern.metadata) if pattern.metadata is not None else None,
            timestamp=pattern.timestamp or _utc_now_iso(),
        )

        id = self._next_id
        self._index.add(id, vector)
        self._catalog.put(id, stored)
        self._next_id += 1
        self._stats.record(stored, embedding_ms)

        logger.debug("Stored action %d (%s)", id, stored.action, extra={"action": stored.action})
        return id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, id: int) -> Optional[ActionPattern]:
        """Get a stored pattern by id, or None."""
        self._check_open()
        return self._catalog.get(id)

    def get_entry(self, id: int) -> Optional[StoredEntry]:
        """Get a stored pattern with its id and (re-computed) embedding."""
        self._check_open()
        pattern = self._catalog.get(id)
        if pattern is None:
            return None
        return StoredEntry(id=id, pattern=pattern, embedding=self._embed(pattern))

    def find_similar(
        self,
        query: PatternLike,
        k: int = 10,
        *,
        success_only: bool = False,
        url_pattern: Optional[str] = None,
        min_similarity: Optional[float] = None,
    ) -> List[SimilarityResult]:
        """Find up to *k* stored patterns most similar to *query*.

        Results are ordered by descending similarity. Filters are applied
        after the index lookup, so fewer than *k* results may come back.
        """
        self._check_open()
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        if min_similarity is not None and not (0.0 <= min_similarity <= 1.0):
            raise ValueError(
                f"min_similarity must be between 0.0 and 1.0, got {min_similarity}"
            )
        query = _coerce_pattern(query, require_action=False)

        total = len(self._catalog)
        if total == 0:
            return []

        predicates: List[Predicate] = []
        if success_only:
            predicates.append(_success_only)
        if url_pattern:
            predicates.append(url_contains(url_pattern))

        vector = self._embed(query)
        fetch = min(k * self._overfetch, total)
        while True:
            hits = self._index.search(vector, fetch)
            results: List[SimilarityResult] = []
            below_threshold = False
            for id, similarity in hits:
                if min_similarity is not None and similarity < min_similarity:
                    below_threshold = True
                    break
                pattern = self._catalog.get(id)
                if pattern is None:
                    continue
                if not all(pred(pattern) for pred in predicates):
                    continue
                results.append(SimilarityResult(pattern=pattern, similarity=similarity, id=id))
                if len(results) >= k:
                    break

            if len(results) >= k or below_threshold or fetch >= total:
                break
            fetch = min(fetch * 2, total)

        results.sort(key=lambda r: (-r.similarity, r.id))
        return results[:k]

    def query_by_metadata(self, filter: Mapping[str, str]) -> List[ActionPattern]:
        """Patterns whose metadata contains every key/value pair of *filter*."""
        self._check_open()
        return [p for _, p in self._catalog.filter(metadata_matches(filter))]

    def get_statistics(self) -> Statistics:
        self._check_open()
        return self._stats.statistics()

    def get_top_patterns(self, n: int = 10) -> List[PatternSummary]:
        """Most frequent ``(action, selector)`` groups, descending by count."""
        self._check_open()
        return self._stats.top_patterns(n)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write the catalog snapshot and the index to the store directory.

        Raises StorageError if the directory cannot be written.
        """
        self._check_open()
        start = time.perf_counter()
        snapshot = persist.build_snapshot(
            self._dimensions, self._index.kind, self._next_id, self._catalog.all()
        )
        persist.save_store(self._path, snapshot, self._index)
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            "Saved %d actions to %s", len(self._catalog), self._path,
            extra={
                "path": str(self._path),
                "entries": len(self._catalog),
                "elapsed_ms": round(elapsed_ms, 2),
            },
        )

    async def save_async(self) -> None:
        """Run :meth:`save` in a worker thread."""
        await asyncio.to_thread(self.save)

    def _new_index(self) -> VectorIndex:
        if self._index_cls is HnswIndex:
            return HnswIndex(self._dimensions, **self._hnsw_options)
        return self._index_cls(self._dimensions)

    def _restore(self) -> None:
        """Load a previous snapshot from the store directory, if any.

        An unreadable snapshot leaves the store empty. An unusable index
        (missing, unreadable, wrong size, or failing the self-retrieval
        check) is rebuilt from the catalog.
        """
        snapshot = persist.read_snapshot(self._path)
        if snapshot is None:
            return
        if snapshot.dimensions != self._dimensions:
            raise DimensionMismatchError(self._dimensions, snapshot.dimensions)

        catalog = PatternCatalog()
        for id, model in snapshot.entries:
            catalog.put(id, model.to_pattern())

        index: Optional[VectorIndex] = None
        if snapshot.index == self._index_cls.kind:
            options: Dict[str, Any] = {}
            if self._index_cls is HnswIndex:
                options["ef_search"] = self._hnsw_options["ef_search"]
            index = persist.read_index(self._path, self._index_cls, **options)
            if index is not None and not self._index_consistent(index, catalog):
                index = None
        else:
            logger.info(
                "Snapshot index kind %r differs from configured %r",
                snapshot.index, self._index_cls.kind,
            )

        if index is None:
            index = self._rebuild_index(catalog)

        self._catalog = catalog
        self._index = index
        self._next_id = snapshot.next_id
        self._stats = StatisticsAggregator.from_patterns(catalog.patterns())
        logger.info(
            "Loaded %d actions from %s", len(catalog), self._path,
            extra={"path": str(self._path), "entries": len(catalog)},
        )

    def _index_consistent(self, index: VectorIndex, catalog: PatternCatalog) -> bool:
        """Check a loaded index actually serves the loaded catalog."""
        if index.dimensions != self._dimensions:
            logger.warning(
                "Index dimension %d does not match %d", index.dimensions, self._dimensions
            )
            return False
        if len(index) != len(catalog):
            logger.warning(
                "Index holds %d vectors but catalog holds %d", len(index), len(catalog)
            )
            return False
        if len(catalog) == 0:
            return True

        entries = catalog.all()
        n = len(entries)
        for pos in sorted({0, n // 2, n - 1}):
            check_id, sample = entries[pos]
            vector = self._embed(sample)
            if not np.any(vector):
                continue
            hits = index.search(vector, min(_SELF_CHECK_K, n))
            if not hits or any(id not in catalog for id, _ in hits):
                logger.warning("Index search does not resolve against the catalog")
                return False
            # Duplicates of the sample may crowd it out of the top hits, but
            # then the best hit still scores as an exact match.
            own_score = dict(hits).get(check_id, 0.0)
            if own_score < _SELF_CHECK_MIN_SIMILARITY and hits[0][1] < _SELF_CHECK_MIN_SIMILARITY:
                logger.warning("Index failed self-retrieval check for action %d", check_id)
                return False
        return True

    def _rebuild_index(self, catalog: PatternCatalog) -> VectorIndex:
        logger.info("Rebuilding index from %d catalog entries", len(catalog))
        index = self._new_index()
        for id, pattern in catalog.all():
            index.add(id, self._embed(pattern))
        return index

    # ------------------------------------------------------------------
    # Training data
    # ------------------------------------------------------------------

    def export_training_data(self, path: Optional[str] = None) -> str:
        """Serialize every stored pattern (not the vectors) as JSON.

        If *path* is given, the document is also written to that file.
        """
        self._check_open()
        payload: Dict[str, Any] = {
            "version": FORMAT_VERSION,
            "exportedAt": _utc_now_iso(),
            "patterns": [p.to_dict() for p in self._catalog.patterns()],
            "statistics": self._stats.statistics().to_dict(),
        }
        document = json.dumps(payload, indent=2, ensure_ascii=False)

        if path is not None:
            try:
                with open(path, "w", encoding="utf-8") as f:
                    f.write(document)
            except OSError as e:
                raise StorageError(f"Failed to write training data to {path}: {e}") from e

        return document

    def import_training_data(
        self,
        data: Optional[Union[str, bytes, Mapping[str, Any]]] = None,
        path: Optional[str] = None,
    ) -> int:
        """Store every pattern of a training-data document.

        Imported patterns get new identifiers and fresh embeddings. The
        whole document is validated first; a malformed one raises
        InvalidTrainingDataError and leaves the store unchanged.

        Returns the number of patterns imported.
        """
        self._check_open()
        if path is not None:
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = f.read()
            except OSError as e:
                raise StorageError(f"Failed to read training data from {path}: {e}") from e

        if data is None:
            raise ValueError("Either path or data must be provided")

        try:
            if isinstance(data, (str, bytes)):
                document = TrainingDocument.model_validate_json(data)
            else:
                document = TrainingDocument.model_validate(data)
        except ValidationError as e:
            raise InvalidTrainingDataError(f"Invalid training data format: {e}") from e

        patterns = [model.to_pattern() for model in document.patterns]
        for pattern in patterns:
            self.store_action(pattern)

        logger.info("Imported %d actions", len(patterns), extra={"entries": len(patterns)})
        return len(patterns)

    # ------------------------------------------------------------------

    def _embed(self, pattern: ActionPattern) -> np.ndarray:
        vector = np.asarray(self._embedder.embed(pattern), dtype=np.float32).reshape(-1)
        if vector.shape[0] != self._dimensions:
            raise DimensionMismatchError(self._dimensions, vector.shape[0])
        return vector


def _coerce_pattern(pattern: PatternLike, require_action: bool = True) -> ActionPattern:
    """Accept an ActionPattern or a plain mapping and validate its fields."""
    if isinstance(pattern, ActionPattern):
        data = pattern.to_dict()
    elif isinstance(pattern, Mapping):
        data = dict(pattern)
    else:
        raise TypeError(f"expected ActionPattern or mapping, got {type(pattern).__name__}")

    if not require_action and not data.get("action"):
        # Queries may omit the action; stored patterns may not.
        data["action"] = ""
        return ActionPattern.from_dict(data)

    # Raises pydantic.ValidationError (a ValueError) on bad field types.
    return PatternModel.model_validate(data).to_pattern()


def _utc_now_iso() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()

