"""On-disk layout of a store directory.

A store directory holds two files written together by :func:`save_store`:

- ``metadata.json``: the catalog snapshot (format version, dimension, index
  kind, next identifier, and the ordered ``[id, pattern]`` entries).
- the index file in the index's native serialization (``index.faiss`` for
  HNSW, ``index.npz`` for the exact index).

Each file is written to a ``.tmp`` sibling first and renamed into place.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Type

from pydantic import ValidationError

from agentdb.exceptions import StorageError
from agentdb.index.base import VectorIndex
from agentdb.models import FORMAT_VERSION, CatalogSnapshot, PatternModel
from agentdb.types import ActionPattern

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _write_atomic(path: Path, write: Callable[[Path], Any]) -> Path:
    """Run *write* against a temporary sibling of *path*; return the temp path."""
    tmp = _tmp_path(path)
    try:
        write(tmp)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def build_snapshot(
    dimensions: int,
    index_kind: str,
    next_id: int,
    entries: List[Tuple[int, ActionPattern]],
) -> CatalogSnapshot:
    return CatalogSnapshot(
        version=FORMAT_VERSION,
        dimensions=dimensions,
        index=index_kind,
        next_id=next_id,
        saved_at=datetime.now(timezone.utc).isoformat(),
        entries=[(i, PatternModel(**p.to_dict())) for i, p in entries],
    )


def save_store(directory: Path, snapshot: CatalogSnapshot, index: VectorIndex) -> None:
    """Write *snapshot* and *index* into *directory*.

    Raises StorageError if either file cannot be written.
    """
    meta_path = directory / METADATA_FILE
    index_path = directory / index.filename
    written: List[Path] = []
    try:
        directory.mkdir(parents=True, exist_ok=True)
        written.append(_write_atomic(index_path, index.save))
        payload = snapshot.model_dump_json(indent=2, exclude_none=True)
        written.append(
            _write_atomic(meta_path, lambda p: p.write_text(payload, encoding="utf-8"))
        )
        os.replace(written[0], index_path)
        os.replace(written[1], meta_path)
    except (OSError, RuntimeError) as e:
        for tmp in written:
            tmp.unlink(missing_ok=True)
        raise StorageError(f"Failed to save store to {directory}: {e}") from e


def read_snapshot(directory: Path) -> Optional[CatalogSnapshot]:
    """Read ``metadata.json`` from *directory*.

    Returns None when there is no snapshot or it cannot be read or parsed;
    the caller then starts empty.
    """
    meta_path = directory / METADATA_FILE
    try:
        if not meta_path.exists():
            return None
        raw = meta_path.read_text(encoding="utf-8")
        return CatalogSnapshot.model_validate_json(raw)
    except (OSError, UnicodeDecodeError, ValidationError) as e:
        logger.warning(
            "Unreadable catalog snapshot at %s, starting empty: %s", meta_path, e,
            extra={"path": str(meta_path)},
        )
        return None


def read_index(
    directory: Path, index_cls: Type[VectorIndex], **options: Any
) -> Optional[VectorIndex]:
    """Load the index file for *index_cls* from *directory*, or None if unusable."""
    index_path = directory / index_cls.filename
    try:
        if not index_path.exists():
            logger.info("No index file at %s", index_path, extra={"path": str(index_path)})
            return None
        return index_cls.load(index_path, **options)
    except (OSError, EOFError, RuntimeError, ValueError, KeyError) as e:
        logger.warning(
            "Unreadable index at %s: %s", index_path, e,
            extra={"path": str(index_path)},
        )
        return None
