"""Pydantic models for the on-disk snapshot and the training-data document."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agentdb.types import ActionPattern

FORMAT_VERSION = "1.0.0"


class PatternModel(BaseModel):
    """Wire form of an ActionPattern."""

    model_config = ConfigDict(extra="ignore")

    action: str = Field(..., min_length=1)
    selector: Optional[str] = None
    value: Optional[str] = None
    url: Optional[str] = None
    success: Optional[bool] = None
    metadata: Optional[Dict[str, str]] = None
    timestamp: Optional[str] = None

    def to_pattern(self) -> ActionPattern:
        return ActionPattern(
            action=self.action,
            selector=self.selector,
            value=self.value,
            url=self.url,
            success=self.success,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            timestamp=self.timestamp,
        )


class TrainingDocument(BaseModel):
    """``{"version": ..., "patterns": [...]}``; other top-level keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    version: str = FORMAT_VERSION
    patterns: List[PatternModel]


class CatalogSnapshot(BaseModel):
    """Contents of ``metadata.json`` in a store directory."""

    version: str = FORMAT_VERSION
    dimensions: int = Field(..., gt=0)
    index: str = "hnsw"
    next_id: int = Field(..., ge=0)
    saved_at: Optional[str] = None
    entries: List[Tuple[int, PatternModel]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_ids(self) -> "CatalogSnapshot":
        ids = [i for i, _ in self.entries]
        if len(set(ids)) != len(ids):
            raise ValueError("duplicate ids in snapshot")
        if any(i < 0 for i in ids):
            raise ValueError("negative id in snapshot")
        if ids and ids != sorted(ids):
            raise ValueError("snapshot entries are not in id order")
        if ids and self.next_id <= ids[-1]:
            raise ValueError(
                f"next_id {self.next_id} would reuse stored id {ids[-1]}"
            )
        return self
