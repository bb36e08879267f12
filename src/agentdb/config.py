"""Configuration from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _default_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".agentdb", "default")


@dataclass
class Settings:
    """Store and logging settings loaded from environment."""

    path: str = ""
    dimensions: int = 384
    index: str = "hnsw"  # "hnsw" or "exact"

    # HNSW graph parameters
    hnsw_m: int = 16
    ef_construction: int = 200
    ef_search: int = 64

    # Candidates fetched per requested result before filtering
    overfetch: int = 2

    # Observability
    log_format: str = "pretty"  # "json" or "pretty"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            path=os.environ.get("AGENTDB_PATH") or _default_path(),
            dimensions=int(os.environ.get("AGENTDB_DIMENSIONS", "384")),
            index=os.environ.get("AGENTDB_INDEX", "hnsw").lower(),
            hnsw_m=int(os.environ.get("AGENTDB_HNSW_M", "16")),
            ef_construction=int(os.environ.get("AGENTDB_EF_CONSTRUCTION", "200")),
            ef_search=int(os.environ.get("AGENTDB_EF_SEARCH", "64")),
            overfetch=int(os.environ.get("AGENTDB_OVERFETCH", "2")),
            log_format=os.environ.get("LOG_FORMAT", "pretty"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
