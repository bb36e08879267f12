"""Vector index backends for AgentDB."""

from agentdb.index.base import VectorIndex
from agentdb.index.exact import ExactIndex
from agentdb.index.hnsw import HnswIndex

INDEX_TYPES = {
    HnswIndex.kind: HnswIndex,
    ExactIndex.kind: ExactIndex,
}

__all__ = ["VectorIndex", "HnswIndex", "ExactIndex", "INDEX_TYPES"]
