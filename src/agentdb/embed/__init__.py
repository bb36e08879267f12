"""Embedding engine for AgentDB."""

from agentdb.embed.base import Embedder
from agentdb.embed.hashing import HashingEmbedder

__all__ = ["Embedder", "HashingEmbedder"]
