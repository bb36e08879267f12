"""Feature-hashing embedder.

Turns the textual fields of an action pattern into a fixed-size vector
without a trained model. Each participating field is lower-cased and split
into character n-grams (with ``^``/``$`` boundary markers) and word tokens.
Every feature is hashed together with its field name into one of
``dimensions`` buckets with a sign taken from the same digest. The per-field
sub-vectors are L2-normalised, scaled by a field weight, summed, and the sum
is L2-normalised again, so cosine similarity equals the dot product and long
values do not outweigh short ones.
"""

from __future__ import annotations

import hashlib
import re
from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from agentdb.embed.base import Embedder
from agentdb.types import ActionPattern

_EMBEDDING_DIM = 384
_DEFAULT_NGRAM = 3

# Fields in embedding order with their relative weights. success, metadata
# and timestamp never participate.
FIELD_WEIGHTS: Dict[str, float] = {
    "action": 1.0,
    "selector": 1.0,
    "url": 0.75,
    "value": 0.5,
}

_WORD_RE = re.compile(r"[a-z0-9]+")


def _bucket(feature: str, dimensions: int) -> Tuple[int, float]:
    """Map a feature string to a (bucket, sign) pair."""
    digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
    h = int.from_bytes(digest, "little")
    sign = 1.0 if (h >> 63) & 1 == 0 else -1.0
    return h % dimensions, sign


class HashingEmbedder(Embedder):
    """Deterministic feature-hashing embedder.

    Usage::

        embedder = HashingEmbedder(dimensions=384)
        vec = embedder.embed(ActionPattern(action="click", selector="#go"))
    """

    def __init__(
        self,
        dimensions: int = _EMBEDDING_DIM,
        ngram: int = _DEFAULT_NGRAM,
        field_weights: Optional[Dict[str, float]] = None,
    ) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        if ngram < 1:
            raise ValueError(f"ngram must be positive, got {ngram}")
        self._dimensions = dimensions
        self._ngram = ngram
        self._weights = dict(field_weights or FIELD_WEIGHTS)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _features(self, field: str, text: str) -> Iterator[str]:
        """Yield field-tagged features for one field's text."""
        text = text.lower()
        padded = f"^{text}$"
        n = min(self._ngram, len(padded))
        for i in range(len(padded) - n + 1):
            yield f"{field}\x1fc\x1f{padded[i:i + n]}"
        for word in _WORD_RE.findall(text):
            yield f"{field}\x1fw\x1f{word}"

    def _field_vector(self, field: str, text: str) -> np.ndarray:
        vec = np.zeros(self._dimensions, dtype=np.float64)
        for feature in self._features(field, text):
            idx, sign = _bucket(feature, self._dimensions)
            vec[idx] += sign
        return vec

    def embed(self, pattern: ActionPattern) -> np.ndarray:
        total = np.zeros(self._dimensions, dtype=np.float64)
        for field, weight in self._weights.items():
            text = getattr(pattern, field, None)
            if not text:
                continue
            vec = self._field_vector(field, text)
            norm = np.linalg.norm(vec)
            if norm > 0:
                total += (vec / norm) * weight

        norm = np.linalg.norm(total)
        if norm > 0:
            total /= norm
        return total.astype(np.float32)
