"""Group observed action sequences into recurring intents."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from agentdb.agentdb import AgentDB, PatternLike
from agentdb.types import ActionPattern, SemanticPattern


def _domain(url: Optional[str]) -> str:
    if not url:
        return "unknown"
    host = urlparse(url).hostname
    if not host:
        return "unknown"
    return host[4:] if host.startswith("www.") else host


class PatternRecognizer:
    """Tracks how often each action sequence recurs per site.

    A sequence's intent is ``<domain>_<action1>_<action2>...``, with the
    domain taken from the first action's url. Repeated sequences bump the
    frequency of the intent first seen; confidence is the fraction of
    successful actions in that first sequence.
    """

    def __init__(self, db: AgentDB) -> None:
        self._db = db
        self._patterns: Dict[str, SemanticPattern] = {}

    def recognize(self, actions: Sequence[ActionPattern]) -> Optional[SemanticPattern]:
        if not actions:
            return None

        intent = self.intent_of(actions)
        existing = self._patterns.get(intent)
        if existing is not None:
            existing.frequency += 1
            return existing

        successes = sum(1 for a in actions if a.success is True)
        pattern = SemanticPattern(
            intent=intent,
            confidence=successes / len(actions),
            actions=list(actions),
        )
        self._patterns[intent] = pattern
        return pattern

    @staticmethod
    def intent_of(actions: Sequence[ActionPattern]) -> str:
        steps = "_".join(a.action for a in actions)
        return f"{_domain(actions[0].url)}_{steps}"

    def find_similar_patterns(self, query: PatternLike, limit: int = 5) -> List[ActionPattern]:
        """Stored patterns closest to *query*, looked up in the store."""
        return [r.pattern for r in self._db.find_similar(query, limit)]

    def patterns(self) -> List[SemanticPattern]:
        return list(self._patterns.values())

    def top(self, n: int = 5) -> List[SemanticPattern]:
        return sorted(self._patterns.values(), key=lambda p: p.frequency, reverse=True)[:n]

    def average_confidence(self) -> float:
        if not self._patterns:
            return 0.0
        return sum(p.confidence for p in self._patterns.values()) / len(self._patterns)
