"""Running statistics over the pattern catalog."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from agentdb.types import ActionPattern, PatternSummary, Statistics


class StatisticsAggregator:
    """Counts updated incrementally on every write.

    Embedding time is tracked only for writes made by this process; a store
    reloaded from disk reports 0 until it embeds something.
    """

    def __init__(self) -> None:
        self._total = 0
        self._successes = 0
        self._action_types: Dict[str, int] = {}
        self._embed_count = 0
        self._embed_total_ms = 0.0
        # (action, selector) -> [count, successes], first-seen order
        self._groups: Dict[Tuple[str, Optional[str]], List[int]] = {}

    @classmethod
    def from_patterns(cls, patterns: Iterable[ActionPattern]) -> "StatisticsAggregator":
        agg = cls()
        for pattern in patterns:
            agg.record(pattern)
        return agg

    def record(self, pattern: ActionPattern, embedding_ms: Optional[float] = None) -> None:
        self._total += 1
        if pattern.success is True:
            self._successes += 1
        self._action_types[pattern.action] = self._action_types.get(pattern.action, 0) + 1

        group = self._groups.setdefault((pattern.action, pattern.selector), [0, 0])
        group[0] += 1
        if pattern.success is True:
            group[1] += 1

        if embedding_ms is not None:
            self._embed_count += 1
            self._embed_total_ms += max(embedding_ms, 0.0)

    def statistics(self) -> Statistics:
        return Statistics(
            total_actions=self._total,
            success_rate=self._successes / self._total if self._total else 0.0,
            action_types=dict(self._action_types),
            average_embedding_time=(
                self._embed_total_ms / self._embed_count if self._embed_count else 0.0
            ),
        )

    def top_patterns(self, n: int = 10) -> List[PatternSummary]:
        """Most frequent ``(action, selector)`` groups, ties in first-seen order."""
        if n <= 0:
            return []
        summaries = [
            PatternSummary(
                action=action,
                selector=selector,
                count=count,
                success_rate=successes / count,
            )
            for (action, selector), (count, successes) in self._groups.items()
        ]
        summaries.sort(key=lambda s: s.count, reverse=True)
        return summaries[:n]
