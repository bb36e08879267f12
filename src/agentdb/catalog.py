"""Pattern catalog: the id -> ActionPattern source of truth."""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from agentdb.types import ActionPattern

Predicate = Callable[[ActionPattern], bool]


class PatternCatalog:
    """Insertion-ordered mapping from identifier to stored pattern.

    Filters are linear scans; catalogs are expected to stay in the
    thousands of entries.
    """

    def __init__(self) -> None:
        self._patterns: Dict[int, ActionPattern] = {}

    def put(self, id: int, pattern: ActionPattern) -> None:
        if id in self._patterns:
            raise ValueError(f"Pattern {id} already stored")
        self._patterns[id] = pattern

    def get(self, id: int) -> Optional[ActionPattern]:
        return self._patterns.get(id)

    def all(self) -> List[Tuple[int, ActionPattern]]:
        return list(self._patterns.items())

    def filter(self, predicate: Predicate) -> List[Tuple[int, ActionPattern]]:
        return [(i, p) for i, p in self._patterns.items() if predicate(p)]

    def patterns(self) -> Iterator[ActionPattern]:
        return iter(self._patterns.values())

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, id: object) -> bool:
        return id in self._patterns


def success_only(pattern: ActionPattern) -> bool:
    return pattern.success is True


def url_contains(fragment: str) -> Predicate:
    """Predicate matching patterns whose url contains *fragment*."""

    def _match(pattern: ActionPattern) -> bool:
        return pattern.url is not None and fragment in pattern.url

    return _match


def metadata_matches(expected: Mapping[str, str]) -> Predicate:
    """Predicate matching patterns whose metadata contains every item of *expected*.

    Patterns without metadata never match a non-empty filter.
    """
    items = dict(expected)

    def _match(pattern: ActionPattern) -> bool:
        if not items:
            return True
        meta = pattern.metadata
        if not meta:
            return False
        return all(k in meta and meta[k] == v for k, v in items.items())

    return _match
