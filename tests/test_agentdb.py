"""Tests for the AgentDB facade: storing, searching, filtering, statistics."""

from __future__ import annotations

from typing import List

import numpy as np
import pytest

from agentdb import (
    ActionPattern,
    AgentDB,
    DimensionMismatchError,
    SimilarityResult,
    StoreClosedError,
)
from agentdb.embed.base import Embedder
from agentdb.embed.hashing import HashingEmbedder

TS = "2026-01-01T00:00:00+00:00"


@pytest.fixture(params=["hnsw", "exact"])
def db(request: pytest.FixtureRequest, tmp_path) -> AgentDB:
    return AgentDB(tmp_path / "agentdb", index=request.param)


@pytest.fixture
def seeded(db: AgentDB) -> AgentDB:
    db.store_action(ActionPattern(
        action="fill_form",
        selector='input[name="email"]',
        value="user@example.com",
        url="https://github.com/signup",
        success=True,
        metadata={"service": "github", "fieldType": "email"},
    ))
    db.store_action(ActionPattern(
        action="fill_form",
        selector='input[type="email"]',
        value="test@test.com",
        url="https://example.com/register",
        success=True,
        metadata={"fieldType": "email"},
    ))
    db.store_action(ActionPattern(
        action="click",
        selector='button[type="submit"]',
        url="https://github.com/signup",
        success=True,
        metadata={"service": "github"},
    ))
    return db


class TestStoreAction:
    def test_returns_sequential_ids(self, db: AgentDB) -> None:
        ids = [db.store_action(ActionPattern(action="click", selector=f"#b{i}")) for i in range(5)]
        assert ids == [0, 1, 2, 3, 4]
        assert len(db) == 5

    def test_assigns_timestamp(self, db: AgentDB) -> None:
        aid = db.store_action(ActionPattern(action="click"))
        assert db.get(aid).timestamp

    def test_keeps_given_timestamp(self, db: AgentDB) -> None:
        aid = db.store_action(ActionPattern(action="click", timestamp=TS))
        assert db.get(aid).timestamp == TS

    def test_accepts_mapping(self, db: AgentDB) -> None:
        aid = db.store_action({"action": "navigate", "url": "https://x.com", "success": True})
        stored = db.get(aid)
        assert isinstance(stored, ActionPattern)
        assert stored.url == "https://x.com"
        assert stored.success is True

    def test_metadata_is_copied(self, db: AgentDB) -> None:
        meta = {"service": "github"}
        aid = db.store_action(ActionPattern(action="click", metadata=meta))
        meta["service"] = "changed"
        assert db.get(aid).metadata == {"service": "github"}

    def test_action_required(self, db: AgentDB) -> None:
        with pytest.raises(ValueError):
            db.store_action({"selector": "#x"})
        with pytest.raises(ValueError):
            db.store_action(ActionPattern(action=""))
        assert len(db) == 0

    def test_rejects_non_pattern(self, db: AgentDB) -> None:
        with pytest.raises(TypeError):
            db.store_action("click")  # type: ignore[arg-type]

    def test_get_unknown(self, db: AgentDB) -> None:
        assert db.get(42) is None
        assert db.get_entry(42) is None

    def test_get_entry_embedding(self, db: AgentDB) -> None:
        pattern = ActionPattern(action="click", selector="#go", timestamp=TS)
        aid = db.store_action(pattern)
        entry = db.get_entry(aid)
        assert entry.id == aid
        assert entry.pattern == pattern
        assert np.array_equal(entry.embedding, HashingEmbedder(384).embed(pattern))


class TestFindSimilar:
    def test_empty_store(self, db: AgentDB) -> None:
        assert db.find_similar(ActionPattern(action="click")) == []

    def test_self_retrieval(self, db: AgentDB) -> None:
        a = ActionPattern(
            action="fill_form",
            selector="input[name=email]",
            url="https://x.com/signup",
            success=True,
            timestamp=TS,
        )
        db.store_action(a)
        db.store_action(ActionPattern(action="click", selector="#next"))
        results = db.find_similar(a, 1)
        assert len(results) == 1
        assert isinstance(results[0], SimilarityResult)
        assert results[0].pattern == a
        assert results[0].id == 0
        assert results[0].similarity == pytest.approx(1.0, abs=1e-5)

    def test_closer_selector_ranks_first(self, db: AgentDB) -> None:
        a = ActionPattern(action="fill_form", selector="input[name=email]",
                          url="https://x.com/signup", success=True)
        b = ActionPattern(action="fill_form", selector="input[type=email]",
                          url="https://y.com/register", success=True)
        c = ActionPattern(action="click", selector="button[type=submit]",
                          url="https://x.com/signup", success=True)
        for p in (a, b, c):
            db.store_action(p)

        query = ActionPattern(action="fill_form", selector="input[name=email]",
                              url="https://x.com/login")
        results = db.find_similar(query, 2)
        assert [r.id for r in results] == [0, 1]

    def test_ranking_is_descending(self, seeded: AgentDB) -> None:
        results = seeded.find_similar(
            ActionPattern(action="fill_form", selector='input[name="email"]',
                          url="https://github.com/signup"),
            10,
        )
        sims = [r.similarity for r in results]
        assert len(results) == 3
        assert sims == sorted(sims, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in sims)

    def test_at_most_k(self, seeded: AgentDB) -> None:
        results = seeded.find_similar(ActionPattern(action="fill_form"), 2)
        assert 0 < len(results) <= 2

    def test_query_without_action(self, seeded: AgentDB) -> None:
        results = seeded.find_similar({"selector": 'button[type="submit"]'}, 1)
        assert results[0].pattern.action == "click"

    def test_success_only(self, seeded: AgentDB) -> None:
        seeded.store_action(ActionPattern(action="fill_form", selector='input[name="bad"]', success=False))
        seeded.store_action(ActionPattern(action="fill_form", selector='input[name="good"]', success=True))
        seeded.store_action(ActionPattern(action="fill_form", selector='input[name="unknown"]'))
        results = seeded.find_similar(
            ActionPattern(action="fill_form", selector="input"), 10, success_only=True,
        )
        assert len(results) == 4
        assert all(r.pattern.success is True for r in results)

    def test_url_pattern(self, seeded: AgentDB) -> None:
        seeded.store_action(ActionPattern(action="fill_form", selector="input"))
        results = seeded.find_similar(
            ActionPattern(action="fill_form"), 10, url_pattern="github.com",
        )
        assert len(results) == 2
        assert all("github.com" in r.pattern.url for r in results)

    def test_refetches_when_filters_drop_candidates(self, db: AgentDB) -> None:
        failing = ActionPattern(action="fill_form", selector="#email", success=False)
        for _ in range(20):
            db.store_action(failing)
        db.store_action(ActionPattern(action="fill_form", selector="input.mail-field", success=True))

        results = db.find_similar(failing, 1, success_only=True)
        assert len(results) == 1
        assert results[0].id == 20

    def test_min_similarity(self, db: AgentDB) -> None:
        target = ActionPattern(action="solve_captcha", selector="#captcha", url="https://x.com")
        db.store_action(target)
        db.store_action(ActionPattern(action="navigate", url="https://other.org/page"))
        results = db.find_similar(target, 5, min_similarity=0.99)
        assert [r.id for r in results] == [0]

    def test_invalid_arguments(self, seeded: AgentDB) -> None:
        with pytest.raises(ValueError, match="k"):
            seeded.find_similar(ActionPattern(action="click"), 0)
        with pytest.raises(ValueError, match="min_similarity"):
            seeded.find_similar(ActionPattern(action="click"), 1, min_similarity=1.5)

    def test_outcome_does_not_affect_ranking(self, db: AgentDB) -> None:
        db.store_action(ActionPattern(action="click", selector="#go", success=False))
        db.store_action(ActionPattern(action="click", selector="#go", success=True))
        results = db.find_similar(ActionPattern(action="click", selector="#go"), 2)
        assert results[0].similarity == pytest.approx(results[1].similarity)
        assert [r.id for r in results] == [0, 1]


class TestQueryByMetadata:
    def test_match(self, seeded: AgentDB) -> None:
        results = seeded.query_by_metadata({"service": "github"})
        assert len(results) == 2
        assert all(p.metadata["service"] == "github" for p in results)

    def test_all_keys(self, seeded: AgentDB) -> None:
        results = seeded.query_by_metadata({"service": "github", "fieldType": "email"})
        assert [p.action for p in results] == ["fill_form"]

    def test_no_match(self, seeded: AgentDB) -> None:
        assert seeded.query_by_metadata({"service": "gitlab"}) == []

    def test_missing_metadata_never_matches(self, db: AgentDB) -> None:
        db.store_action(ActionPattern(action="click"))
        assert db.query_by_metadata({"service": "github"}) == []


class TestStatistics:
    def test_empty(self, db: AgentDB) -> None:
        stats = db.get_statistics()
        assert stats.total_actions == 0
        assert stats.success_rate == 0.0

    def test_counts(self, db: AgentDB) -> None:
        db.store_action(ActionPattern(action="fill_form", selector="input1", success=True))
        db.store_action(ActionPattern(action="fill_form", selector="input2", success=True))
        db.store_action(ActionPattern(action="fill_form", selector="input3", success=False))
        db.store_action(ActionPattern(action="click", selector="button", success=True))
        stats = db.get_statistics()
        assert stats.total_actions == 4
        assert stats.success_rate == 0.75
        assert stats.action_types == {"fill_form": 3, "click": 1}
        assert sum(stats.action_types.values()) == stats.total_actions
        assert stats.average_embedding_time >= 0.0

    def test_top_patterns(self, db: AgentDB) -> None:
        for _ in range(10):
            db.store_action(ActionPattern(action="fill_form", selector='input[name="email"]', success=True))
        for _ in range(3):
            db.store_action(ActionPattern(action="click", selector="button", success=True))
        top = db.get_top_patterns(5)
        assert [(s.pattern, s.count) for s in top] == [
            ('fill_form:input[name="email"]', 10),
            ("click:button", 3),
        ]


class _WrongLengthEmbedder(Embedder):
    """Claims 384 dimensions but returns shorter vectors."""

    @property
    def dimensions(self) -> int:
        return 384

    def embed(self, pattern: ActionPattern) -> np.ndarray:
        return np.ones(10, dtype=np.float32)


class _CountingEmbedder(HashingEmbedder):
    def __init__(self) -> None:
        super().__init__(384)
        self.calls: List[ActionPattern] = []

    def embed(self, pattern: ActionPattern) -> np.ndarray:
        self.calls.append(pattern)
        return super().embed(pattern)


class TestConfiguration:
    def test_custom_embedder_used(self, tmp_path) -> None:
        embedder = _CountingEmbedder()
        db = AgentDB(tmp_path / "db", embedder=embedder)
        db.store_action(ActionPattern(action="click"))
        assert [p.action for p in embedder.calls] == ["click"]

    def test_embedder_dimension_mismatch(self, tmp_path) -> None:
        with pytest.raises(DimensionMismatchError):
            AgentDB(tmp_path / "db", dimensions=128, embedder=HashingEmbedder(384))

    def test_wrong_vector_length_is_fatal(self, tmp_path) -> None:
        db = AgentDB(tmp_path / "db", embedder=_WrongLengthEmbedder())
        with pytest.raises(DimensionMismatchError):
            db.store_action(ActionPattern(action="click"))
        assert len(db) == 0
        assert db.get_statistics().total_actions == 0

    def test_unknown_index(self, tmp_path) -> None:
        with pytest.raises(ValueError, match="index"):
            AgentDB(tmp_path / "db", index="annoy")

    def test_properties(self, tmp_path) -> None:
        db = AgentDB(tmp_path / "db", dimensions=64)
        assert db.dimensions == 64
        assert db.path == tmp_path / "db"
        assert db.is_open


class TestLifecycle:
    def test_close(self, db: AgentDB) -> None:
        db.close()
        assert not db.is_open
        with pytest.raises(StoreClosedError):
            db.store_action(ActionPattern(action="click"))
        with pytest.raises(StoreClosedError):
            db.find_similar(ActionPattern(action="click"))
        with pytest.raises(StoreClosedError):
            db.save()

    def test_context_manager(self, tmp_path) -> None:
        with AgentDB(tmp_path / "db") as db:
            db.store_action(ActionPattern(action="click"))
            assert db.is_open
        assert not db.is_open
