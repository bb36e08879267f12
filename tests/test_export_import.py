"""Tests for training-data export and import."""

from __future__ import annotations

import json

import pytest

from agentdb import ActionPattern, AgentDB, InvalidTrainingDataError


@pytest.fixture
def db(tmp_path) -> AgentDB:
    return AgentDB(tmp_path / "source")


@pytest.fixture
def fresh(tmp_path) -> AgentDB:
    return AgentDB(tmp_path / "target")


def _fill(db: AgentDB) -> None:
    db.store_action(ActionPattern(action="fill_form", selector="input1", success=True,
                                  metadata={"service": "github"}))
    db.store_action(ActionPattern(action="click", selector="button1", success=False))
    db.store_action(ActionPattern(action="click", selector="button1", url="https://x.com"))


def _content(db: AgentDB) -> list:
    """Exported patterns as a sorted multiset of canonical JSON strings."""
    patterns = json.loads(db.export_training_data())["patterns"]
    return sorted(json.dumps(p, sort_keys=True) for p in patterns)


class TestExport:
    def test_document_shape(self, db: AgentDB) -> None:
        _fill(db)
        data = json.loads(db.export_training_data())
        assert data["version"] == "1.0.0"
        assert "exportedAt" in data
        assert len(data["patterns"]) == 3
        assert data["statistics"]["totalActions"] == 3

    def test_no_vectors_exported(self, db: AgentDB) -> None:
        _fill(db)
        data = json.loads(db.export_training_data())
        assert all("embedding" not in p and "id" not in p for p in data["patterns"])

    def test_export_empty(self, db: AgentDB) -> None:
        assert json.loads(db.export_training_data())["patterns"] == []

    def test_export_to_file(self, db: AgentDB, tmp_path) -> None:
        _fill(db)
        path = str(tmp_path / "training.json")
        document = db.export_training_data(path=path)
        with open(path) as f:
            assert f.read() == document


class TestImport:
    def test_round_trip(self, db: AgentDB, fresh: AgentDB) -> None:
        _fill(db)
        count = fresh.import_training_data(db.export_training_data())
        assert count == 3
        assert fresh.get_statistics().total_actions == db.get_statistics().total_actions
        assert _content(fresh) == _content(db)

    def test_imported_entries_get_new_ids(self, db: AgentDB, fresh: AgentDB) -> None:
        _fill(db)
        fresh.store_action(ActionPattern(action="navigate"))
        fresh.import_training_data(db.export_training_data())
        assert fresh.store_action(ActionPattern(action="scroll")) == 4

    def test_imported_are_searchable(self, db: AgentDB, fresh: AgentDB) -> None:
        _fill(db)
        fresh.import_training_data(db.export_training_data())
        results = fresh.find_similar(ActionPattern(action="fill_form", selector="input1"), 1)
        assert results[0].pattern.metadata == {"service": "github"}

    def test_hand_authored_mapping(self, fresh: AgentDB) -> None:
        count = fresh.import_training_data({
            "version": "1.0.0",
            "patterns": [
                {"action": "fill_form", "selector": "input", "success": True},
                {"action": "click", "selector": "button", "success": True},
            ],
            "comment": "seed data",
        })
        assert count == 2
        assert fresh.get_statistics().action_types == {"fill_form": 1, "click": 1}

    def test_import_from_file(self, db: AgentDB, fresh: AgentDB, tmp_path) -> None:
        _fill(db)
        path = str(tmp_path / "training.json")
        db.export_training_data(path=path)
        assert fresh.import_training_data(path=path) == 3

    @pytest.mark.parametrize("document", [
        "{not json",
        json.dumps({"version": "1.0.0"}),
        json.dumps({"version": "1.0.0", "patterns": "nope"}),
        json.dumps([{"action": "click"}]),
        json.dumps({"patterns": [{"action": "click"}, {"selector": "no action"}]}),
    ])
    def test_malformed_rejected(self, fresh: AgentDB, document: str) -> None:
        fresh.store_action(ActionPattern(action="navigate"))
        with pytest.raises(InvalidTrainingDataError):
            fresh.import_training_data(document)
        assert len(fresh) == 1
        assert fresh.get_statistics().total_actions == 1

    def test_no_args(self, fresh: AgentDB) -> None:
        with pytest.raises(ValueError, match="path or data"):
            fresh.import_training_data()
