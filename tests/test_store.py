"""Tests for the DuckDB rule store."""

from pathlib import Path

import duckdb
import pytest

from silencethelan.errors import StoreUnavailable
from silencethelan.models import Rule
from silencethelan.storage import RuleStore


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "rules.db"


@pytest.fixture()
def store(db_path: Path) -> RuleStore:
    """Provide a connected RuleStore with three rules."""
    store = RuleStore(db_path)
    store.connect()
    store.add_rules([
        Rule("r1", "Alice", "YouTube", is_selected=True),
        Rule("r2", "alice", "TikTok", is_selected=True),
        Rule("r3", "Carol", "Games", is_selected=False),
    ])
    yield store  # type: ignore[misc]
    store.close()


def _blocked_in_db(store: RuleStore) -> dict[str, bool]:
    rows = store.conn.execute("SELECT rule_id, is_blocked FROM rules").fetchall()
    return dict(rows)


class TestFetch:
    def test_fetch_in_insertion_order(self, store: RuleStore) -> None:
        assert [r.rule_id for r in store.fetch()] == ["r1", "r2", "r3"]

    def test_fetch_selected(self, store: RuleStore) -> None:
        assert [r.rule_id for r in store.fetch_selected()] == ["r1", "r2"]

    def test_fetch_with_predicate(self, store: RuleStore) -> None:
        rules = store.fetch(lambda r: r.activity_name == "TikTok")
        assert [r.rule_id for r in rules] == ["r2"]

    def test_same_object_across_fetches(self, store: RuleStore) -> None:
        first = store.get("r1")
        second = store.get("r1")
        assert first is second

    def test_get_missing(self, store: RuleStore) -> None:
        assert store.get("nope") is None

    def test_pending_edits_survive_refetch(self, store: RuleStore) -> None:
        rule = store.get("r1")
        assert rule is not None
        rule.is_blocked = True
        assert store.get("r1").is_blocked is True  # type: ignore[union-attr]
        assert _blocked_in_db(store)["r1"] is False

    def test_fetch_when_closed_raises(self, store: RuleStore) -> None:
        store.close()
        with pytest.raises(StoreUnavailable):
            store.fetch()

    def test_last_synced_is_utc(self, store: RuleStore) -> None:
        rule = store.get("r1")
        assert rule is not None
        assert rule.last_synced.utcoffset() is not None
        assert rule.last_synced.utcoffset().total_seconds() == 0


class TestSave:
    def test_save_writes_changes(self, store: RuleStore) -> None:
        for rule in store.fetch_selected():
            rule.is_blocked = True
        assert store.has_changes()

        assert store.save() == 2
        assert not store.has_changes()
        assert _blocked_in_db(store) == {"r1": True, "r2": True, "r3": False}

    def test_save_without_changes(self, store: RuleStore) -> None:
        store.fetch()
        assert store.save() == 0

    def test_save_failure_commits_nothing(
        self, store: RuleStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        rules = store.fetch_selected()
        for rule in rules:
            rule.is_blocked = True

        original_write = store._write_rule
        calls = []

        def failing_write(rule: Rule, synced_at: object) -> None:
            calls.append(rule.rule_id)
            if len(calls) == 2:
                raise duckdb.IOException("disk full")
            original_write(rule, synced_at)  # type: ignore[arg-type]

        monkeypatch.setattr(store, "_write_rule", failing_write)

        with pytest.raises(StoreUnavailable):
            store.save()

        assert _blocked_in_db(store) == {"r1": False, "r2": False, "r3": False}
        # In-memory objects are restored too
        assert [r.is_blocked for r in rules] == [False, False]
        assert not store.has_changes()

    def test_discard(self, store: RuleStore) -> None:
        rule = store.get("r1")
        assert rule is not None
        rule.is_blocked = True
        store.discard()
        assert rule.is_blocked is False

    def test_persists_across_connections(self, store: RuleStore, db_path: Path) -> None:
        rule = store.get("r2")
        assert rule is not None
        rule.is_blocked = True
        store.save()
        store.close()

        with RuleStore(db_path) as reopened:
            assert reopened.get("r2").is_blocked is True  # type: ignore[union-attr]


class TestRuleManagement:
    def test_add_rule_replaces_existing_id(self, store: RuleStore) -> None:
        store.add_rule(Rule("r1", "Alice", "Netflix", is_selected=True, is_blocked=True))
        rule = store.get("r1")
        assert rule is not None
        assert rule.activity_name == "Netflix"
        assert rule.is_blocked is True
        assert [r.rule_id for r in store.fetch()] == ["r1", "r2", "r3"]

    def test_set_selected(self, store: RuleStore) -> None:
        assert store.set_selected("r3", True)
        assert [r.rule_id for r in store.fetch_selected()] == ["r1", "r2", "r3"]
        assert store.set_selected("r1", False)
        assert [r.rule_id for r in store.fetch_selected()] == ["r2", "r3"]

    def test_set_selected_missing(self, store: RuleStore) -> None:
        assert not store.set_selected("nope", True)

    def test_remove_rule(self, store: RuleStore) -> None:
        assert store.remove_rule("r2")
        assert not store.remove_rule("r2")
        assert [r.rule_id for r in store.fetch()] == ["r1", "r3"]

    def test_stats(self, store: RuleStore) -> None:
        store.get("r1").is_blocked = True  # type: ignore[union-attr]
        store.save()
        assert store.get_stats() == {
            "total_rules": 3,
            "selected_rules": 2,
            "blocked_rules": 1,
            "persons": 1,
        }

    def test_stats_persons_fold_like_catalog(self, store: RuleStore) -> None:
        store.add_rules([
            Rule("r4", "Straße", "YouTube", is_selected=True),
            Rule("r5", " STRASSE", "Games", is_selected=True),
        ])
        # Alice and Straße; casefold() maps "ß" to "ss"
        assert store.get_stats()["persons"] == 2
