"""Tests for the person/activity entity catalog."""

from pathlib import Path

import pytest

from silencethelan.catalog import ActivityLookup, EntityCatalog, EntityLookup, PersonLookup
from silencethelan.errors import StoreUnavailable
from silencethelan.identity import normalize
from silencethelan.models import Rule
from silencethelan.storage import RuleStore


@pytest.fixture()
def store(tmp_path: Path) -> RuleStore:
    store = RuleStore(tmp_path / "rules.db")
    store.connect()
    store.add_rules([
        Rule("r1", "bob", "Roblox", is_selected=True),
        Rule("r2", "Alice", "YouTube", is_selected=True),
        Rule("r3", "alice", "TikTok", is_selected=True),
        Rule("r4", "Carol", "Games", is_selected=False),
        Rule("r5", "Bob", "YouTube", is_selected=True),
        Rule("r6", "Dana", "Internet", is_selected=True),
    ])
    yield store  # type: ignore[misc]
    store.close()


@pytest.fixture()
def catalog(store: RuleStore) -> EntityCatalog:
    return EntityCatalog(store)


class TestListPersons:
    def test_deduplicated_by_key(self, catalog: EntityCatalog) -> None:
        persons = catalog.list_persons()
        keys = [p.id for p in persons]
        assert len(keys) == len(set(keys))
        assert set(keys) == {"alice", "bob", "dana"}

    def test_first_seen_casing_wins(self, catalog: EntityCatalog) -> None:
        names = {p.id: p.display_name for p in catalog.list_persons()}
        assert names["alice"] == "Alice"
        assert names["bob"] == "bob"

    def test_sorted_by_display_name(self, catalog: EntityCatalog) -> None:
        names = [p.display_name for p in catalog.list_persons()]
        # Case-sensitive: uppercase sorts before lowercase
        assert names == ["Alice", "Dana", "bob"]
        assert names == sorted(names)

    def test_unselected_rules_excluded(self, catalog: EntityCatalog) -> None:
        assert "carol" not in [p.id for p in catalog.list_persons()]

    def test_count_matches_store_stats(self, catalog: EntityCatalog, store: RuleStore) -> None:
        store.add_rules([
            Rule("r7", "Straße", "YouTube", is_selected=True),
            Rule("r8", "STRASSE", "Games", is_selected=True),
        ])
        assert len(catalog.list_persons()) == store.get_stats()["persons"] == 4

    def test_reflects_current_store(self, catalog: EntityCatalog, store: RuleStore) -> None:
        store.add_rule(Rule("r7", "Eve", "Twitch", is_selected=True))
        assert "eve" in [p.id for p in catalog.list_persons()]

    def test_empty_store(self, tmp_path: Path) -> None:
        with RuleStore(tmp_path / "empty.db") as empty:
            assert EntityCatalog(empty).list_persons() == []


class TestListActivities:
    def test_one_entry_per_selected_rule(self, catalog: EntityCatalog) -> None:
        activities = catalog.list_activities()
        assert sorted(a.rule_id for a in activities) == ["r1", "r2", "r3", "r5", "r6"]

    def test_same_activity_for_two_people_kept(self, catalog: EntityCatalog) -> None:
        youtube = [a for a in catalog.list_activities() if a.activity_name == "YouTube"]
        assert {a.id for a in youtube} == {"alice-youtube", "bob-youtube"}

    def test_sorted_by_activity_name(self, catalog: EntityCatalog) -> None:
        names = [a.activity_name for a in catalog.list_activities()]
        assert names == sorted(names)

    def test_back_references(self, catalog: EntityCatalog) -> None:
        tiktok = [a for a in catalog.list_activities() if a.rule_id == "r3"][0]
        assert tiktok.id == "alice-tiktok"
        assert tiktok.person_name == "alice"
        assert tiktok.activity_name == "TikTok"


class TestFind:
    def test_find_persons_substring(self, catalog: EntityCatalog) -> None:
        assert [p.id for p in catalog.find_persons("LI")] == ["alice"]

    def test_find_persons_is_subset(self, catalog: EntityCatalog) -> None:
        everyone = catalog.list_persons()
        for text in ["a", "B", "", "zzz"]:
            found = catalog.find_persons(text)
            assert all(p in everyone for p in found)
            assert all(normalize(text) in normalize(p.display_name) for p in found)

    def test_find_persons_no_match(self, catalog: EntityCatalog) -> None:
        assert catalog.find_persons("zed") == []

    def test_find_activities_by_activity_name(self, catalog: EntityCatalog) -> None:
        assert sorted(a.rule_id for a in catalog.find_activities("tube")) == ["r2", "r5"]

    def test_find_activities_by_person_name(self, catalog: EntityCatalog) -> None:
        assert sorted(a.rule_id for a in catalog.find_activities("ALICE")) == ["r2", "r3"]

    def test_find_is_plain_substring(self, catalog: EntityCatalog) -> None:
        # No tokenization: words out of order do not match
        assert catalog.find_activities("tube you") == []


class TestResolveByIds:
    def test_resolve_persons_keeps_list_order(self, catalog: EntityCatalog) -> None:
        resolved = catalog.resolve_persons(["bob", "alice"])
        assert [p.id for p in resolved] == ["alice", "bob"]

    def test_resolve_persons_unknown_ids_ignored(self, catalog: EntityCatalog) -> None:
        assert [p.id for p in catalog.resolve_persons(["carol", "dana"])] == ["dana"]

    def test_resolve_activities(self, catalog: EntityCatalog) -> None:
        resolved = catalog.resolve_activities(["bob-youtube", "alice-tiktok"])
        full = [a.id for a in catalog.list_activities()]
        assert [a.id for a in resolved] == [i for i in full if i in {"bob-youtube", "alice-tiktok"}]


def _suggested_ids(lookup: EntityLookup) -> list[str]:
    return [entity.id for entity in lookup.suggested()]


class TestLookups:
    def test_person_lookup(self, catalog: EntityCatalog) -> None:
        lookup = PersonLookup(catalog)
        assert lookup.suggested() == catalog.list_persons()
        assert [p.id for p in lookup.search("dan")] == ["dana"]
        assert [p.id for p in lookup.by_id(["alice"])] == ["alice"]

    def test_activity_lookup(self, catalog: EntityCatalog) -> None:
        lookup = ActivityLookup(catalog)
        assert lookup.suggested() == catalog.list_activities()
        assert [a.rule_id for a in lookup.search("roblox")] == ["r1"]
        assert [a.rule_id for a in lookup.by_id(["dana-internet"])] == ["r6"]

    def test_lookups_share_one_interface(self, catalog: EntityCatalog) -> None:
        lookups: list[EntityLookup] = [PersonLookup(catalog), ActivityLookup(catalog)]
        assert [_suggested_ids(lookup) for lookup in lookups] == [
            [p.id for p in catalog.list_persons()],
            [a.id for a in catalog.list_activities()],
        ]


class TestStoreFailure:
    def test_fetch_failure_propagates(self, catalog: EntityCatalog, store: RuleStore) -> None:
        store.close()
        with pytest.raises(StoreUnavailable):
            catalog.list_persons()
        with pytest.raises(StoreUnavailable):
            catalog.find_activities("a")
