"""Person and activity catalog for entity pickers.

Builds the "who" and "what" lists offered to a picker (shortcut phrases,
CLI completion) from the currently selected rules. Nothing is cached: every
query re-reads the store so results always match its current contents.
"""

from collections.abc import Iterable
from typing import Protocol, TypeVar

from silencethelan.identity import activity_key, normalize
from silencethelan.models import ActivityIdentity, PersonIdentity
from silencethelan.storage import RuleStore

E = TypeVar("E", PersonIdentity, ActivityIdentity)
E_co = TypeVar("E_co", covariant=True)


class EntityCatalog:
    """Read-only queries over the selected rule set.

    Store failures propagate as StoreUnavailable; no partial lists are
    returned.
    """

    def __init__(self, store: RuleStore) -> None:
        self.store = store

    def list_persons(self) -> list[PersonIdentity]:
        """One entry per person key, first-seen casing, sorted by display name."""
        seen: set[str] = set()
        persons: list[PersonIdentity] = []

        for rule in self.store.fetch_selected():
            key = normalize(rule.person_name)
            if key not in seen:
                seen.add(key)
                persons.append(PersonIdentity(id=key, display_name=rule.person_name))

        return sorted(persons, key=lambda p: p.display_name)

    def list_activities(self) -> list[ActivityIdentity]:
        """One entry per selected rule, sorted by activity name."""
        activities = [
            ActivityIdentity(
                id=activity_key(rule.person_name, rule.activity_name),
                person_name=rule.person_name,
                activity_name=rule.activity_name,
                rule_id=rule.rule_id,
            )
            for rule in self.store.fetch_selected()
        ]
        return sorted(activities, key=lambda a: a.activity_name)

    def find_persons(self, matching: str) -> list[PersonIdentity]:
        needle = normalize(matching)
        return [p for p in self.list_persons() if needle in normalize(p.display_name)]

    def find_activities(self, matching: str) -> list[ActivityIdentity]:
        """Activities whose activity name or person name contains the text."""
        needle = normalize(matching)
        return [
            a
            for a in self.list_activities()
            if needle in normalize(a.activity_name) or needle in normalize(a.person_name)
        ]

    def resolve_persons(self, ids: Iterable[str]) -> list[PersonIdentity]:
        return _keep_ids(self.list_persons(), ids)

    def resolve_activities(self, ids: Iterable[str]) -> list[ActivityIdentity]:
        return _keep_ids(self.list_activities(), ids)


def _keep_ids(entities: list[E], ids: Iterable[str]) -> list[E]:
    """Filter to the requested ids, keeping the full list's order."""
    wanted = set(ids)
    return [e for e in entities if e.id in wanted]


class EntityLookup(Protocol[E_co]):
    """Capability set a picker needs for one entity kind."""

    def by_id(self, ids: Iterable[str]) -> list[E_co]: ...

    def suggested(self) -> list[E_co]: ...

    def search(self, text: str) -> list[E_co]: ...


class PersonLookup:
    """EntityLookup for people."""

    def __init__(self, catalog: EntityCatalog) -> None:
        self.catalog = catalog

    def by_id(self, ids: Iterable[str]) -> list[PersonIdentity]:
        return self.catalog.resolve_persons(ids)

    def suggested(self) -> list[PersonIdentity]:
        return self.catalog.list_persons()

    def search(self, text: str) -> list[PersonIdentity]:
        return self.catalog.find_persons(text)


class ActivityLookup:
    """EntityLookup for (person, activity) rules."""

    def __init__(self, catalog: EntityCatalog) -> None:
        self.catalog = catalog

    def by_id(self, ids: Iterable[str]) -> list[ActivityIdentity]:
        return self.catalog.resolve_activities(ids)

    def suggested(self) -> list[ActivityIdentity]:
        return self.catalog.list_activities()

    def search(self, text: str) -> list[ActivityIdentity]:
        return self.catalog.find_activities(text)
