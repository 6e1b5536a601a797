"""Bulk block/allow of a person's rules.

A toggle request runs strictly in order:
1. Check the reachability gate (no store access if unreachable)
2. Fetch selected rules and keep those matching the person key
3. Set is_blocked on every match
4. Persist all matches with a single save
5. Refresh the rule cache and report what changed

The store's writer lock is held across steps 2-4, so concurrent toggles
are serialized. ``RuleStore.save`` is all-or-nothing; on failure the
in-memory rules are restored and the request reports STORE_UNAVAILABLE.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from silencethelan.errors import StoreUnavailable
from silencethelan.identity import normalize
from silencethelan.models import RejectReason, Rule, ToggleResult
from silencethelan.reachability import ReachabilityGate
from silencethelan.storage import RuleStore

logger = logging.getLogger(__name__)


class RuleCache:
    """In-memory copy of the selected rules, for display.

    Holds the store's live rule objects; reload after every write so it
    never disagrees with the store.
    """

    def __init__(self) -> None:
        self._rules: list[Rule] = []

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    @property
    def is_empty(self) -> bool:
        return not self._rules

    def load(self, store: RuleStore) -> None:
        self._rules = store.fetch_selected()
        logger.debug(f"Rule cache loaded {len(self._rules)} selected rules")

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        return None


@dataclass
class RuleContext:
    """Everything a toggle request needs, passed explicitly."""

    store: RuleStore
    gate: ReachabilityGate
    cache: RuleCache = field(default_factory=RuleCache)


class BulkToggleCoordinator:
    """Blocks or allows every selected rule for a person as one unit."""

    def __init__(self, context: RuleContext) -> None:
        self.context = context

    def set_blocked(self, person: str, blocked: bool) -> ToggleResult:
        """Block (True) or allow (False) all of a person's selected rules.

        Args:
            person: Person key or display name; matched case-insensitively
            blocked: Desired enforcement state

        Returns:
            ToggleResult with outcome OK, REJECTED, NOT_FOUND or STORE_UNAVAILABLE
        """
        if not self.context.gate.is_reachable:
            logger.info(f"Rejected toggle for '{person}': controller not reachable")
            return ToggleResult.rejected(person, RejectReason.NOT_ON_HOME_NETWORK)

        key = normalize(person)
        store = self.context.store

        try:
            with store.writer():
                matched = [
                    rule
                    for rule in store.fetch_selected()
                    if normalize(rule.person_name) == key
                ]
                if not matched:
                    logger.info(f"No selected rules for person '{person}'")
                    return ToggleResult.not_found(person)

                for rule in matched:
                    rule.is_blocked = blocked

                store.save()
                self._refresh_cache()
        except StoreUnavailable as e:
            logger.error(f"Toggle for '{person}' failed: {e}")
            return ToggleResult.store_unavailable(person, str(e))

        verb = "Blocked" if blocked else "Allowed"
        logger.info(f"{verb} {matched[0].person_name}: {len(matched)} rule(s)")
        return ToggleResult.ok(
            person,
            matched[0].person_name,
            [rule.activity_name for rule in matched],
        )

    def set_rule_blocked(self, rule_id: str, blocked: bool) -> ToggleResult:
        """Block or allow a single selected rule (one person's one activity).

        A rule already in the requested state is reported as OK without a write.
        """
        if not self.context.gate.is_reachable:
            logger.info(f"Rejected toggle for rule {rule_id}: controller not reachable")
            return ToggleResult.rejected(rule_id, RejectReason.NOT_ON_HOME_NETWORK)

        store = self.context.store

        try:
            with store.writer():
                rule = store.get(rule_id)
                if rule is None or not rule.is_selected:
                    logger.info(f"No selected rule with id {rule_id}")
                    return ToggleResult.not_found(rule_id)

                if rule.is_blocked != blocked:
                    rule.is_blocked = blocked
                    store.save()
                    self._refresh_cache()
        except StoreUnavailable as e:
            logger.error(f"Toggle for rule {rule_id} failed: {e}")
            return ToggleResult.store_unavailable(rule_id, str(e))

        return ToggleResult.ok(rule_id, rule.person_name, [rule.activity_name])

    def _refresh_cache(self) -> None:
        try:
            self.context.cache.load(self.context.store)
        except StoreUnavailable as e:
            # The write is committed; the cache catches up on the next load
            logger.warning(f"Rule cache reload failed after save: {e}")
