"""Rule identity keys and rule-name parsing.

Person and activity names arrive as free text (typed, spoken, or read off
controller rule names). Every comparison goes through ``normalize`` so that
"Alice", " alice" and "ALICE" collapse to one identity.

Case folding rule: ``str.strip()`` then ``str.casefold()``. casefold is
locale-independent and folds more than ``lower()`` (e.g. "ß" -> "ss").
"""

import re
from collections.abc import Callable, Iterable
from typing import Optional, TypeVar

T = TypeVar("T")

DEFAULT_PREFIXES: tuple[str, ...] = ("Downtime-", "STL-")
MAX_CUSTOM_PREFIXES = 3
BLOCKING_ACTIONS = frozenset({"BLOCK", "DROP", "REJECT"})
DEFAULT_ACTIVITY = "Internet"

_SEPARATORS = re.compile(r"[- ]")


def normalize(text: str) -> str:
    """Return the identity key for a display string."""
    return text.strip().casefold()


def person_key(person_name: str) -> str:
    """Identity key for a person."""
    return normalize(person_name)


def activity_key(person_name: str, activity_name: str) -> str:
    """Identity key for a (person, activity) pair, e.g. "alice-youtube"."""
    return f"{normalize(person_name)}-{normalize(activity_name)}"


class RulePrefixMatcher:
    """Identifies managed controller rules by name prefix.

    Managed rules are named ``<prefix><person>[-<activity>...]``, e.g.
    "Downtime-Rishi-Games". The default prefixes are always active; up to
    MAX_CUSTOM_PREFIXES custom ones are appended and the rest ignored.
    """

    def __init__(self, custom_prefixes: Optional[Iterable[str]] = None) -> None:
        custom = [p for p in (custom_prefixes or []) if p][:MAX_CUSTOM_PREFIXES]
        self.prefixes: tuple[str, ...] = DEFAULT_PREFIXES + tuple(custom)

    def matching_prefix(self, rule_name: str) -> Optional[str]:
        """Return the first prefix the rule name starts with (case-insensitive)."""
        lowered = rule_name.casefold()
        for prefix in self.prefixes:
            if lowered.startswith(prefix.casefold()):
                return prefix
        return None

    def matches(self, rule_name: str) -> bool:
        return self.matching_prefix(rule_name) is not None

    def display_name(self, rule_name: str) -> str:
        """Strip the managed prefix: "Downtime-Rishi-Games" -> "Rishi-Games"."""
        prefix = self.matching_prefix(rule_name)
        if prefix is None:
            return rule_name
        return rule_name[len(prefix):]

    def person_name(self, rule_name: str) -> str:
        """Person part of a rule name: "Downtime-Rishi-Games" -> "Rishi"."""
        return _SEPARATORS.split(self.display_name(rule_name))[0]

    def activity_name(self, rule_name: str) -> str:
        """Activity part: "Downtime-Rishi-Video-Games" -> "Video Games".

        Rules without an activity part control all of the person's "Internet".
        """
        parts = _SEPARATORS.split(self.display_name(rule_name))
        if len(parts) > 1:
            return " ".join(parts[1:])
        return DEFAULT_ACTIVITY

    def filter_blocking_rules(
        self,
        rules: Iterable[T],
        get_name: Callable[[T], str],
        get_action: Callable[[T], str],
    ) -> list[T]:
        """Keep rules with a managed prefix and a blocking action."""
        return [
            rule
            for rule in rules
            if self.matches(get_name(rule))
            and get_action(rule).upper() in BLOCKING_ACTIONS
        ]
