"""Shortcut phrases ("Block Alice", "Allow Alice's YouTube").

Parses a typed or transcribed phrase into a command, resolves the person or
activity through the entity catalog, and runs the matching intent.

Supported phrases (case-insensitive, optional trailing "in SilenceTheLAN"):
    Block <person> / Silence <person> / Turn off <person>'s internet
    Allow <person> / Unsilence <person> / Turn on <person>'s internet
    Block <person>'s <activity>
    Allow <person>'s <activity>
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from silencethelan.catalog import ActivityLookup, EntityCatalog, EntityLookup, PersonLookup
from silencethelan.identity import activity_key, person_key
from silencethelan.intents import IntentResponse, Intents, activity_dialog
from silencethelan.models import ActivityIdentity, PersonIdentity, ToggleResult

logger = logging.getLogger(__name__)

APP_SUFFIX_PATTERN = re.compile(r"\s+in\s+silence\s*the\s*lan\s*$", re.IGNORECASE)

# "Turn off Alice's internet" - checked before the activity pattern
TURN_PATTERN = re.compile(
    r"^turn\s+(on|off)\s+"
    r"(.+?)['’]s\s+internet$",  # Person
    re.IGNORECASE,
)

ACTIVITY_PATTERN = re.compile(
    r"^(block|allow)\s+"
    r"(.+?)['’]s\s+"  # Person
    r"(.+)$",              # Activity
    re.IGNORECASE,
)

PERSON_PATTERN = re.compile(
    r"^(block|allow|silence|unsilence)\s+(.+)$",
    re.IGNORECASE,
)

BLOCKING_VERBS = {"block", "silence", "off"}


@dataclass(frozen=True)
class ShortcutCommand:
    """A parsed phrase."""

    blocked: bool
    person: str
    activity: Optional[str] = None


def parse_phrase(text: str) -> Optional[ShortcutCommand]:
    """Parse a shortcut phrase, or return None if it isn't one."""
    phrase = APP_SUFFIX_PATTERN.sub("", text.strip()).strip().rstrip(".!")

    match = TURN_PATTERN.match(phrase)
    if match:
        return ShortcutCommand(
            blocked=match.group(1).lower() in BLOCKING_VERBS,
            person=match.group(2).strip(),
        )

    match = ACTIVITY_PATTERN.match(phrase)
    if match:
        return ShortcutCommand(
            blocked=match.group(1).lower() in BLOCKING_VERBS,
            person=match.group(2).strip(),
            activity=match.group(3).strip(),
        )

    match = PERSON_PATTERN.match(phrase)
    if match:
        return ShortcutCommand(
            blocked=match.group(1).lower() in BLOCKING_VERBS,
            person=match.group(2).strip(),
        )

    return None


class ShortcutRunner:
    """Runs parsed phrases against the catalog and intents."""

    def __init__(self, catalog: EntityCatalog, intents: Intents) -> None:
        self.persons: EntityLookup[PersonIdentity] = PersonLookup(catalog)
        self.activities: EntityLookup[ActivityIdentity] = ActivityLookup(catalog)
        self.intents = intents

    def run(self, text: str) -> Optional[IntentResponse]:
        """Run a phrase. Returns None if the phrase isn't understood.

        Raises:
            StoreUnavailable: If the catalog cannot be read
        """
        command = parse_phrase(text)
        if command is None:
            logger.debug(f"Unrecognized phrase: {text!r}")
            return None

        return self.run_command(command)

    def run_command(self, command: ShortcutCommand) -> IntentResponse:
        """Resolve and run an already-parsed command."""
        if command.activity is None:
            return self._run_person(command)
        return self._run_activity(command, command.activity)

    def _run_person(self, command: ShortcutCommand) -> IntentResponse:
        key = person_key(command.person)
        persons = self.persons.by_id([key])
        # Unknown people still go through the intent so the reachability
        # check and the not-found dialog stay in one place
        person = persons[0] if persons else PersonIdentity(id=key, display_name=command.person)

        if command.blocked:
            return self.intents.block_person(person)
        return self.intents.allow_person(person)

    def _run_activity(self, command: ShortcutCommand, activity: str) -> IntentResponse:
        key = activity_key(command.person, activity)
        activities = self.activities.by_id([key])
        if not activities:
            result = ToggleResult.not_found(command.person)
            return IntentResponse(
                result=result,
                dialog=activity_dialog(result, command.blocked, command.person, activity),
            )

        if len(activities) > 1:
            logger.warning(f"{len(activities)} rules match '{key}', using rule {activities[0].rule_id}")

        if command.blocked:
            return self.intents.block_activity(activities[0])
        return self.intents.allow_activity(activities[0])
