"""Block/allow intents and their one-line confirmations.

Each intent runs one toggle and renders the result as the sentence a
voice assistant or the CLI says back to the user.
"""

import logging
from dataclasses import dataclass

from silencethelan.models import ActivityIdentity, Outcome, PersonIdentity, ToggleResult
from silencethelan.toggle import BulkToggleCoordinator

logger = logging.getLogger(__name__)

NOT_ON_HOME_NETWORK_DIALOG = "Sorry, you need to be on your home network to control this"
STORE_UNAVAILABLE_DIALOG = "Something went wrong updating your rules. Please try again."


@dataclass(frozen=True)
class IntentResponse:
    result: ToggleResult
    dialog: str


def _verb(blocked: bool) -> str:
    return "Blocked" if blocked else "Allowed"


def person_dialog(result: ToggleResult, blocked: bool, requested_name: str) -> str:
    """Render a person-level toggle result.

    Args:
        result: Result of BulkToggleCoordinator.set_blocked
        blocked: Whether the request was a block
        requested_name: Name as the user asked for it (echoed on NOT_FOUND)
    """
    if result.outcome is Outcome.REJECTED:
        return NOT_ON_HOME_NETWORK_DIALOG
    if result.outcome is Outcome.NOT_FOUND:
        return f"I couldn't find anyone named {requested_name} in your rules"
    if result.outcome is Outcome.STORE_UNAVAILABLE:
        return STORE_UNAVAILABLE_DIALOG

    activities = ", ".join(result.activity_names)
    return (
        f"{_verb(blocked)} {result.person_display_name}. "
        f"{result.affected_rule_count} rules affected: {activities}"
    )


def activity_dialog(
    result: ToggleResult,
    blocked: bool,
    person_name: str,
    activity_name: str,
) -> str:
    """Render a single-activity toggle result."""
    if result.outcome is Outcome.REJECTED:
        return NOT_ON_HOME_NETWORK_DIALOG
    if result.outcome is Outcome.NOT_FOUND:
        return f"I couldn't find {activity_name} for {person_name}"
    if result.outcome is Outcome.STORE_UNAVAILABLE:
        return STORE_UNAVAILABLE_DIALOG
    return f"{_verb(blocked)} {person_name}'s {activity_name}"


class Intents:
    """The four user-facing commands."""

    def __init__(self, coordinator: BulkToggleCoordinator) -> None:
        self.coordinator = coordinator

    def block_person(self, person: PersonIdentity) -> IntentResponse:
        return self._person(person, blocked=True)

    def allow_person(self, person: PersonIdentity) -> IntentResponse:
        return self._person(person, blocked=False)

    def block_activity(self, activity: ActivityIdentity) -> IntentResponse:
        return self._activity(activity, blocked=True)

    def allow_activity(self, activity: ActivityIdentity) -> IntentResponse:
        return self._activity(activity, blocked=False)

    def _person(self, person: PersonIdentity, blocked: bool) -> IntentResponse:
        result = self.coordinator.set_blocked(person.id, blocked)
        dialog = person_dialog(result, blocked, person.display_name)
        logger.debug(f"Person intent: {dialog}")
        return IntentResponse(result=result, dialog=dialog)

    def _activity(self, activity: ActivityIdentity, blocked: bool) -> IntentResponse:
        result = self.coordinator.set_rule_blocked(activity.rule_id, blocked)
        dialog = activity_dialog(result, blocked, activity.person_name, activity.activity_name)
        logger.debug(f"Activity intent: {dialog}")
        return IntentResponse(result=result, dialog=dialog)
