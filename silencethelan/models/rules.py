"""Access-control rule and the identities derived from it."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class Rule:
    """A (person, activity) pairing on the home controller.

    Attributes:
        rule_id: Controller-assigned identifier, stable across syncs
        person_name: Person display string as entered by the user
        activity_name: Activity/service display string (e.g., "YouTube")
        is_selected: Whether the rule is managed by the app (eligible for lookup/toggle)
        is_blocked: Enforcement state; True means the activity is blocked
        name: Raw rule name on the controller (e.g., "Downtime-Alice-YouTube")
        action: Controller action for the rule (BLOCK, DROP, REJECT, ALLOW)
        last_synced: When the rule was last written
    """

    rule_id: str
    person_name: str
    activity_name: str
    is_selected: bool = False
    is_blocked: bool = False
    name: Optional[str] = None
    action: str = "BLOCK"
    last_synced: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class PersonIdentity:
    """A person as presented to entity pickers.

    ``id`` is the normalized person name; ``display_name`` keeps the casing
    of the first rule seen for that person.
    """

    id: str
    display_name: str


@dataclass(frozen=True)
class ActivityIdentity:
    """A single (person, activity) rule as presented to entity pickers."""

    id: str  # "<person key>-<activity key>"
    person_name: str
    activity_name: str
    rule_id: str
