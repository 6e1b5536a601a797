"""Outcome of a toggle request, rendered by callers into a dialog line."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Outcome(str, Enum):
    OK = "ok"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"


class RejectReason(str, Enum):
    NOT_ON_HOME_NETWORK = "not_on_home_network"


@dataclass(frozen=True)
class ToggleResult:
    """Structured result of a block/allow request.

    Attributes:
        outcome: Terminal outcome of the request
        person: Person (or rule id) exactly as requested by the caller
        person_display_name: Display name of the matched person (OK only)
        affected_rule_count: Number of rules written (OK only)
        activity_names: Activity names of the affected rules, in fetch order
        reason: Why the request was rejected (REJECTED only)
        error: Store error message (STORE_UNAVAILABLE only)
    """

    outcome: Outcome
    person: Optional[str] = None
    person_display_name: Optional[str] = None
    affected_rule_count: int = 0
    activity_names: tuple[str, ...] = ()
    reason: Optional[RejectReason] = None
    error: Optional[str] = None

    @classmethod
    def ok(
        cls,
        person: str,
        person_display_name: str,
        activity_names: list[str],
    ) -> "ToggleResult":
        return cls(
            outcome=Outcome.OK,
            person=person,
            person_display_name=person_display_name,
            affected_rule_count=len(activity_names),
            activity_names=tuple(activity_names),
        )

    @classmethod
    def rejected(cls, person: str, reason: RejectReason) -> "ToggleResult":
        return cls(outcome=Outcome.REJECTED, person=person, reason=reason)

    @classmethod
    def not_found(cls, person: str) -> "ToggleResult":
        return cls(outcome=Outcome.NOT_FOUND, person=person)

    @classmethod
    def store_unavailable(cls, person: str, error: str) -> "ToggleResult":
        return cls(outcome=Outcome.STORE_UNAVAILABLE, person=person, error=error)

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.OK
