"""Data models for silencethelan rules and toggle results."""

from silencethelan.models.rules import (
    ActivityIdentity,
    PersonIdentity,
    Rule,
)
from silencethelan.models.results import (
    Outcome,
    RejectReason,
    ToggleResult,
)

__all__ = [
    "ActivityIdentity",
    "PersonIdentity",
    "Rule",
    "Outcome",
    "RejectReason",
    "ToggleResult",
]
