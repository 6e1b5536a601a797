"""Rule storage for silencethelan."""

from silencethelan.storage.db import RuleStore

__all__ = ["RuleStore"]
