"""Build managed rules from controller rule names and rule dumps.

Controller rules are named with a managed prefix ("Downtime-Alice-YouTube");
the person and activity come from the name. A rule dump is the JSON list a
controller returns for its ACL/firewall rules:

    [{"id": "r1", "name": "Downtime-Alice-YouTube", "action": "BLOCK", "enabled": true}, ...]
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Optional

from silencethelan.errors import RuleNameError
from silencethelan.identity import RulePrefixMatcher
from silencethelan.models import Rule

logger = logging.getLogger(__name__)


def rule_from_name(
    name: str,
    matcher: RulePrefixMatcher,
    rule_id: Optional[str] = None,
    action: str = "BLOCK",
    selected: bool = True,
    blocked: bool = False,
) -> Rule:
    """Create a rule from a controller rule name.

    Raises:
        RuleNameError: If the name has no managed prefix or no person after it
    """
    if not matcher.matches(name):
        prefixes = ", ".join(matcher.prefixes)
        raise RuleNameError(f"Rule name '{name}' does not start with one of: {prefixes}")

    person_name = matcher.person_name(name).strip()
    if not person_name:
        raise RuleNameError(f"Rule name '{name}' has no person after the prefix")

    return Rule(
        rule_id=rule_id or str(uuid.uuid4()),
        person_name=person_name,
        activity_name=matcher.activity_name(name),
        is_selected=selected,
        is_blocked=blocked,
        name=name,
        action=action.upper(),
    )


def load_rule_dump(path: Path, matcher: RulePrefixMatcher) -> list[Rule]:
    """Load managed blocking rules from a controller rule dump.

    Entries without a managed prefix or a blocking action are skipped. An
    enabled blocking rule is currently blocking. Names with nothing after the
    prefix are logged and skipped.

    Raises:
        ValueError: If the file is not a JSON list of rule objects
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and "data" in data:
        data = data["data"]  # controller API envelope
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON list of rules in {path}")

    entries = [entry for entry in data if isinstance(entry, dict) and entry.get("id")]
    managed = matcher.filter_blocking_rules(
        entries,
        get_name=lambda e: str(e.get("name", "")),
        get_action=lambda e: str(e.get("action", "")),
    )
    logger.info(f"{len(managed)} of {len(data)} rules in {path} are managed blocking rules")

    rules = []
    for entry in managed:
        try:
            rules.append(rule_from_name(
                entry["name"],
                matcher,
                rule_id=str(entry["id"]),
                action=entry["action"],
                selected=True,
                blocked=bool(entry.get("enabled", False)),
            ))
        except RuleNameError as e:
            logger.warning(f"Skipping rule {entry['id']}: {e}")
    return rules
