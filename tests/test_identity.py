"""Tests for identity keys and rule-name prefix matching."""

from silencethelan.identity import (
    DEFAULT_PREFIXES,
    RulePrefixMatcher,
    activity_key,
    normalize,
    person_key,
)


class TestNormalize:
    def test_lowercases(self) -> None:
        assert normalize("Alice") == "alice"

    def test_strips_whitespace(self) -> None:
        assert normalize("  Alice \n") == "alice"

    def test_case_variants_collapse(self) -> None:
        assert normalize("ALICE") == normalize("alice") == normalize("Alice")

    def test_casefold_not_just_lower(self) -> None:
        # German sharp s folds to "ss"
        assert normalize("Straße") == normalize("STRASSE")

    def test_empty_string_is_valid_key(self) -> None:
        assert normalize("") == ""
        assert normalize("   ") == ""

    def test_deterministic(self) -> None:
        assert normalize("Rishi") == normalize("Rishi")


class TestKeys:
    def test_person_key(self) -> None:
        assert person_key(" Rishi") == "rishi"

    def test_activity_key(self) -> None:
        assert activity_key("Alice", "YouTube") == "alice-youtube"

    def test_activity_key_is_per_pair(self) -> None:
        assert activity_key("Alice", "YouTube") != activity_key("Bob", "YouTube")


class TestRulePrefixMatcher:
    def test_default_prefixes(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.prefixes == DEFAULT_PREFIXES
        assert matcher.matches("Downtime-Rishi")
        assert matcher.matches("STL-Rishi-Games")
        assert not matcher.matches("Guest-Network")

    def test_matching_is_case_insensitive(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.matches("downtime-rishi")
        assert matcher.matching_prefix("stl-Rishi") == "STL-"

    def test_custom_prefixes_limited_to_three(self) -> None:
        matcher = RulePrefixMatcher(["A-", "B-", "C-", "D-"])
        assert matcher.prefixes == DEFAULT_PREFIXES + ("A-", "B-", "C-")
        assert not matcher.matches("D-Rishi")

    def test_display_name_strips_prefix(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.display_name("Downtime-Rishi-Games") == "Rishi-Games"
        assert matcher.display_name("Other-Rule") == "Other-Rule"

    def test_person_name(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.person_name("Downtime-Rishi-Games") == "Rishi"
        assert matcher.person_name("STL-Maya YouTube") == "Maya"
        assert matcher.person_name("Downtime-Rishi") == "Rishi"

    def test_activity_name(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.activity_name("Downtime-Rishi-Games") == "Games"
        assert matcher.activity_name("Downtime-Rishi-Video-Games") == "Video Games"

    def test_activity_defaults_to_internet(self) -> None:
        matcher = RulePrefixMatcher()
        assert matcher.activity_name("Downtime-Rishi") == "Internet"

    def test_filter_blocking_rules(self) -> None:
        matcher = RulePrefixMatcher()
        rules = [
            ("Downtime-Rishi", "BLOCK"),
            ("Downtime-Maya", "drop"),
            ("STL-Maya-Games", "REJECT"),
            ("Downtime-Guest", "ALLOW"),
            ("Office-Printer", "BLOCK"),
        ]
        kept = matcher.filter_blocking_rules(
            rules, get_name=lambda r: r[0], get_action=lambda r: r[1]
        )
        assert [name for name, _ in kept] == ["Downtime-Rishi", "Downtime-Maya", "STL-Maya-Games"]
