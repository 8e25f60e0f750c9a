"""Tests for RecoveryGuide."""

import re

import pytest

from shopform.core.recovery import (
    DEFAULT_PATTERNS,
    FALLBACK_SUGGESTION,
    MAX_PATTERNS,
    RecoveryGuide,
    Suggestion,
)


@pytest.fixture
def guide() -> RecoveryGuide:
    return RecoveryGuide.with_defaults()


class TestGetSuggestions:
    """Tests for matching error text to suggestions."""

    def test_unmatched_message_gets_fallback(self, guide: RecoveryGuide) -> None:
        """Test the generic suggestion when nothing matches."""
        assert guide.get_suggestions("something odd happened") == [FALLBACK_SUGGESTION]

    def test_empty_message_gets_fallback(self, guide: RecoveryGuide) -> None:
        """Test empty and None messages."""
        assert guide.get_suggestions("") == [FALLBACK_SUGGESTION]
        assert guide.get_suggestions(None) == [FALLBACK_SUGGESTION]

    def test_channel_not_found(self, guide: RecoveryGuide) -> None:
        """Test a missing channel suggestion names the channel."""
        suggestions = guide.get_suggestions("Channel 'eu' not found")

        assert suggestions[0].fix == "Ensure channel 'eu' exists or is defined in your config"
        assert suggestions[0].command == "shopform diff --include=channels"

    def test_duplicate_keys(self, guide: RecoveryGuide) -> None:
        """Test the duplicate natural key message."""
        suggestions = guide.get_suggestions("Duplicate categories slugs found: shoes, hats")

        assert suggestions[0].fix == "Remove duplicate categories entries from your config (shoes, hats)"
        assert suggestions[0].check == "Each entry in categories must have a unique slug"

    def test_product_pattern_does_not_shadow_product_type(self, guide: RecoveryGuide) -> None:
        """Test that a product type message is not treated as a product message."""
        fixes = [s.fix for s in guide.get_suggestions("Product type 'Apparel' not found")]

        assert any("product type 'Apparel'" in fix for fix in fixes)
        assert not any(fix.startswith("Ensure product 'type") for fix in fixes)

    def test_matching_is_case_insensitive(self, guide: RecoveryGuide) -> None:
        """Test default patterns ignore case."""
        suggestions = guide.get_suggestions("HTTP 403: Forbidden")

        assert "permissions" in suggestions[0].fix

    def test_every_matching_pattern_contributes(self) -> None:
        """Test a message matching two patterns yields two suggestions."""
        guide = RecoveryGuide()
        guide.register("alpha", lambda m: Suggestion(fix="first"))
        guide.register("beta", lambda m: Suggestion(fix="second"))

        assert [s.fix for s in guide.get_suggestions("alpha and beta")] == ["first", "second"]


class TestRegister:
    """Tests for pattern registration."""

    def test_defaults_are_loaded(self, guide: RecoveryGuide) -> None:
        """Test with_defaults registers every built-in pattern."""
        assert len(guide) == len(DEFAULT_PATTERNS)

    def test_empty_guide(self) -> None:
        """Test a bare guide has no patterns and falls back."""
        guide = RecoveryGuide()
        assert len(guide) == 0
        assert guide.get_suggestions("Channel 'eu' not found") == [FALLBACK_SUGGESTION]

    def test_duplicate_pattern_rejected(self) -> None:
        """Test the same source and flags cannot be registered twice."""
        guide = RecoveryGuide()
        guide.register(r"oops", lambda m: Suggestion(fix="x"))

        with pytest.raises(ValueError, match="Pattern already registered: oops"):
            guide.register(r"oops", lambda m: Suggestion(fix="y"))

    def test_same_source_different_flags_allowed(self) -> None:
        """Test flags are part of a pattern's identity."""
        guide = RecoveryGuide()
        guide.register(r"oops", lambda m: Suggestion(fix="x"))
        guide.register(re.compile(r"oops", re.IGNORECASE), lambda m: Suggestion(fix="y"))

        assert len(guide) == 2

    def test_capacity_limit(self) -> None:
        """Test the registry holds at most MAX_PATTERNS entries."""
        guide = RecoveryGuide()
        for index in range(MAX_PATTERNS):
            guide.register(f"pattern-{index}", lambda m: Suggestion(fix="x"))

        with pytest.raises(ValueError, match=r"Maximum number of patterns \(100\) reached"):
            guide.register("one-too-many", lambda m: Suggestion(fix="x"))

    def test_guides_are_independent(self) -> None:
        """Test registering on one guide does not affect another."""
        first = RecoveryGuide.with_defaults()
        second = RecoveryGuide.with_defaults()
        first.register("custom", lambda m: Suggestion(fix="x"))

        assert len(first) == len(second) + 1


class TestFormatSuggestions:
    """Tests for rendering suggestions."""

    def test_full_suggestion(self) -> None:
        """Test all three lines are rendered in order."""
        lines = RecoveryGuide.format_suggestions(
            [Suggestion(fix="Do this", check="Look here", command="shopform diff")]
        )

        assert lines == ["→ Fix: Do this", "→ Check: Look here", "→ Run: shopform diff"]

    def test_optional_lines_omitted(self) -> None:
        """Test check and command are optional."""
        assert RecoveryGuide.format_suggestions([Suggestion(fix="Only")]) == ["→ Fix: Only"]
