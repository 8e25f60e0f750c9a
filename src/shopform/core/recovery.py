"""
Recovery suggestions for raw error messages.

A RecoveryGuide is an ordered registry of (compiled regex, builder) pairs.
Every pattern that matches an error message contributes one Suggestion, so
a message may yield several. When nothing matches, a single generic
fallback is returned.

The guide is a plain value. Build one with ``RecoveryGuide.with_defaults()``
and pass it to whatever renders aggregate errors; tests can construct an
empty or custom guide without touching any shared state.

Example:
    >>> guide = RecoveryGuide.with_defaults()
    >>> [s.fix for s in guide.get_suggestions("Channel 'eu' not found")]
    ["Ensure channel 'eu' exists or is defined in your config"]
    >>> guide.format_suggestions(guide.get_suggestions("Channel 'eu' not found"))[0]
    "→ Fix: Ensure channel 'eu' exists or is defined in your config"
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from shopform.core.errors import CLI_NAME

MAX_PATTERNS = 100


@dataclass(frozen=True)
class Suggestion:
    """An actionable hint: what to fix, what to check, what to run."""

    fix: str
    check: str | None = None
    command: str | None = None


SuggestionBuilder = Callable[["re.Match[str]"], Suggestion]

FALLBACK_SUGGESTION = Suggestion(
    fix="Review the error message for details",
    check="Check your configuration against the current remote state",
    command=f"{CLI_NAME} diff --verbose",
)


def _diff(section: str) -> str:
    return f"{CLI_NAME} diff --include={section}"


DEFAULT_PATTERNS: tuple[tuple[str, SuggestionBuilder], ...] = (
    # Attributes
    (
        r"Entity type is required for reference attribute ['\"]?([^'\"]+)['\"]?",
        lambda m: Suggestion(
            fix=f"Add entityType to the '{m[1]}' reference attribute in your config",
            check="Valid values are: PAGE, PRODUCT, or PRODUCT_VARIANT",
            command=_diff("attributes"),
        ),
    ),
    (
        r"Attribute ['\"]?([^'\"]+)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Create the attribute '{m[1]}' first or reference an existing one",
            check="Attributes are deployed before product and page types",
            command=_diff("attributes"),
        ),
    ),
    # Missing references
    (
        r"Parent category ['\"]?(.+?)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Define parent category '{m[1]}' in categories or correct the parent slug",
            check="A parent must already exist remotely or be created in the same deploy",
            command=_diff("categories"),
        ),
    ),
    (
        r"Category ['\"]?(.+?)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure category '{m[1]}' exists or will be created earlier in deployment",
            check="View existing categories",
            command=_diff("categories"),
        ),
    ),
    (
        r"Channel ['\"]?(.+?)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure channel '{m[1]}' exists or is defined in your config",
            check="View existing channels",
            command=_diff("channels"),
        ),
    ),
    (
        r"Product type ['\"]?(.+?)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure product type '{m[1]}' exists or is defined before products use it",
            check="View existing product types",
            command=_diff("productTypes"),
        ),
    ),
    (
        r"Page type ['\"]?(.+?)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure page type '{m[1]}' exists or is defined before pages use it",
            check="View existing page types",
            command=_diff("pageTypes"),
        ),
    ),
    (
        r"Warehouse ['\"]?([\w-]+)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure warehouse '{m[1]}' exists in your warehouses configuration",
            check="Warehouse slugs must match exactly (case-sensitive)",
            command=_diff("warehouses"),
        ),
    ),
    (
        r"Shipping zone ['\"]?([\w\s-]+)['\"]? not found",
        lambda m: Suggestion(
            fix=f"Ensure shipping zone '{m[1]}' exists in your configuration",
            check="Shipping zone names must match exactly",
            command=_diff("shippingZones"),
        ),
    ),
    (
        r"Tax class ['\"]?([\w\s-]+)['\"]? (?:not found|doesn't exist)",
        lambda m: Suggestion(
            fix=f"Ensure tax class '{m[1]}' exists in your configuration",
            check="Tax class names must match exactly",
            command=_diff("taxClasses"),
        ),
    ),
    (
        r"Product ['\"](.+?)['\"] not found",
        lambda m: Suggestion(
            fix=f"Ensure product '{m[1]}' exists or is defined before collections use it",
            check="View existing products",
            command=_diff("products"),
        ),
    ),
    # Duplicates and conflicts
    (
        r"Duplicate slug ['\"]?([^'\"]+)['\"]?",
        lambda m: Suggestion(
            fix=f"Use a unique slug, '{m[1]}' already exists",
            check="View existing entities to find available slugs",
            command=f"{CLI_NAME} diff",
        ),
    ),
    (
        r"already exists with name ['\"]?([^'\"]+)['\"]?",
        lambda m: Suggestion(
            fix=f"An entity named '{m[1]}' already exists, use another name or update it",
            check="View current state",
            command=f"{CLI_NAME} diff",
        ),
    ),
    (
        r"Duplicate (\w+) (\w+?)s? found: (.+)",
        lambda m: Suggestion(
            fix=f"Remove duplicate {m[1]} entries from your config ({m[3]})",
            check=f"Each entry in {m[1]} must have a unique {m[2]}",
            command=_diff(m[1]),
        ),
    ),
    (
        r"SKU ['\"]?([\w-]+)['\"]? already exists",
        lambda m: Suggestion(
            fix=f"Change SKU '{m[1]}' to a unique value",
            check="Each product variant must have a unique SKU",
            command=_diff("products"),
        ),
    ),
    # Validation
    (
        r"(\w+) is required",
        lambda m: Suggestion(
            fix=f"Add the required field '{m[1]}' to your configuration",
            check="Review the configuration schema",
        ),
    ),
    (
        r"Invalid (\w+) value",
        lambda m: Suggestion(
            fix=f"Check that the {m[1]} field has a valid value according to the schema",
            check="Review valid values in the configuration schema",
        ),
    ),
    (
        r"Invalid currency code ['\"]?([A-Z]+)['\"]?",
        lambda m: Suggestion(
            fix=f"Use a valid ISO 4217 currency code instead of '{m[1]}'",
            check="Common codes: USD, EUR, GBP, CAD, AUD, JPY",
        ),
    ),
    (
        r"Invalid country code ['\"]?([A-Z]+)['\"]?",
        lambda m: Suggestion(
            fix=f"Use a valid ISO 3166-1 alpha-2 country code instead of '{m[1]}'",
            check="Common codes: US, GB, DE, FR, CA, AU, JP",
        ),
    ),
    (
        r"Tax rate must be between 0 and 100",
        lambda m: Suggestion(
            fix="Set tax rate as a percentage between 0 and 100",
            check="Example: rate: 8.5 for 8.5% tax",
        ),
    ),
    (
        r"At least one country is required",
        lambda m: Suggestion(
            fix="Add at least one country code to the shipping zone",
            check="Use ISO 3166-1 alpha-2 codes (e.g., US, GB, DE)",
        ),
    ),
    # Permissions
    (
        r"permission denied|unauthorized|forbidden",
        lambda m: Suggestion(
            fix="Check that your API token has the required permissions",
            check="Verify token permissions in the admin dashboard",
            command=f"{CLI_NAME} diff --token YOUR_TOKEN",
        ),
    ),
    # Network
    (
        r"connection refused|connect(?:ion)? error|timed out|name or service not known",
        lambda m: Suggestion(
            fix="Check your network connection and the API URL",
            check="Verify the instance is running and accessible",
            command=f"{CLI_NAME} diff --url YOUR_API_URL",
        ),
    ),
)


class RecoveryGuide:
    """
    Ordered registry mapping error text to recovery suggestions.

    Patterns are tested in registration order and every match contributes
    one suggestion. Registering a pattern that repeats an existing source
    and flags is rejected, and the registry holds at most MAX_PATTERNS
    entries.
    """

    def __init__(self, patterns: Iterable[tuple["re.Pattern[str] | str", SuggestionBuilder]] = ()):
        self._patterns: list[tuple[re.Pattern[str], SuggestionBuilder]] = []
        for pattern, builder in patterns:
            self.register(pattern, builder)

    @classmethod
    def with_defaults(cls) -> "RecoveryGuide":
        """Build a guide preloaded with the built-in patterns."""
        return cls(
            (re.compile(source, re.IGNORECASE), builder) for source, builder in DEFAULT_PATTERNS
        )

    def __len__(self) -> int:
        return len(self._patterns)

    def register(self, pattern: "re.Pattern[str] | str", builder: SuggestionBuilder) -> None:
        """
        Add a pattern at the end of the registry.

        Args:
            pattern: Compiled regex, or a source string compiled without flags
            builder: Called with the match object to build the suggestion

        Raises:
            ValueError: If the same source and flags are already registered,
                or the registry is full
        """
        if isinstance(pattern, str):
            pattern = re.compile(pattern)

        for existing, _ in self._patterns:
            if existing.pattern == pattern.pattern and existing.flags == pattern.flags:
                raise ValueError(f"Pattern already registered: {pattern.pattern}")

        if len(self._patterns) >= MAX_PATTERNS:
            raise ValueError(f"Maximum number of patterns ({MAX_PATTERNS}) reached")

        self._patterns.append((pattern, builder))

    def get_suggestions(self, message: str | None) -> list[Suggestion]:
        """Return one suggestion per matching pattern, or the fallback."""
        if not message:
            return [FALLBACK_SUGGESTION]

        suggestions = [
            builder(match)
            for pattern, builder in self._patterns
            if (match := pattern.search(message)) is not None
        ]
        return suggestions or [FALLBACK_SUGGESTION]

    @staticmethod
    def format_suggestions(suggestions: Iterable[Suggestion]) -> list[str]:
        """Render suggestions as ``→ Fix:`` / ``→ Check:`` / ``→ Run:`` lines."""
        lines: list[str] = []
        for suggestion in suggestions:
            lines.append(f"→ Fix: {suggestion.fix}")
            if suggestion.check:
                lines.append(f"→ Check: {suggestion.check}")
            if suggestion.command:
                lines.append(f"→ Run: {suggestion.command}")
        return lines


__all__ = [
    "DEFAULT_PATTERNS",
    "FALLBACK_SUGGESTION",
    "MAX_PATTERNS",
    "RecoveryGuide",
    "Suggestion",
    "SuggestionBuilder",
]
