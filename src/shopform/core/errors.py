"""
Error taxonomy for shopform.

Every failure the tool reports is a ConfiguratorError tagged with an
ErrorKind. The kind decides how the CLI titles the message and which exit
code it uses, so callers never need a subclass per failure domain.

Kinds:
    VALIDATION     malformed or incomplete desired-state document
    NOT_FOUND      reference to an entity missing both locally and remotely
    DUPLICATE      natural-key collision within one collection
    TRANSPORT      network or connection failure talking to the API
    PERMISSION     the remote rejected an operation as unauthorized
    TIMEOUT        the whole command exceeded its deadline
    STAGE_FAILURE  a deployment phase finished with failed items

Example:
    >>> err = ConfiguratorError.not_found("Category", "shoes")
    >>> err.kind
    <ErrorKind.NOT_FOUND: 'not_found'>
    >>> str(err)
    "Category 'shoes' not found"
"""

from collections.abc import Iterable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from shopform.core.recovery import RecoveryGuide

CLI_NAME = "shopform"


class ErrorKind(str, Enum):
    """Failure domains recognised by the CLI boundary."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    TRANSPORT = "transport"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    STAGE_FAILURE = "stage_failure"


class ConfiguratorError(Exception):
    """
    Base exception for every failure shopform reports.

    Attributes:
        kind: Failure domain, used for titles and exit codes
        message: Human-readable error message
        context: Additional keyword context (file, section, status code, ...)
    """

    def __init__(self, kind: ErrorKind, message: str, **context: object) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    @classmethod
    def validation(cls, message: str, **context: object) -> "ConfiguratorError":
        return cls(ErrorKind.VALIDATION, message, **context)

    @classmethod
    def not_found(cls, label: str, key: str, **context: object) -> "ConfiguratorError":
        return cls(ErrorKind.NOT_FOUND, f"{label} '{key}' not found", key=key, **context)

    @classmethod
    def duplicate(
        cls, section: str, key_field: str, keys: Iterable[str], **context: object
    ) -> "ConfiguratorError":
        keys = sorted(keys)
        message = f"Duplicate {section} {key_field}s found: {', '.join(keys)}"
        return cls(ErrorKind.DUPLICATE, message, section=section, keys=keys, **context)

    @classmethod
    def transport(cls, message: str, **context: object) -> "ConfiguratorError":
        return cls(ErrorKind.TRANSPORT, message, **context)

    @classmethod
    def permission(cls, message: str, **context: object) -> "ConfiguratorError":
        return cls(ErrorKind.PERMISSION, message, **context)

    @classmethod
    def timeout(cls, seconds: float) -> "ConfiguratorError":
        return cls(
            ErrorKind.TIMEOUT,
            f"Command timed out after {seconds:g} seconds",
            timeout_seconds=seconds,
        )


class EntityFailure(NamedTuple):
    """One failed entity inside a stage."""

    entity: str
    error: BaseException


class StageAggregateError(ConfiguratorError):
    """
    Terminal error for a deployment phase that finished with failures.

    Carries the names that succeeded and the (entity, error) pairs that
    failed. Both are stored as tuples and never change after construction.
    ``get_user_message()`` renders the full report, asking the injected
    RecoveryGuide for suggestions per failure.

    Example:
        >>> err = StageAggregateError(
        ...     "Creating Categories",
        ...     failures=[("kids", ConfiguratorError.not_found("Parent category", "x"))],
        ...     successes=["shoes", "hats"],
        ... )
        >>> err.get_user_message().splitlines()[0]
        'Creating Categories - 1 of 3 failed'
    """

    GENERAL_SUGGESTIONS: tuple[str, ...] = (
        "Review the individual errors above",
        "Fix the issues and run deploy again",
        f"Use --include to deploy only specific sections (e.g. {CLI_NAME} deploy "
        "--include=categories)",
        f"Run '{CLI_NAME} diff' to check the current state",
    )

    def __init__(
        self,
        stage_name: str,
        failures: Sequence[tuple[str, BaseException]],
        successes: Sequence[str] = (),
        recovery_guide: "RecoveryGuide | None" = None,
    ) -> None:
        self._stage_name = stage_name
        self._failures = tuple(EntityFailure(entity, error) for entity, error in failures)
        self._successes = tuple(successes)
        self._recovery_guide = recovery_guide
        total = len(self._failures) + len(self._successes)
        super().__init__(
            ErrorKind.STAGE_FAILURE,
            f"{stage_name} failed for {len(self._failures)} of {total} entities",
            stage=stage_name,
        )

    @property
    def stage_name(self) -> str:
        return self._stage_name

    @property
    def failures(self) -> tuple[EntityFailure, ...]:
        return self._failures

    @property
    def successes(self) -> tuple[str, ...]:
        return self._successes

    @property
    def total(self) -> int:
        return len(self._failures) + len(self._successes)

    def _guide(self) -> "RecoveryGuide":
        if self._recovery_guide is None:
            from shopform.core.recovery import RecoveryGuide

            self._recovery_guide = RecoveryGuide.with_defaults()
        return self._recovery_guide

    def get_user_message(self) -> str:
        """
        Render the stage report shown to the user.

        Returns:
            Multi-line report: header, successes, failures with recovery
            suggestions, then the general suggestions block.
        """
        guide = self._guide()
        lines = [f"{self._stage_name} - {len(self._failures)} of {self.total} failed", ""]

        if self._successes:
            lines.append("Successful:")
            lines.extend(f"  • {name}" for name in self._successes)
            lines.append("")

        lines.append("Failed:")
        for failure in self._failures:
            message = str(failure.error) or type(failure.error).__name__
            lines.append(f"  • {failure.entity}")
            lines.append(f"    Error: {message}")
            suggestions = guide.get_suggestions(message)
            lines.extend(f"    {line}" for line in guide.format_suggestions(suggestions))
        lines.append("")

        lines.append("General suggestions:")
        lines.extend(
            f"  {index}. {text}" for index, text in enumerate(self.GENERAL_SUGGESTIONS, 1)
        )
        return "\n".join(lines)


__all__ = [
    "CLI_NAME",
    "ConfiguratorError",
    "EntityFailure",
    "ErrorKind",
    "StageAggregateError",
]
