"""
Standardized error handling and exit codes for the shopform CLI.

Every ConfiguratorError kind maps to one exit code and one title in the
tables below; commands wrap their body in ``handle_errors()`` so the
mapping is applied in exactly one place.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from rich.console import Console

from shopform.core.errors import CLI_NAME, ConfiguratorError, ErrorKind, StageAggregateError

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for shopform CLI operations."""

    SUCCESS = 0
    """Operation completed successfully (including a diff that found changes)."""

    GENERAL_ERROR = 1
    """Validation, duplicate, missing reference, or failed deployment stage."""

    INVALID_ARGUMENTS = 2
    """Bad or conflicting command-line arguments."""

    FILE_NOT_FOUND = 3
    """The configuration document does not exist."""

    NETWORK_ERROR = 4
    """The admin API could not be reached, or the command timed out."""

    PERMISSION_ERROR = 5
    """The admin API rejected the token."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


EXIT_CODES: dict[ErrorKind, ExitCode] = {
    ErrorKind.VALIDATION: ExitCode.GENERAL_ERROR,
    ErrorKind.NOT_FOUND: ExitCode.GENERAL_ERROR,
    ErrorKind.DUPLICATE: ExitCode.GENERAL_ERROR,
    ErrorKind.TRANSPORT: ExitCode.NETWORK_ERROR,
    ErrorKind.PERMISSION: ExitCode.PERMISSION_ERROR,
    ErrorKind.TIMEOUT: ExitCode.NETWORK_ERROR,
    ErrorKind.STAGE_FAILURE: ExitCode.GENERAL_ERROR,
}

ERROR_TITLES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Invalid configuration",
    ErrorKind.NOT_FOUND: "Referenced entity not found",
    ErrorKind.DUPLICATE: "Duplicate identifiers in configuration",
    ErrorKind.TRANSPORT: "Could not reach the admin API",
    ErrorKind.PERMISSION: "Permission denied by the admin API",
    ErrorKind.TIMEOUT: "Command timed out",
    ErrorKind.STAGE_FAILURE: "Deployment failed",
}

ERROR_SOLUTIONS: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Fix the listed fields in your configuration file",
    ErrorKind.DUPLICATE: "Give every entry in the section a unique identifier",
    ErrorKind.TRANSPORT: f"Check --url (or SHOPFORM_URL) and your network, then rerun {CLI_NAME}",
    ErrorKind.PERMISSION: "Check that --token (or SHOPFORM_TOKEN) has the required permissions",
    ErrorKind.TIMEOUT: "Increase --timeout (or SHOPFORM_TIMEOUT) or deploy fewer sections",
}


def exit_code_for(error: BaseException) -> ExitCode:
    """Exit code for any exception that reaches the CLI boundary."""
    if isinstance(error, ConfiguratorError):
        return EXIT_CODES[error.kind]
    if isinstance(error, FileNotFoundError):
        return ExitCode.FILE_NOT_FOUND
    if isinstance(error, KeyboardInterrupt):
        return ExitCode.SIGINT
    return ExitCode.GENERAL_ERROR


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Configuration file not found: config.yml",
        ...     solution="shopform diff --config path/to/config.yml",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}", highlight=False)

    if reason:
        console.print(f"[dim]{reason}[/dim]", highlight=False)

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}", highlight=False)


def print_stage_failure(error: StageAggregateError, *, verbose: bool = False) -> None:
    """Print the full stage report, plus exception chains when verbose."""
    console.print(f"[red]Error:[/red] {ERROR_TITLES[error.kind]}", highlight=False)
    console.print()
    console.print(error.get_user_message(), markup=False, highlight=False)

    if verbose:
        console.print()
        console.print("[dim]Error details:[/dim]")
        for failure in error.failures:
            console.print(f"  {failure.entity}: {failure.error!r}", markup=False)
            cause = failure.error.__cause__
            while cause is not None:
                console.print(f"    caused by: {cause!r}", markup=False)
                cause = cause.__cause__
    else:
        console.print()
        console.print(f"[dim]Run '{CLI_NAME} deploy --verbose' for detailed error traces[/dim]")


def print_configurator_error(error: ConfiguratorError, *, verbose: bool = False) -> None:
    """Print a titled message for ``error`` according to its kind."""
    if isinstance(error, StageAggregateError):
        print_stage_failure(error, verbose=verbose)
        return

    console.print(f"[red]Error:[/red] {ERROR_TITLES[error.kind]}", highlight=False)
    console.print(error.message, markup=False, highlight=False)
    if solution := ERROR_SOLUTIONS.get(error.kind):
        console.print(f"[cyan]→ Try:[/cyan] {solution}", highlight=False)
    if verbose and error.__cause__ is not None:
        console.print(f"[dim]Caused by: {error.__cause__!r}[/dim]", highlight=False)


@contextmanager
def handle_errors(*, verbose: bool = False) -> Iterator[None]:
    """
    Turn exceptions escaping a command into messages and exit codes.

    Example:
        >>> with handle_errors():
        ...     document = load_document(path)
    """
    try:
        yield
    except ConfiguratorError as e:
        print_configurator_error(e, verbose=verbose)
        raise typer.Exit(exit_code_for(e)) from e
    except FileNotFoundError as e:
        print_error(
            str(e),
            solution=f"{CLI_NAME} diff --config path/to/config.yml",
        )
        raise typer.Exit(ExitCode.FILE_NOT_FOUND) from e
    except KeyboardInterrupt as e:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(ExitCode.SIGINT) from e


__all__ = [
    "ERROR_TITLES",
    "EXIT_CODES",
    "ExitCode",
    "exit_code_for",
    "handle_errors",
    "print_configurator_error",
    "print_error",
    "print_stage_failure",
]
