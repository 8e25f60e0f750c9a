"""
Helpers shared by the diff and deploy commands.
"""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import typer

from shopform.cli.errors import ExitCode, print_error
from shopform.core.config import ShopformSettings, load_settings
from shopform.core.diff.engine import DiffScope
from shopform.core.document.schema import Section
from shopform.core.errors import CLI_NAME, ConfiguratorError
from shopform.core.remote.client import AdminApiClient
from shopform.core.remote.repository import EntityRepository, build_repositories

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run an async coroutine from sync context.

    Uses asyncio.run() to execute async code from Typer's sync CLI context.
    """
    return asyncio.run(coro)


def resolve_settings(
    *,
    config: Path | None,
    url: str | None,
    token: str | None,
    timeout: float | None,
    concurrency: int | None = None,
) -> ShopformSettings:
    """Layered settings with this invocation's flags on top."""
    overrides: dict[str, Any] = {
        "api": {"url": url, "token": token},
        "deploy": {"command_timeout": timeout, "concurrency": concurrency},
        "document_path": str(config) if config is not None else None,
    }
    return load_settings(overrides=overrides)


def resolve_scope(include: str | None, exclude: str | None) -> DiffScope:
    """Parse --include/--exclude, exiting with INVALID_ARGUMENTS on misuse."""
    try:
        return DiffScope.from_names(include=include, exclude=exclude)
    except ConfiguratorError as e:
        available = ", ".join(section.value for section in Section)
        print_error(e.message, reason=f"Available sections: {available}")
        raise typer.Exit(ExitCode.INVALID_ARGUMENTS) from e


def require_api_url(settings: ShopformSettings) -> str:
    if not settings.api.url:
        print_error(
            "No admin API URL configured",
            reason="shopform needs the API URL to read and change remote state",
            solution=f"{CLI_NAME} diff --url https://shop.example.com/api  # or set SHOPFORM_URL",
        )
        raise typer.Exit(ExitCode.INVALID_ARGUMENTS)
    return settings.api.url


@asynccontextmanager
async def open_repositories(
    settings: ShopformSettings,
) -> AsyncIterator[dict[Section, EntityRepository]]:
    """Repositories for every section over one API client, closed on exit."""
    assert settings.api.url is not None
    async with AdminApiClient(
        settings.api.url, settings.api.token, timeout=settings.api.timeout
    ) as client:
        yield build_repositories(client)


__all__ = [
    "open_repositories",
    "require_api_url",
    "resolve_scope",
    "resolve_settings",
    "run_async",
]
