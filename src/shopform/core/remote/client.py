"""
Async client for the platform's JSON admin API.

Resources live under ``/<resource>`` (list/create) and
``/<resource>/<id>`` (update/delete). The shop singleton is ``/shop``.
Every failure is mapped onto a ConfiguratorError kind:

    connection errors, timeouts, 5xx  -> TRANSPORT
    401, 403                          -> PERMISSION
    404                               -> NOT_FOUND
    other 4xx                         -> VALIDATION (server message kept)
"""

import logging
from typing import Any

import httpx

from shopform.core.errors import ConfiguratorError, ErrorKind
from shopform.core.remote.retry import RetryConfig, send_with_retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("message", "detail", "error"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(
                str(item.get("message", item)) if isinstance(item, dict) else str(item)
                for item in errors
            )
    return response.text.strip() or response.reason_phrase


def map_status_error(response: httpx.Response, operation: str) -> ConfiguratorError:
    """Translate an unsuccessful response into a ConfiguratorError."""
    status = response.status_code
    message = _server_message(response)
    context: dict[str, object] = {"status_code": status, "operation": operation}

    if status in (401, 403):
        return ConfiguratorError.permission(
            f"Permission denied for {operation}: {message}", **context
        )
    if status == 404:
        return ConfiguratorError(ErrorKind.NOT_FOUND, f"{operation}: {message}", **context)
    if status >= 500:
        return ConfiguratorError.transport(
            f"Server error {status} for {operation}: {message}", **context
        )
    return ConfiguratorError.validation(message, **context)


class AdminApiClient:
    """
    Thin async wrapper over httpx with bearer auth, retry and error mapping.

    Use as an async context manager so the connection pool is closed:

        >>> async with AdminApiClient(url, token) as client:
        ...     channels = await client.get("/channels")
    """

    def __init__(
        self,
        base_url: str,
        token: str | None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryConfig()
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "AdminApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, *, json: Any = None) -> Any:
        """
        Send a request and return the decoded JSON body (None when empty).

        Raises:
            ConfiguratorError: TRANSPORT, PERMISSION, NOT_FOUND or VALIDATION
        """
        operation = f"{method} {path}"

        async def send() -> httpx.Response:
            response = await self._client.request(method, path, json=json)
            response.raise_for_status()
            return response

        try:
            response = await send_with_retry(send, self.retry, operation=operation)
        except httpx.HTTPStatusError as e:
            raise map_status_error(e.response, operation) from e
        except httpx.TimeoutException as e:
            raise ConfiguratorError.transport(
                f"Request timed out: {operation} ({self.base_url})", operation=operation
            ) from e
        except httpx.RequestError as e:
            raise ConfiguratorError.transport(
                f"Connection error for {operation} ({self.base_url}): {e}", operation=operation
            ) from e

        logger.debug("%s -> %d", operation, response.status_code)
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, payload: dict[str, Any]) -> Any:
        return await self.request("POST", path, json=payload)

    async def patch(self, path: str, payload: dict[str, Any]) -> Any:
        return await self.request("PATCH", path, json=payload)

    async def delete(self, path: str) -> None:
        await self.request("DELETE", path)


__all__ = ["AdminApiClient", "DEFAULT_TIMEOUT", "map_status_error"]
