"""Read-only JSON API client.

:class:`ApiClient` wraps :class:`httpx.Client` with bearer-token auth and
validates every response body against a Pydantic type at the boundary, so
callers receive typed models or an :class:`~gitpulse.exceptions.ApiError`
naming the offending fields -- never a half-parsed dict.

It also watches the ``x-ratelimit-remaining`` header and logs a warning
once fewer than :data:`RATE_LIMIT_WARNING` requests remain.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from gitpulse.exceptions import ApiError
from gitpulse.models import describe_validation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_WARNING = 100
DEFAULT_TIMEOUT = 30.0


class ApiClient:
    """Synchronous client for authenticated GET requests.

    Must be used as a context manager so the underlying transport is opened
    and closed.

    Args:
        token: Access token sent as ``Authorization: Bearer <token>``.
        base_url: API root, e.g. ``https://api.github.com``.
        transport: Optional transport override (tests pass
            :class:`httpx.MockTransport`).

    Example::

        with ApiClient(token, "https://api.github.com") as client:
            items = client.get("/notifications", list[Notification])
    """

    def __init__(
        self,
        token: str,
        base_url: str,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> ApiClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=DEFAULT_TIMEOUT,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/json",
            },
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def get(
        self,
        path: str,
        response_type: type[T] | Any,
        params: Optional[dict[str, Any]] = None,
    ) -> T:
        """GET *path* and validate the JSON body as *response_type*.

        Args:
            path: Path relative to ``base_url``.
            response_type: A Pydantic model or typing construct such as
                ``list[Notification]``.
            params: Optional query parameters.

        Returns:
            The validated payload.

        Raises:
            ApiError: On network failure, non-2xx status, non-JSON body, or
                a body that does not match *response_type*.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"

        try:
            response = self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed: %s", path, type(exc).__name__)
            raise ApiError(f"Request to {path} failed: {exc}") from exc

        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None and remaining.isdigit() and int(remaining) < RATE_LIMIT_WARNING:
            logger.warning(
                "API rate limit running low: %s requests remaining (%s)", remaining, path
            )

        if not response.is_success:
            logger.error("API request failed (status %d, %s)", response.status_code, path)
            raise ApiError(
                f"{response.status_code} {response.reason_phrase}".rstrip()
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(f"Response from {path} is not valid JSON") from exc

        try:
            return TypeAdapter(response_type).validate_python(body)
        except ValidationError as exc:
            details = describe_validation_error(exc)
            logger.error("Unexpected response shape from %s: %s", path, details)
            raise ApiError(details) from exc
