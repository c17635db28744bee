"""JSON-over-HTTP client wrapper with retries and timeout."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_USER_AGENT = "task-bridge/1.0"


class ApiError(RuntimeError):
    """Remote call failed at transport level or returned a non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class JsonApiClient:
    """httpx client bound to one base URL, speaking JSON in both directions.

    ``transport`` replaces the default retrying transport; tests pass an
    ``httpx.MockTransport`` here.
    """

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        base_headers = {"User-Agent": user_agent, "Content-Type": "application/json"}
        if headers:
            base_headers.update(headers)
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=self._timeout,
            headers=base_headers,
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        """Send one request; return ``None`` on 404 when ``allow_not_found`` is set."""

        logger.debug("%s %s%s", method, self.base_url, path)
        try:
            response = self._client.request(method, path, json=json)
        except httpx.TimeoutException as error:
            raise ApiError(f"{method} {path} timed out") from error
        except httpx.HTTPError as error:
            raise ApiError(f"{method} {path} failed: {error}") from error

        if allow_not_found and response.status_code == 404:
            return None
        if not response.is_success:
            raise ApiError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def request_json(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """Send one request and decode the JSON body (``None`` for empty bodies)."""

        response = self.request(method, path, json=json, allow_not_found=allow_not_found)
        if response is None or not response.content:
            return None
        try:
            return response.json()
        except ValueError as error:
            raise ApiError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from error

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> JsonApiClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
