"""Async GraphQL client for the Tally API."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from typing import Any

import httpx

from tally_mcp.config import Settings
from tally_mcp.errors import (
    AuthenticationError,
    GraphQLClientError,
    GraphQLNetworkError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "tally-mcp/0.1"


class RateLimiter:
    """Sliding-window request counter."""

    def __init__(self, max_requests: int = 30, window_secs: float = 60.0):
        self.max_requests = max_requests
        self.window_secs = window_secs
        self._requests: deque[float] = deque()

    def _cleanup(self, now: float) -> None:
        cutoff = now - self.window_secs
        while self._requests and self._requests[0] <= cutoff:
            self._requests.popleft()

    def can_make_request(self) -> bool:
        self._cleanup(time.monotonic())
        return len(self._requests) < self.max_requests

    def record_request(self) -> None:
        now = time.monotonic()
        self._cleanup(now)
        self._requests.append(now)

    def retry_after(self) -> int:
        """Seconds until a slot frees up (0 if one is free now)."""
        if self.can_make_request():
            return 0
        wait = self._requests[0] + self.window_secs - time.monotonic()
        return max(0, math.ceil(wait))

    def reset(self) -> None:
        self._requests.clear()


class TallyGraphQLClient:
    """Posts GraphQL queries to Tally and returns the ``data`` payload.

    Network failures (other than HTTP 429) are retried up to
    ``settings.max_retries`` times. GraphQL-level errors are never retried.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limit: bool = True,
    ):
        if not settings.api_key:
            raise AuthenticationError(
                "Tally API key not configured. Please set TALLY_API_KEY environment variable."
            )
        self.settings = settings
        self.endpoint = settings.api_url
        self._http = httpx.AsyncClient(
            transport=transport,
            timeout=settings.request_timeout,
            headers={
                "Content-Type": "application/json",
                "Api-Key": settings.api_key,
                "User-Agent": USER_AGENT,
            },
        )
        self.rate_limiter = (
            RateLimiter(settings.max_requests_per_minute) if rate_limit else None
        )

    async def __aenter__(self) -> TallyGraphQLClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def query(self, query: str, variables: dict[str, Any] | None = None) -> dict:
        attempt = 0
        while True:
            try:
                return await self._execute(query, variables)
            except RateLimitError:
                raise
            except GraphQLNetworkError as e:
                if attempt >= self.settings.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "Request to %s failed (%s), retry %d/%d",
                    self.endpoint, e.message, attempt, self.settings.max_retries,
                )
                await asyncio.sleep(self.settings.retry_delay)

    async def _execute(self, query: str, variables: dict[str, Any] | None) -> dict:
        if self.rate_limiter is not None:
            if not self.rate_limiter.can_make_request():
                retry_after = self.rate_limiter.retry_after()
                logger.warning("Local rate limit reached, retry after %ds", retry_after)
                raise RateLimitError(
                    f"Rate limit exceeded. Please retry after {retry_after} seconds.",
                    retry_after,
                )
            self.rate_limiter.record_request()

        logger.debug("POST %s variables=%s", self.endpoint, variables)
        try:
            response = await self._http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.TransportError as e:
            raise GraphQLNetworkError(f"Request failed: {e}") from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(
                f"API rate limit exceeded. Please retry after {retry_after} seconds.",
                retry_after,
            )
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                {"status": response.status_code},
            )
        if response.is_error:
            raise GraphQLNetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise GraphQLNetworkError(
                f"Invalid JSON response: {e}", response.status_code
            ) from e

        errors = payload.get("errors")
        if errors:
            messages = ", ".join(str(err.get("message", err)) for err in errors)
            raise GraphQLClientError(f"GraphQL errors: {messages}", errors)
        return payload.get("data") or {}


def _parse_retry_after(value: str | None) -> int:
    if value is None:
        return 60
    try:
        return max(0, int(float(value)))
    except ValueError:
        return 60
