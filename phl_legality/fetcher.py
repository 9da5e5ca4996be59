"""Rate-limited HTTP fetcher for the Scryfall API.

Scryfall asks clients to stay under 10 requests per second and answers
429 when they don't. Every request goes through `fetch`, which spaces calls
at least `rate_limit_ms` apart and waits out 429 responses.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

import httpx

from phl_legality.errors import NetworkError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RateLimitedFetcher:
    """HTTP GET with a minimum interval between calls and 429 handling."""

    def __init__(
        self,
        rate_limit_ms: int = 100,
        user_agent: str = "PHL-Legality-Checker/1.0",
        request_timeout_s: float = 5.0,
        default_retry_after_s: float = 60.0,
        backoff_step_s: float = 5.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._min_interval = rate_limit_ms / 1000.0
        self._user_agent = user_agent
        self._timeout = request_timeout_s
        self._default_retry_after = default_retry_after_s
        self._backoff_step = backoff_step_s
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._throttle_lock = asyncio.Lock()
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self._user_agent,
                },
            )
        return self._client

    async def _throttle(self) -> None:
        # Held across the wait so concurrent callers queue one interval apart
        async with self._throttle_lock:
            if self._min_interval > 0 and self._last_request is not None:
                elapsed = time.monotonic() - self._last_request
                if elapsed < self._min_interval:
                    await self._sleep(self._min_interval - elapsed)
            self._last_request = time.monotonic()

    def _retry_after(self, response: httpx.Response) -> float:
        value = response.headers.get("Retry-After")
        if value is None:
            return self._default_retry_after
        try:
            return float(int(value.strip()))
        except ValueError:
            return self._default_retry_after

    async def fetch(
        self,
        url: str,
        *,
        stream: bool = False,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """GET `url`, waiting out any number of 429 responses.

        With `stream=True` the body is not read; the caller must close the
        response (``await response.aclose()``).
        """
        client = self._get_client()
        while True:
            await self._throttle()
            request = client.build_request("GET", url, headers=headers)
            response = await client.send(request, stream=stream)
            if response.status_code != 429:
                return response

            wait = self._retry_after(response)
            await response.aclose()
            logger.warning("Rate limited by Scryfall, waiting %.0fs before retry", wait)
            await self._sleep(wait)

    async def fetch_with_retry(
        self,
        url: str,
        *,
        stream: bool = False,
        headers: Optional[Dict[str, str]] = None,
        max_attempts: int = 3,
    ) -> httpx.Response:
        """`fetch` with linear backoff (attempt x step) on network failures."""
        last_error: Optional[BaseException] = None
        for attempt in range(1, max_attempts + 1):
            try:
                return await self.fetch(url, stream=stream, headers=headers)
            except (httpx.TransportError, asyncio.TimeoutError) as exc:
                last_error = exc
                if attempt == max_attempts:
                    break
                delay = attempt * self._backoff_step
                logger.info(
                    "Attempt %d/%d for %s failed (%s), retrying in %.0fs",
                    attempt, max_attempts, url, exc, delay,
                )
                await self._sleep(delay)

        raise NetworkError(
            f"Failed to fetch from {url} after {max_attempts} attempts: {last_error}",
            last_error=last_error,
        ) from last_error

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
