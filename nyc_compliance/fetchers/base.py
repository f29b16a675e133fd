"""
Base fetcher utilities for Socrata (SODA) JSON endpoints.

Provides SoQL query building, per-registry request spacing, response caching
and retry with exponential backoff.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

import aiohttp

from nyc_compliance.config import DEFAULT_SETTINGS, SyncSettings
from nyc_compliance.errors import SourceError
from nyc_compliance.fetchers.cache import ResponseCache

logger = logging.getLogger(__name__)

# Statuses worth retrying
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def soql_quote(value: str) -> str:
    """Quote a string literal for a SoQL clause."""
    return "'" + str(value).replace("'", "''") + "'"


def build_in_clause(field: str, values: Iterable[str]) -> str:
    """Build ``field in ('a','b')``."""
    return f"{field} in ({','.join(soql_quote(v) for v in values)})"


def build_since_clause(field: str, months_back: int, now: Optional[datetime] = None) -> str:
    """Build a floating-timestamp lower bound ``months_back`` months before now."""
    since = (now or datetime.now()) - timedelta(days=30 * months_back)
    return f"{field} >= '{since.strftime('%Y-%m-%dT00:00:00')}'"


def chunked(values: List[str], size: int) -> List[List[str]]:
    return [values[i:i + size] for i in range(0, len(values), size)]


class BaseFetcher:
    """Base class for async Socrata fetchers."""

    def __init__(
        self,
        url: str,
        name: str,
        settings: SyncSettings = DEFAULT_SETTINGS,
        cache: Optional[ResponseCache] = None,
        sleep: Callable = asyncio.sleep,
    ):
        """
        Initialize fetcher for one dataset endpoint.

        Args:
            url: Dataset resource URL (.../resource/<id>.json)
            name: Short source name for logs and errors
            settings: Engine settings (timeouts, retries, pacing, token)
            cache: Response cache; a private one is created if omitted
            sleep: Awaitable sleep, injectable for tests
        """
        self.url = url
        self.name = name
        self.settings = settings
        self.timeout = aiohttp.ClientTimeout(total=settings.request_timeout)
        self.cache = cache or ResponseCache(settings.cache_ttl, settings.max_cache_entries)
        self._sleep = sleep
        self._throttle_lock = asyncio.Lock()
        self._last_request_at = 0.0

    def get_headers(self) -> Dict[str, str]:
        """Get default HTTP headers."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "nyc-compliance-sync/0.1",
        }
        if self.settings.app_token:
            headers["X-App-Token"] = self.settings.app_token
        return headers

    @staticmethod
    def cache_key(url: str, params: Dict[str, Any]) -> str:
        return url + "?" + "&".join(f"{k}={params[k]}" for k in sorted(params))

    async def _throttle(self) -> None:
        """Keep at least rate_limit_delay seconds between requests to this registry."""
        async with self._throttle_lock:
            wait = self._last_request_at + self.settings.rate_limit_delay - time.monotonic()
            if wait > 0:
                await self._sleep(wait)
            self._last_request_at = time.monotonic()

    async def fetch_rows(self, session: aiohttp.ClientSession, params: Dict[str, Any]) -> List[dict]:
        """
        Fetch a JSON array, using the response cache.

        Args:
            session: aiohttp session
            params: SoQL query parameters

        Returns:
            Decoded rows

        Raises:
            SourceError: When the registry cannot answer and nothing usable is cached
        """
        key = self.cache_key(self.url, params)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            rows = await self._fetch_with_retry(session, params)
        except SourceError as e:
            if e.status == 400:
                stale = self.cache.get(key, allow_stale=True)
                if stale is not None:
                    logger.info(f"{self.name}: bad request, serving last cached rows")
                    return stale
            raise

        self.cache.set(key, rows)
        return rows

    async def _fetch_with_retry(
        self,
        session: aiohttp.ClientSession,
        params: Dict[str, Any],
        retry: int = 0
    ) -> List[dict]:
        """
        Fetch with exponential backoff retry.

        Args:
            session: aiohttp session
            params: Query parameters
            retry: Current retry count

        Returns:
            Decoded rows (empty for 404)

        Raises:
            SourceError: After retries are exhausted or on a non-retryable status
        """
        await self._throttle()

        try:
            async with session.get(
                self.url,
                params=params,
                headers=self.get_headers(),
                timeout=self.timeout
            ) as resp:
                if resp.status == 200:
                    try:
                        data = await resp.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        raise SourceError(self.name, "Invalid JSON", status=200)
                    if not isinstance(data, list):
                        raise SourceError(self.name, "Unexpected response shape", status=200)
                    return data
                if resp.status == 404:
                    return []
                error = SourceError(
                    self.name,
                    f"HTTP {resp.status}",
                    status=resp.status,
                    retryable=resp.status in RETRYABLE_STATUSES,
                )

        except asyncio.TimeoutError:
            error = SourceError(self.name, "Request timeout", retryable=True)

        except aiohttp.ClientError as e:
            error = SourceError(self.name, f"Connection error: {e}", retryable=True)

        if error.retryable and retry < self.settings.max_retries:
            delay = self.settings.retry_delay * (2 ** retry)
            logger.debug(f"{self.name}: {error.message}, retrying in {delay:.1f}s")
            await self._sleep(delay)
            return await self._fetch_with_retry(session, params, retry + 1)

        raise error

    @staticmethod
    def create_connector(limit: int = None) -> aiohttp.TCPConnector:
        """Create a TCP connector with appropriate limits."""
        return aiohttp.TCPConnector(limit=limit or DEFAULT_SETTINGS.max_concurrent)
