"""
Async page fetcher for live-fetched source adapters.

Built on httpx with:
- Per-host rate limiting
- Exponential backoff retry on transport errors
- Short-lived response cache so hybrid adapters can share a page
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

logger = structlog.get_logger(__name__)


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; DLSCFundingBot/1.0)"


@dataclass
class CachedPage:
    text: str
    fetched_at: float


@dataclass
class RateLimiter:
    """Per-host rate limiter."""
    requests_per_second: float = 2.0
    last_request: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def acquire(self) -> None:
        """Wait for rate limit slot."""
        async with self.lock:
            min_interval = 1.0 / self.requests_per_second
            elapsed = time.monotonic() - self.last_request

            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)

            self.last_request = time.monotonic()


class HttpClient:
    """
    Async HTTP client shared by all adapters of one ingestion run.

    Usage:
        async with HttpClient() as client:
            html = await client.get_text("https://innovationsfonden.dk/da")
    """

    def __init__(
        self,
        requests_per_second: float = 2.0,
        timeout: float = 30.0,
        cache_ttl: int = 300,
        max_retries: int = 3,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Args:
            requests_per_second: Rate limit per host
            timeout: Request timeout in seconds
            cache_ttl: Seconds a fetched page is reused (0 disables)
            max_retries: Attempts on timeouts and network errors
            user_agent: Value sent in the User-Agent header
        """
        self.requests_per_second = requests_per_second
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.max_retries = max_retries
        self.user_agent = user_agent

        self._client: Optional[httpx.AsyncClient] = None
        self._rate_limiters: dict[str, RateLimiter] = {}
        self._cache: dict[str, CachedPage] = {}

    @classmethod
    def from_settings(cls, settings) -> "HttpClient":
        return cls(
            requests_per_second=settings.requests_per_second,
            timeout=settings.http_timeout,
            cache_ttl=settings.cache_ttl,
            max_retries=settings.max_retries,
            user_agent=settings.user_agent,
        )

    async def __aenter__(self) -> "HttpClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            headers={
                "User-Agent": self.user_agent,
                "Accept-Language": "da,en;q=0.9",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_rate_limiter(self, url: str) -> RateLimiter:
        host = urlparse(url).netloc
        if host not in self._rate_limiters:
            self._rate_limiters[host] = RateLimiter(
                requests_per_second=self.requests_per_second
            )
        return self._rate_limiters[host]

    def _get_cached(self, url: str) -> Optional[str]:
        if self.cache_ttl <= 0:
            return None

        entry = self._cache.get(url)
        if entry is None:
            return None

        if time.time() - entry.fetched_at > self.cache_ttl:
            del self._cache[url]
            return None

        return entry.text

    async def _do_request(self, url: str) -> httpx.Response:
        """GET with retry on transport errors; HTTP errors raise immediately."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        async def attempt() -> httpx.Response:
            response = await self._client.get(url)
            response.raise_for_status()
            return response

        return await attempt()

    async def get_text(self, url: str, use_cache: bool = True) -> str:
        """
        Fetch a page and return its decoded body.

        Raises:
            httpx.HTTPStatusError: Non-2xx response
            httpx.TransportError: Network failure after all retries
        """
        if use_cache:
            cached = self._get_cached(url)
            if cached is not None:
                logger.debug("cache_hit", url=url)
                return cached

        await self._get_rate_limiter(url).acquire()
        logger.debug("http_get", url=url)

        response = await self._do_request(url)
        text = response.text

        if self.cache_ttl > 0:
            self._cache[url] = CachedPage(text=text, fetched_at=time.time())

        return text

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)
