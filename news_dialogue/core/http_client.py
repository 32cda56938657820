"""Async HTTP client: article page fetching and rate-limited model API calls."""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Optional, Any

import aiohttp
from aiohttp import ClientTimeout, ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import settings
from .exceptions import ExtractionError


USER_AGENT = 'News-Dialogue/1.0.0'

# News sites frequently block non-browser agents
BROWSER_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}

HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')
MAX_PAGE_BYTES = 5 * 1024 * 1024


@dataclass
class FetchedPage:
    """An article page as served, after redirects."""
    url: str
    html: str
    status: int
    content_type: str


class RateLimiter:
    """Sliding-window limiter for model API calls."""

    def __init__(self, max_calls: int, time_window: float = 1.0):
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls = []
        self.lock = asyncio.Lock()

    async def acquire(self):
        while True:
            async with self.lock:
                now = time.monotonic()
                self.calls = [call_time for call_time in self.calls if now - call_time < self.time_window]

                if len(self.calls) < self.max_calls:
                    self.calls.append(now)
                    return

                sleep_time = self.time_window - (now - self.calls[0])

            await asyncio.sleep(max(sleep_time, 0))


class AsyncHTTPClient:
    """Pooled aiohttp session shared by page fetches and Gemini requests.

    GET and POST retry on connection errors and timeouts; POST goes
    through the rate limiter because it is only used for model calls.
    """

    def __init__(self, timeout: Optional[float] = None, rate_limit: Optional[int] = None,
                 max_page_bytes: int = MAX_PAGE_BYTES):
        self.session: Optional[aiohttp.ClientSession] = None
        self.rate_limiter = RateLimiter(max_calls=rate_limit or settings.api_rate_limit, time_window=1.0)
        self.timeout = ClientTimeout(total=timeout or settings.request_timeout, connect=10)
        self.max_page_bytes = max_page_bytes

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the session; no-op while one is open."""
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,  # Total connection pool size
                limit_per_host=5,  # Connections per host
                ttl_dns_cache=300,  # DNS cache TTL
            )
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers={'User-Agent': USER_AGENT}
            )

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((ClientError, asyncio.TimeoutError))
    )
    async def get(self, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> aiohttp.ClientResponse:
        """Make GET request with retries."""
        if not self.session or self.session.closed:
            await self.start()

        return await self.session.get(url, headers=headers, **kwargs)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((ClientError, asyncio.TimeoutError))
    )
    async def post(self, url: str, data: Any = None, json: Any = None,
                   headers: Optional[Dict[str, str]] = None, **kwargs) -> aiohttp.ClientResponse:
        """Make a rate-limited POST request with retries."""
        if not self.session or self.session.closed:
            await self.start()

        await self.rate_limiter.acquire()

        return await self.session.post(url, data=data, json=json, headers=headers, **kwargs)

    async def fetch_page(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchedPage:
        """Download an article page with browser headers.

        Raises ExtractionError for HTTP errors, non-HTML responses and
        pages larger than ``max_page_bytes``.
        """
        async with await self.get(url, headers=headers or BROWSER_HEADERS) as response:
            if response.status >= 400:
                raise ExtractionError(f"HTTP {response.status} fetching {url}")

            content_type = response.content_type or ''
            if content_type and content_type not in HTML_CONTENT_TYPES:
                raise ExtractionError(f"Not an HTML page ({content_type}): {url}")

            if response.content_length and response.content_length > self.max_page_bytes:
                raise ExtractionError(f"Page too large ({response.content_length} bytes): {url}")

            body = bytearray()
            async for chunk in response.content.iter_chunked(64 * 1024):
                body.extend(chunk)
                if len(body) > self.max_page_bytes:
                    raise ExtractionError(f"Page too large (over {self.max_page_bytes} bytes): {url}")

            encoding = response.charset or 'utf-8'
            try:
                html = body.decode(encoding, errors='replace')
            except LookupError:
                html = body.decode('utf-8', errors='replace')

            return FetchedPage(
                url=str(response.url),
                html=html,
                status=response.status,
                content_type=content_type,
            )
