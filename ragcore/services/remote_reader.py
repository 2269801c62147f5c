"""
Remote reader client with an in-memory LRU cache.

Fetches external pages through a reader endpoint that returns the page
as JSON (``GET <reader-url>/<url>``). Successful results are cached by
URL; failures are never cached.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ragcore.errors import RetrievalError
from ragcore.models.reader import ReaderResult
from ragcore.utils import LRUCache


logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    """Transport failures and 5xx answers are worth another attempt."""
    if isinstance(exc, RetrievalError):
        return exc.status_code is None or exc.status_code >= 500
    return False


class RemoteReader:
    """
    Client for the remote reader endpoint.

    Concurrent callers requesting the same uncached URL may each trigger
    a fetch; the last one to finish wins the cache slot.
    """

    def __init__(
        self,
        reader_url: str = "https://r.jina.ai/",
        cache_size: int = 1000,
        timeout: float = 30.0,
        max_retries: int = 3,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the reader client.

        Args:
            reader_url: Reader endpoint; the target URL is appended to it
            cache_size: Maximum number of cached results
            timeout: Per-request timeout in seconds
            max_retries: Attempts per fetch before giving up
            token: Optional bearer token
            client: Optional preconfigured HTTP client (tests)
        """
        self.reader_url = reader_url if reader_url.endswith("/") else reader_url + "/"
        self.max_retries = max_retries
        self.token = token
        self.cache: LRUCache[ReaderResult] = LRUCache(cache_size)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        logger.info(f"Initialized RemoteReader at {self.reader_url} (cache_size={cache_size})")

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _fetch_once(self, url: str) -> ReaderResult:
        try:
            response = await self._client.get(self.reader_url + url, headers=self._headers())
        except httpx.HTTPError as e:
            raise RetrievalError(f"Call remote reader failed: {e}", url=url) from e

        if response.status_code != 200:
            raise RetrievalError(
                f"Call remote reader failed: {response.status_code} {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RetrievalError(
                "Invalid data from remote reader", url=url, status_code=200, body=response.text
            ) from e
        if not data:
            raise RetrievalError("Empty data from remote reader", url=url, status_code=200, body=response.text)

        try:
            return ReaderResult.model_validate(data)
        except PydanticValidationError as e:
            raise RetrievalError(
                f"Malformed reader payload: {e.error_count()} validation errors",
                url=url,
                status_code=200,
                body=response.text,
            ) from e

    async def crawl(self, url: str) -> ReaderResult:
        """
        Fetch a page through the reader, using the cache when possible.

        Args:
            url: Page URL to read

        Returns:
            Reader result

        Raises:
            RetrievalError: On non-200 status, transport failure or malformed payload
        """
        cached = self.cache.get(url)
        if cached is not None:
            logger.info(f"In-memory crawl cache hit: {url}")
            return cached

        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception(_is_transient),
        ):
            with attempt:
                result = await self._fetch_once(url)

        logger.info(f"Crawl from reader success: {url}")
        self.cache.put(url, result)
        return result
