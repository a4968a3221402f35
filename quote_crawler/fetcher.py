import asyncio
import time
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx
import structlog
from lxml import etree, html

from .errors import FetchError

logger = structlog.get_logger(__name__)


class FetchResult:
    def __init__(
        self,
        url: str,
        status_code: int,
        content: bytes = b'',
        headers: Dict[str, str] = None,
        final_url: str = None,
        fetch_time: float = 0.0,
        error: str = None,
        encoding: str = None,
        transient: bool = True
    ):
        """Initialize a FetchResult with HTTP response data and metadata."""
        self.url = url
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.final_url = final_url or url
        self.fetch_time = fetch_time
        self.error = error
        self.encoding = encoding
        self.transient = transient
        self.timestamp = datetime.now(timezone.utc)

    @property
    def success(self) -> bool:
        """Check if the fetch was successful (no error and 2xx status code)."""
        return self.error is None and 200 <= self.status_code < 300

    @property
    def retryable(self) -> bool:
        """Transport failures and server-side errors are worth another attempt."""
        return self.transient and (self.status_code == 0 or self.status_code >= 500)

    @property
    def size(self) -> int:
        return len(self.content)


class HTTPFetcher:
    """Fetches archive pages by numeric index and parses them with lxml."""

    def __init__(
        self,
        base_url: str,
        page_path: str = "/index/{index}",
        user_agent: str = 'QuoteCrawler/1.0',
        timeout: float = 30.0,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.page_path = page_path
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.retry_delay = retry_delay
        self.max_redirects = 5

        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        }
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            max_redirects=self.max_redirects,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "HTTPFetcher":
        archive = config.archive
        fetcher = config.fetcher
        return cls(
            base_url=archive.get('base_url', 'https://bash.im'),
            page_path=archive.get('page_path', '/index/{index}'),
            user_agent=fetcher.get('user_agent', 'QuoteCrawler/1.0'),
            timeout=float(fetcher.get('timeout', 30.0)),
            max_retries=int(fetcher.get('max_retries', 0)),
            retry_delay=float(fetcher.get('retry_delay', 1.0)),
            transport=transport,
        )

    def page_url(self, index: int) -> str:
        return self.base_url + self.page_path.format(index=index)

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL and return a FetchResult; transport failures are reported, not raised."""
        start_time = time.time()

        try:
            response = await self._client.get(url)
            return FetchResult(
                url=url,
                status_code=response.status_code,
                content=response.content,
                headers=dict(response.headers),
                final_url=str(response.url),
                fetch_time=time.time() - start_time,
                error=None if response.is_success else f"HTTP {response.status_code}",
                encoding=response.encoding,
            )

        except httpx.InvalidURL as e:
            # A malformed base_url or page_path fails the same way on every attempt
            error = f"Invalid URL: {str(e)}"
            logger.warning("fetch_invalid_url", url=url, error=error)
            return FetchResult(
                url=url,
                status_code=0,
                fetch_time=time.time() - start_time,
                error=error,
                transient=False,
            )

        except httpx.TimeoutException as e:
            error = f"Timeout after {self.timeout}s: {str(e)}"
            logger.warning("fetch_timeout", url=url, error=error)

        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {str(e)}"
            logger.warning("fetch_transport_error", url=url, error=error)

        return FetchResult(
            url=url,
            status_code=0,
            fetch_time=time.time() - start_time,
            error=error
        )

    async def fetch_page(self, index: int) -> html.HtmlElement:
        """Fetch the archive page at `index` and return its parsed document.

        Raises FetchError once the retry budget is exhausted or the body
        cannot be parsed.
        """
        url = self.page_url(index)
        attempt = 0
        while True:
            result = await self.fetch(url)
            if result.success or not result.retryable or attempt >= self.max_retries:
                break
            attempt += 1
            logger.warning("fetch_retry", url=url, attempt=attempt,
                           max_retries=self.max_retries, error=result.error)
            await asyncio.sleep(self.retry_delay)

        if not result.success:
            raise FetchError(f"Failed to fetch {url}: {result.error}", url=url)

        logger.debug("page_fetched", url=url, status_code=result.status_code,
                     size=result.size, fetch_time=round(result.fetch_time, 3))
        return self.parse(result)

    @staticmethod
    def parse(result: FetchResult) -> html.HtmlElement:
        """Parse the raw body; the HTTP charset wins over any in-document declaration."""
        try:
            parser = html.HTMLParser(encoding=result.encoding) if result.encoding else None
        except LookupError:
            logger.warning("unknown_page_encoding", url=result.url, encoding=result.encoding)
            parser = None
        try:
            return html.document_fromstring(result.content, parser=parser)
        except (etree.ParserError, ValueError) as e:
            raise FetchError(f"Unparseable page {result.url}: {e}", url=result.url) from e

    async def close(self) -> None:
        await self._client.aclose()
