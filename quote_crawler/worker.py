"""
Sequential archive crawler: fetch a page, stop if the archive has no such
page, otherwise extract, normalize and persist its quotes, then advance.
"""
from typing import List, Optional

import structlog

from .extractor import BASH_IM_SCHEMA, ExtractionSchema, PageFragments, is_page_on_index
from .fetcher import HTTPFetcher
from .models import CrawlStats, Quote
from .normalizer import normalize_quote
from .storage import MongoStorage

logger = structlog.get_logger(__name__)


class Crawler:
    """Walks archive pages forward from `start_index` until the archive ends"""

    def __init__(
        self,
        storage: MongoStorage,
        fetcher: HTTPFetcher,
        start_index: int,
        schema: ExtractionSchema = BASH_IM_SCHEMA,
        max_pages: Optional[int] = None,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.start_index = start_index
        self.schema = schema
        self.max_pages = max_pages
        self._stop_requested = False

    def stop(self):
        """Ask the crawler to stop before fetching the next page"""
        self._stop_requested = True

    async def run(self) -> CrawlStats:
        stats = CrawlStats()
        index = self.start_index
        logger.info("crawler_started", start_index=index, schema=self.schema.version)

        while not self._stop_requested:
            if self.max_pages is not None and stats.pages_processed >= self.max_pages:
                logger.info("max_pages_reached", max_pages=self.max_pages)
                break

            document = await self.fetcher.fetch_page(index)
            if not is_page_on_index(document, index, self.schema):
                logger.info("archive_end_reached", index=index)
                break

            self._process_page(document, index, stats)
            index += 1

        if self._stop_requested:
            logger.info("crawler_stopped", next_index=index)
        return stats

    def _process_page(self, document, index: int, stats: CrawlStats):
        # Normalize the whole page first so a bad record persists nothing
        quotes: List[Quote] = [normalize_quote(raw) for raw in PageFragments(document, self.schema)]
        result = self.storage.save_or_update(quotes)
        stats.record_batch(index, result)

        logger.info(
            "batch_committed",
            index=index,
            batch_size=result.size,
            inserted=result.inserted,
            updated=result.updated,
            pages_processed=stats.pages_processed,
            quotes_processed=stats.quotes_processed,
        )
