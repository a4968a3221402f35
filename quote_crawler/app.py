"""
Entrypoint wiring: load config, init logging, connect storage, build the
fetcher and crawler, run until the archive ends, shut down cleanly.
"""

import asyncio
import signal
from typing import Optional

import structlog

from .config import Config
from .errors import CrawlError
from .fetcher import HTTPFetcher
from .logging_config import setup_logging
from .models import CrawlStats
from .storage import MongoStorage
from .worker import Crawler

logger = structlog.get_logger(__name__)


class CrawlerApp:
    """Main crawler application that coordinates all components."""

    def __init__(self, config: Config, storage: MongoStorage = None, fetcher: HTTPFetcher = None):
        self.config = config
        self.storage = storage
        self.fetcher = fetcher
        self.crawler: Optional[Crawler] = None

    def _setup_logging(self):
        log_config = self.config.logging
        setup_logging(level=log_config.get('level', 'INFO'), fmt=log_config.get('format', 'json'))

    def _setup_signal_handlers(self):
        """Finish the current page, then stop, on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.stop_app, signum)
            except (NotImplementedError, RuntimeError):
                # e.g. Windows event loops or non-main threads
                pass

    def _init_storage(self):
        if self.storage is None:
            self.storage = MongoStorage(config=self.config.as_dict())
        self.storage.connect()
        self.storage.bootstrap()

    def _init_crawler(self):
        if self.fetcher is None:
            self.fetcher = HTTPFetcher.from_config(self.config)
        self.crawler = Crawler(
            storage=self.storage,
            fetcher=self.fetcher,
            start_index=self.config.start_index,
            max_pages=self.config.get('archive', 'max_pages'),
        )

    async def start_app(self) -> CrawlStats:
        logger.info("starting_quote_crawler",
                    base_url=self.config.base_url,
                    start_index=self.config.start_index,
                    database=self.config.mongodb.get('database'))
        try:
            self._init_storage()
            self._init_crawler()
            self._setup_signal_handlers()

            stats = await self.crawler.run()
            logger.info("crawl_finished",
                        pages_processed=stats.pages_processed,
                        quotes_processed=stats.quotes_processed,
                        inserted=stats.inserted,
                        updated=stats.updated,
                        last_index=stats.last_index,
                        stored_quotes=self.storage.count())
            return stats
        finally:
            await self._shutdown()

    def stop_app(self, signum=None):
        logger.info("stop_requested", signal=signum)
        if self.crawler:
            self.crawler.stop()

    async def _shutdown(self):
        if self.fetcher:
            await self.fetcher.close()
        if self.storage:
            self.storage.close()


async def run(config: Config, storage: MongoStorage = None, fetcher: HTTPFetcher = None) -> int:
    """Run one crawl and map fatal errors to a process exit code."""
    app = CrawlerApp(config, storage=storage, fetcher=fetcher)
    app._setup_logging()
    try:
        await app.start_app()
    except CrawlError as e:
        logger.error("crawl_aborted", error=str(e), error_type=type(e).__name__, exc_info=True)
        return 1
    return 0
