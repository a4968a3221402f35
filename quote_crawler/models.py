from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class RawQuote:
    """Text payloads of one quote frame, as collected from the page."""

    body: str
    date: str
    votes: str


@dataclass(frozen=True)
class Quote:
    """Canonical quote. `content_hash` is derived from `text` only."""

    text: str
    quote_date_time: datetime
    votes: int
    content_hash: str


@dataclass(frozen=True)
class BatchResult:
    """Outcome of reconciling one page worth of quotes."""

    size: int
    inserted: int = 0
    updated: int = 0


@dataclass
class CrawlStats:
    """Run-scoped running totals, updated once per committed batch."""

    pages_processed: int = 0
    quotes_processed: int = 0
    inserted: int = 0
    updated: int = 0
    last_index: Optional[int] = None

    def record_batch(self, index: int, result: BatchResult) -> None:
        self.pages_processed += 1
        self.quotes_processed += result.size
        self.inserted += result.inserted
        self.updated += result.updated
        self.last_index = index
