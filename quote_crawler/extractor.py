"""
Quote extraction from a parsed archive page.

All markup knowledge lives in an ExtractionSchema so that a layout change on
the archive side is a single edit. Field expressions are XPath evaluated
relative to a quote frame.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

import structlog
from lxml import html

from .models import RawQuote

logger = structlog.get_logger(__name__)

# Only ASCII whitespace and NBSP collapse; other Unicode spaces are kept as-is
_WS_RE = re.compile(r"[ \t\n\f\r\xa0]+")
# Soft hyphen and zero-width space are dropped from text nodes
_INVISIBLE_RE = re.compile("[\u00ad\u200b]")


def _has_class(name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


@dataclass(frozen=True)
class ExtractionSchema:
    version: str
    frames: str
    body: str
    date: str
    votes: str
    pager_input: str


BASH_IM_SCHEMA = ExtractionSchema(
    version="2021.1",
    frames=f"//section[{_has_class('quotes')}]//div[{_has_class('quote__frame')}]",
    body=f".//div[{_has_class('quote__body')}]",
    date=f".//div[{_has_class('quote__header_date')}]",
    votes=f".//div[{_has_class('quote__total')}]",
    pager_input=f"//div[{_has_class('pager')}]//input[{_has_class('pager__input')}]",
)


def collect_text(elements: Iterable[html.HtmlElement]) -> str:
    """Join the direct text children of `elements` line by line.

    Nested markup (links, spans) is skipped, `<br>` boundaries become
    newlines and blank segments are dropped.
    """
    segments: List[str] = []
    for element in elements:
        for node in element.xpath("text()"):
            segment = _WS_RE.sub(" ", _INVISIBLE_RE.sub("", str(node)))
            if segment.strip():
                segments.append(segment)
    return "\n".join(segments).strip()


def extract_raw_quote(frame: html.HtmlElement, schema: ExtractionSchema = BASH_IM_SCHEMA) -> RawQuote:
    return RawQuote(
        body=collect_text(frame.xpath(schema.body)),
        date=collect_text(frame.xpath(schema.date)),
        votes=collect_text(frame.xpath(schema.votes)),
    )


class PageFragments:
    """Lazy, re-iterable sequence of the raw quotes on one page, in page order."""

    def __init__(self, document: html.HtmlElement, schema: ExtractionSchema = BASH_IM_SCHEMA):
        self.document = document
        self.schema = schema

    def __iter__(self) -> Iterator[RawQuote]:
        for frame in self.document.xpath(self.schema.frames):
            yield extract_raw_quote(frame, self.schema)


def page_index(document: html.HtmlElement, schema: ExtractionSchema = BASH_IM_SCHEMA) -> Optional[str]:
    """Index the page reports about itself through its pager control."""
    pager = document.xpath(schema.pager_input)
    if not pager:
        return None
    return pager[0].get("value")


def is_page_on_index(document: html.HtmlElement, index: int,
                     schema: ExtractionSchema = BASH_IM_SCHEMA) -> bool:
    """End-of-archive predicate.

    The archive answers out-of-range indexes with a valid page, so the only
    reliable signal is the pager value disagreeing with the requested index.
    """
    reported = page_index(document, schema)
    if reported != str(index):
        logger.info("page_index_mismatch", requested=index, reported=reported, schema=schema.version)
        return False
    return True
