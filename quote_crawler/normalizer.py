"""
Turns the raw payloads of a quote frame into a canonical Quote.
"""
from __future__ import annotations

import hashlib
import re
from datetime import datetime

from .errors import FormatError
from .models import Quote, RawQuote

# Localized "at" token between date and time, e.g. "01.02.2019 в 13:05"
DATE_TIME_SEPARATOR = " в "
DATE_TIME_FORMAT = "%d.%m.%Y %H:%M"

# strptime accepts single-digit day/month, the archive never emits them
_DATE_TIME_RE = re.compile(r"[0-9]{2}\.[0-9]{2}\.[0-9]{4} [0-9]{1,2}:[0-9]{2}")


def content_hash(text: str) -> str:
    """Uppercase MD5 hex digest of the quote text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest().upper()


def parse_votes(value: str) -> int:
    """Parse a vote label; anything that is not purely decimal digits counts as 0."""
    if value and value.isdecimal():
        return int(value)
    return 0


def parse_quote_datetime(value: str) -> datetime:
    normalized = value.replace(DATE_TIME_SEPARATOR, " ")
    if not _DATE_TIME_RE.fullmatch(normalized):
        raise FormatError(f"Unexpected quote date format: {value!r}", value=value)
    try:
        return datetime.strptime(normalized, DATE_TIME_FORMAT)
    except ValueError as e:
        raise FormatError(f"Invalid quote date {value!r}: {e}", value=value) from e


def normalize_quote(raw: RawQuote) -> Quote:
    return Quote(
        text=raw.body,
        quote_date_time=parse_quote_datetime(raw.date),
        votes=parse_votes(raw.votes),
        content_hash=content_hash(raw.body),
    )
