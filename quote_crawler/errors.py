"""
Error taxonomy for the harvester. Every error here is fatal for the run.
"""


class CrawlError(Exception):
    """Base class for all harvester errors."""


class FetchError(CrawlError):
    """Network/transport failure or a response that cannot be parsed."""

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class FormatError(CrawlError):
    """A scraped value no longer matches the expected markup format."""

    def __init__(self, message: str, value: str = None):
        super().__init__(message)
        self.value = value


class PersistenceError(CrawlError):
    """Storage unavailable or a constraint violated while writing a batch."""
