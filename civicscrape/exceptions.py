"""Custom exception hierarchy for civicscrape."""


class CivicScrapeError(Exception):
    """Base exception for all civicscrape errors."""


class NotFoundError(CivicScrapeError):
    """Requested entity does not exist."""


class InvalidArgumentError(CivicScrapeError, ValueError):
    """Rejected input: bad paging, time window or page list."""


class ScrapeError(CivicScrapeError):
    """Failed to fetch data from the Graph API."""


class StorageError(CivicScrapeError):
    """Repository operation failed."""


class ImportFailedError(CivicScrapeError):
    """Failed to import a tabular file."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line


class ConfigError(CivicScrapeError):
    """Invalid configuration."""
