"""civicscrape - Facebook page post/comment scraper with scrape history."""

from civicscrape.config import ScrapeConfig
from civicscrape.core.context import ScrapeContext
from civicscrape.core.orchestrator import ScrapeOrchestrator
from civicscrape.core.importer import HistoricalImporter
from civicscrape.core.exporter import export_csv, import_csv
from civicscrape.models import (
    Ordering,
    OrderingType,
    PagedResponse,
    PageMetadata,
    PostScrapeHistory,
    ScrapedComment,
    ScrapedPost,
    TimeSearchResponse,
)
from civicscrape.repository import Refresh, Repository

__version__ = "0.1.0"

__all__ = [
    # Main interface
    "ScrapeContext",
    "ScrapeConfig",
    "ScrapeOrchestrator",
    "HistoricalImporter",
    # Models
    "PageMetadata",
    "ScrapedPost",
    "ScrapedComment",
    "PostScrapeHistory",
    "Ordering",
    "OrderingType",
    "PagedResponse",
    "TimeSearchResponse",
    # Storage
    "Repository",
    "Refresh",
    # Export utilities
    "export_csv",
    "import_csv",
    "__version__",
]
