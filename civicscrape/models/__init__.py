"""Pydantic models for civicscrape."""

from civicscrape.models.page import PageMetadata
from civicscrape.models.post import PageReference, ScrapedPost
from civicscrape.models.comment import ScrapedComment
from civicscrape.models.history import PostScrapeHistory
from civicscrape.models.paging import Ordering, OrderingType, PagedResponse, TimeSearchResponse

__all__ = [
    "PageMetadata",
    "PageReference",
    "ScrapedPost",
    "ScrapedComment",
    "PostScrapeHistory",
    "Ordering",
    "OrderingType",
    "PagedResponse",
    "TimeSearchResponse",
]
