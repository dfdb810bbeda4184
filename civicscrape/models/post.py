"""Scraped post model."""

from pydantic import BaseModel

from civicscrape.models.fields import Timestamp


class PageReference(BaseModel):
    """Owning page of a post, by id."""

    id: str
    name: str | None = None


class ScrapedPost(BaseModel):
    """Represents a post published by a page."""

    id: str
    page: PageReference
    created_time: Timestamp
    scraped: Timestamp
    message: str | None = None
    story: str | None = None
    type: str | None = None
    permalink_url: str | None = None
    link: str | None = None

    # Engagement metrics
    reactions_count: int = 0
    comments_count: int = 0
    shares_count: int = 0
