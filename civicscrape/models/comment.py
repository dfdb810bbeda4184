"""Scraped comment model."""

from pydantic import BaseModel

from civicscrape.models.fields import Timestamp


class ScrapedComment(BaseModel):
    """Represents a comment (or reply) on a post."""

    id: str
    post_id: str
    created_time: Timestamp
    scraped: Timestamp
    message: str | None = None
    from_name: str | None = None
    like_count: int = 0
    parent_id: str | None = None
