"""Page metadata model."""

from pydantic import BaseModel

from civicscrape.models.fields import Timestamp


class PageMetadata(BaseModel):
    """Represents a Facebook page we collect posts from."""

    id: str
    name: str | None = None
    category: str | None = None
    fan_count: int | None = None
    link: str | None = None
    about: str | None = None
    created: Timestamp | None = None
    last_scraped: Timestamp | None = None
