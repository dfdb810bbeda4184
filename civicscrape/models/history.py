"""Scrape history model."""

from pydantic import BaseModel, ConfigDict, model_validator

from civicscrape.models.fields import Timestamp
from civicscrape.models.page import PageMetadata


class PostScrapeHistory(BaseModel):
    """Audit record for a single scrape run."""

    model_config = ConfigDict(frozen=True)

    id: str
    since: Timestamp
    until: Timestamp
    import_start: Timestamp
    import_end: Timestamp
    number_of_posts: int = 0
    number_of_comments: int = 0
    pages: list[PageMetadata] = []
    # Posts whose comments could not be scraped; number_of_comments is a lower bound when set.
    failed_comment_posts: list[str] = []

    @model_validator(mode="after")
    def _check_import_window(self) -> "PostScrapeHistory":
        if self.import_end < self.import_start:
            raise ValueError("import_end must not precede import_start")
        return self
