"""Post scraper and post repository facade."""

from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Iterable

from pydantic import ValidationError

from civicscrape.core.exporter import POST_COLUMNS, Column, export_csv, import_csv
from civicscrape.core.fetcher import GraphClient
from civicscrape.core.transformer import transform_post
from civicscrape.logging import get_logger
from civicscrape.models.fields import to_utc, utcnow
from civicscrape.models.page import PageMetadata
from civicscrape.models.paging import Ordering, PagedResponse, TimeSearchResponse, validate_window
from civicscrape.models.post import ScrapedPost
from civicscrape.repository.base import Refresh, Repository

POST_FIELDS = ",".join([
    "id",
    "message",
    "story",
    "created_time",
    "status_type",
    "permalink_url",
    "link",
    "shares",
    "reactions.summary(true).limit(0)",
    "comments.summary(true).limit(0)",
])

# Stored field posts are listed, filtered and exported by
POST_TIME_FIELD = "created_time"


class PostScraper:
    """
    Scrapes page feeds for posts and owns the post repository.

    Every scraped post is upserted, so re-scraping a window refreshes
    engagement counters instead of duplicating posts.
    """

    def __init__(self, graph: GraphClient, repository: Repository[ScrapedPost]):
        self.graph = graph
        self.repository = repository
        self._log = get_logger("post_scraper")

    async def scrape(
        self,
        pages: Iterable[PageMetadata],
        since: datetime,
        until: datetime,
    ) -> list[ScrapedPost]:
        """
        Fetch and store every post the pages published in ``[since, until)``.

        Args:
            pages: Pages whose feeds are read
            since: Inclusive lower bound on created_time
            until: Exclusive upper bound on created_time

        Returns:
            Posts in the order the Graph API returned them, page by page

        Raises:
            InvalidArgumentError: until precedes since
            NotFoundError: A page no longer exists
            ScrapeError: Network or API failure
        """
        since, until = to_utc(since), to_utc(until)
        validate_window(since, until)
        if since == until:
            return []

        posts: list[ScrapedPost] = []
        for page in pages:
            page_posts = 0
            async for raw in self.graph.get_edge(
                f"{page.id}/posts",
                fields=POST_FIELDS,
                since=int(since.timestamp()),
                until=int(until.timestamp()),
            ):
                try:
                    post = transform_post(raw, page, scraped_at=utcnow())
                except ValidationError as e:
                    self._log.warning("post_skipped", page_id=page.id, post_id=raw.get("id"), error=str(e))
                    continue

                # The feed's since/until are inclusive, keep the half-open window.
                if not since <= post.created_time < until:
                    continue

                await self.repository.save(post)
                posts.append(post)
                page_posts += 1

            self._log.info("page_posts_scraped", page_id=page.id, posts=page_posts)

        return posts

    async def get(self, post_id: str) -> ScrapedPost:
        return await self.repository.get(post_id)

    async def save(self, post: ScrapedPost, refresh: Refresh = Refresh.FALSE) -> ScrapedPost:
        return await self.repository.save(post, refresh)

    async def query(
        self,
        paging: PagedResponse,
        ordering: Ordering,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> TimeSearchResponse[ScrapedPost]:
        """Paged post listing filtered on created_time."""
        return await self.repository.query(paging, ordering, POST_TIME_FIELD, since, until)

    async def export(
        self,
        ordering: Ordering,
        since: datetime | None = None,
        until: datetime | None = None,
        columns: list[Column] = POST_COLUMNS,
    ) -> bytes:
        """CSV export of every post created in the window."""
        return await export_csv(self.repository, ordering, POST_TIME_FIELD, since, until, columns)

    def import_csv(
        self,
        source: str | Path | bytes | BinaryIO,
        chunk_size: int = 1000,
    ) -> AsyncIterator[ScrapedPost]:
        """Upsert posts from a CSV previously produced by ``export``."""
        return import_csv(self.repository, source, POST_COLUMNS, ScrapedPost, chunk_size)
