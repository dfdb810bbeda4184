"""Scrape run orchestrator - resolves pages, scrapes posts and comments, records history."""

import asyncio
import uuid
from datetime import datetime
from typing import Callable

from civicscrape.exceptions import InvalidArgumentError, NotFoundError, ScrapeError
from civicscrape.logging import get_logger
from civicscrape.models.fields import to_utc, utcnow
from civicscrape.models.history import PostScrapeHistory
from civicscrape.models.page import PageMetadata
from civicscrape.models.paging import validate_window
from civicscrape.models.post import ScrapedPost
from civicscrape.repository.base import Refresh, Repository
from civicscrape.scrapers.comment import CommentScraper
from civicscrape.scrapers.post import PostScraper


class ScrapeOrchestrator:
    """
    Drives a full scrape run and records exactly one history entry for it.

    Example:
        orchestrator = ScrapeOrchestrator(pages, post_scraper, comment_scraper, history)
        history = await orchestrator.run_scrape(["cnn"], since, until)
        print(history.number_of_posts, history.number_of_comments)
    """

    def __init__(
        self,
        page_repository: Repository[PageMetadata],
        post_scraper: PostScraper,
        comment_scraper: CommentScraper,
        history_repository: Repository[PostScrapeHistory],
        comment_concurrency: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize orchestrator.

        Args:
            page_repository: Known pages, used to resolve scrape targets
            post_scraper: Scrapes and stores posts
            comment_scraper: Scrapes and stores comments per post
            history_repository: Receives one PostScrapeHistory per run
            comment_concurrency: Posts whose comments are fetched at once
            clock: Source of run timestamps
        """
        self.page_repository = page_repository
        self.post_scraper = post_scraper
        self.comment_scraper = comment_scraper
        self.history_repository = history_repository
        self.comment_concurrency = max(1, comment_concurrency)
        self._clock = clock
        self._log = get_logger("orchestrator")

    async def run_scrape(
        self,
        page_ids: list[str] | None,
        since: datetime,
        until: datetime,
    ) -> PostScrapeHistory:
        """
        Scrape posts published in ``[since, until)`` and their comments.

        Args:
            page_ids: Pages to scrape; None or empty scrapes every known page
            since: Inclusive window start
            until: Exclusive window end

        Returns:
            The saved PostScrapeHistory for this run

        Raises:
            InvalidArgumentError: until precedes since
            NotFoundError: A requested page is unknown (nothing is scraped)
            ScrapeError: Post scraping failed (no history is saved)
            StorageError: A repository write failed (no history is saved)
        """
        since, until = to_utc(since), to_utc(until)
        validate_window(since, until)
        run_start = self._clock()

        pages = await self._resolve_pages(page_ids)
        self._log.info(
            "scrape_start",
            pages=[p.id for p in pages],
            since=since.isoformat(),
            until=until.isoformat(),
        )

        posts = await self.post_scraper.scrape(pages, since, until)
        number_of_comments, failed = await self._scrape_comments(posts)

        import_start = posts[0].scraped if posts else run_start
        # Posts are stamped by the scrapers' clock, which may run ahead of ours.
        history = PostScrapeHistory(
            id=uuid.uuid4().hex,
            since=since,
            until=until,
            import_start=import_start,
            import_end=max(self._clock(), import_start),
            number_of_posts=len(posts),
            number_of_comments=number_of_comments,
            pages=pages,
            failed_comment_posts=failed,
        )
        saved = await self.history_repository.save(history, refresh=Refresh.TRUE)

        self._log.info(
            "scrape_complete",
            history_id=saved.id,
            posts=saved.number_of_posts,
            comments=saved.number_of_comments,
            failed_comment_posts=len(failed),
        )
        return saved

    async def _resolve_pages(self, page_ids: list[str] | None) -> list[PageMetadata]:
        if not page_ids:
            return [page async for page in self.page_repository.all_data()]

        pages = []
        for page_id in dict.fromkeys(page_ids):
            if not page_id:
                raise InvalidArgumentError("Page ids must be non-empty")
            pages.append(await self.page_repository.get(page_id))
        return pages

    async def _scrape_comments(self, posts: list[ScrapedPost]) -> tuple[int, list[str]]:
        """Fetch comments for every post; returns (total comments, ids of failed posts)."""
        semaphore = asyncio.Semaphore(self.comment_concurrency)

        async def scrape_one(post: ScrapedPost) -> int | None:
            async with semaphore:
                try:
                    comments = await self.comment_scraper.scrape(post)
                except (ScrapeError, NotFoundError) as e:
                    self._log.warning("comment_scrape_failed", post_id=post.id, error=str(e))
                    return None
            self._log.debug("post_comments", post_id=post.id, comments=len(comments))
            return len(comments)

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(scrape_one(post)) for post in posts]
        except ExceptionGroup as errors:
            # Unexpected failures (storage, programming errors) abort the run as themselves.
            raise errors.exceptions[0]

        counts = [task.result() for task in tasks]
        failed = [post.id for post, count in zip(posts, counts) if count is None]
        return sum(count for count in counts if count is not None), failed
