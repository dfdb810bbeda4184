"""Comment scraper."""

from pydantic import ValidationError

from civicscrape.core.fetcher import GraphClient
from civicscrape.core.transformer import transform_comment
from civicscrape.logging import get_logger
from civicscrape.models.comment import ScrapedComment
from civicscrape.models.fields import utcnow
from civicscrape.models.post import ScrapedPost
from civicscrape.repository.base import Repository

COMMENT_FIELDS = "id,message,created_time,from,like_count,parent"


class CommentScraper:
    """Fetches and stores every comment of a post, replies included."""

    def __init__(self, graph: GraphClient, repository: Repository[ScrapedComment]):
        self.graph = graph
        self.repository = repository
        self._log = get_logger("comment_scraper")

    async def scrape(self, post: ScrapedPost) -> list[ScrapedComment]:
        """
        Fetch all comments on a post.

        Raises:
            NotFoundError: Post no longer exists
            ScrapeError: Network or API failure
        """
        comments = []
        async for raw in self.graph.get_edge(
            f"{post.id}/comments",
            fields=COMMENT_FIELDS,
            filter="stream",
        ):
            try:
                comment = transform_comment(raw, post.id, scraped_at=utcnow())
            except ValidationError as e:
                self._log.warning("comment_skipped", post_id=post.id, comment_id=raw.get("id"), error=str(e))
                continue
            await self.repository.save(comment)
            comments.append(comment)

        self._log.debug("comments_scraped", post_id=post.id, comments=len(comments))
        return comments
