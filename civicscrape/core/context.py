"""Process-wide wiring of repositories, Graph client, scrapers and orchestrator."""

from pathlib import Path

from civicscrape.config import ScrapeConfig, StorageBackend
from civicscrape.core.fetcher import GraphClient
from civicscrape.core.importer import HistoricalImporter, find_legacy_exports
from civicscrape.core.orchestrator import ScrapeOrchestrator
from civicscrape.logging import configure_logging, get_logger
from civicscrape.models.comment import ScrapedComment
from civicscrape.models.history import PostScrapeHistory
from civicscrape.models.page import PageMetadata
from civicscrape.models.post import ScrapedPost
from civicscrape.repository.base import Repository
from civicscrape.repository.memory_repository import MemoryRepository
from civicscrape.repository.redis_repository import RedisRepository
from civicscrape.repository.sqlite_repository import SQLiteDatabase, SQLiteRepository
from civicscrape.scrapers.comment import CommentScraper
from civicscrape.scrapers.page import PageScraper
from civicscrape.scrapers.post import PostScraper


class ScrapeContext:
    """
    Owns one instance of every collaborator for the lifetime of a process.

    Example:
        async with ScrapeContext() as ctx:
            history = await ctx.orchestrator.run_scrape(None, since, until)
    """

    def __init__(self, config: ScrapeConfig | None = None, graph: GraphClient | None = None):
        """
        Initialize context with optional configuration.

        Args:
            config: ScrapeConfig instance, uses defaults if None
            graph: Graph client to use instead of one built from config
        """
        self.config = config or ScrapeConfig()
        self._graph = graph
        self._database: SQLiteDatabase | None = None
        self._repositories: list[Repository] = []
        self._log = get_logger("context")

    async def __aenter__(self) -> "ScrapeContext":
        """Build repositories and scrapers."""
        configure_logging(self.config)

        self.page_repository = self._repository(PageMetadata, "pages")
        self.post_repository = self._repository(ScrapedPost, "posts")
        self.comment_repository = self._repository(ScrapedComment, "comments")
        self.history_repository = self._repository(PostScrapeHistory, "post_scrape_history")

        if self._graph is None:
            self._graph = GraphClient(self.config)
        self.graph = self._graph

        self.page_scraper = PageScraper(self.graph)
        self.post_scraper = PostScraper(self.graph, self.post_repository)
        self.comment_scraper = CommentScraper(self.graph, self.comment_repository)
        self.orchestrator = ScrapeOrchestrator(
            self.page_repository,
            self.post_scraper,
            self.comment_scraper,
            self.history_repository,
            comment_concurrency=self.config.comment_concurrency,
        )

        self._log.info("context_ready", storage=self.config.storage_backend.value)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Flush and close storage, then the Graph client."""
        for repository in self._repositories:
            await repository.close()
        if self._database is not None:
            await self._database.close()
        if self._graph is not None:
            await self._graph.close()

    def historical_importer(self) -> HistoricalImporter:
        """New importer; each tracks the failures of its own runs."""
        return HistoricalImporter(
            self.page_scraper,
            self.page_repository,
            self.post_scraper,
            chunk_size=self.config.import_chunk_size,
        )

    def legacy_exports(self) -> list[Path]:
        """Legacy export files found in the configured import directory."""
        return find_legacy_exports(self.config.historical_import_dir, self.config.historical_file_marker)

    def _repository(self, model: type, name: str) -> Repository:
        backend = self.config.storage_backend
        if backend == StorageBackend.SQLITE:
            if self._database is None:
                self._database = SQLiteDatabase(self.config.sqlite_path, self.config.commit_interval)
            repository = SQLiteRepository(model, self._database, name=name)
        elif backend == StorageBackend.REDIS:
            repository = RedisRepository(model, self.config.redis_url, name=name)
        else:
            repository = MemoryRepository(model, name=name)
        self._repositories.append(repository)
        return repository
