"""Backfill of posts from legacy page engagement exports."""

from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable

import pandas as pd
from pydantic import ValidationError

from civicscrape.exceptions import ConfigError, ImportFailedError, NotFoundError, ScrapeError
from civicscrape.core.transformer import normalize_count, parse_graph_time
from civicscrape.logging import get_logger
from civicscrape.models.fields import utcnow
from civicscrape.models.page import PageMetadata
from civicscrape.models.post import PageReference, ScrapedPost
from civicscrape.repository.base import Refresh, Repository
from civicscrape.scrapers.page import PageScraper
from civicscrape.scrapers.post import PostScraper

# Column headers of the legacy engagement exports
LEGACY_COLUMNS = {
    "page_id": "Page ID",
    "page_name": "Page Name",
    "post_id": "Post ID",
    "created_time": "Created Time",
    "message": "Message",
    "type": "Type",
    "link": "Link",
    "reactions": "Reactions",
    "comments": "Comments",
    "shares": "Shares",
}

REQUIRED_COLUMNS = ("page_id", "post_id", "created_time")


@dataclass
class ImportFailure:
    """A legacy export that could not be fully imported."""

    path: str
    error: str
    line: int | None = None


def find_legacy_exports(directory: str | Path, marker: str = "DedooseChartExcerpts") -> list[Path]:
    """
    Find legacy export CSVs below a directory.

    Args:
        directory: Root directory, searched recursively
        marker: Substring every export file name contains

    Returns:
        Matching paths, sorted
    """
    root = Path(directory)
    return sorted(p for p in root.rglob("*.csv") if marker in p.name)


class HistoricalImporter:
    """
    Imports posts from legacy engagement exports predating the orchestrator.

    Pages referenced by an export are looked up in the page repository and
    scraped (or, failing that, backfilled from the export) when unknown.
    A file that cannot be read or holds a malformed row is abandoned and
    recorded in ``failures``; the remaining files are still imported.

    Example:
        importer = HistoricalImporter(page_scraper, page_repository, post_scraper)
        async for post in importer.import_posts(find_legacy_exports("data")):
            print(post.id)
        print(importer.failures)
    """

    def __init__(
        self,
        page_scraper: PageScraper,
        page_repository: Repository[PageMetadata],
        post_scraper: PostScraper,
        chunk_size: int = 1000,
    ):
        self.page_scraper = page_scraper
        self.page_repository = page_repository
        self.post_scraper = post_scraper
        self.chunk_size = chunk_size
        self.failures: list[ImportFailure] = []
        self._log = get_logger("historical_importer")

    async def import_posts(self, paths: Iterable[str | Path]) -> AsyncIterator[ScrapedPost]:
        """
        Import every post row of the given files, yielding each saved post.

        Re-running over the same files overwrites the same posts.
        """
        self.failures = []
        for path in paths:
            path = Path(path)
            imported = 0
            try:
                async for post in self._import_file(path):
                    imported += 1
                    yield post
            except ImportFailedError as e:
                self._record_failure(path, str(e), e.line)
            except (OSError, UnicodeDecodeError, pd.errors.EmptyDataError, pd.errors.ParserError) as e:
                self._record_failure(path, f"Cannot read file: {e}")
            finally:
                await self.post_scraper.repository.flush()
            self._log.info("legacy_file_imported", path=str(path), posts=imported)

    def _record_failure(self, path: Path, error: str, line: int | None = None) -> None:
        self._log.warning("legacy_file_failed", path=str(path), error=error, line=line)
        self.failures.append(ImportFailure(path=str(path), error=error, line=line))

    async def _import_file(self, path: Path) -> AsyncIterator[ScrapedPost]:
        pages: dict[str, PageReference] = {}
        reader = pd.read_csv(path, dtype=str, keep_default_na=False, chunksize=self.chunk_size)
        line = 1
        with reader:
            for chunk in reader:
                missing = [LEGACY_COLUMNS[c] for c in REQUIRED_COLUMNS if LEGACY_COLUMNS[c] not in chunk.columns]
                if missing:
                    raise ImportFailedError(f"Missing columns: {', '.join(missing)}")

                for row in chunk.to_dict("records"):
                    line += 1
                    page_id = row[LEGACY_COLUMNS["page_id"]].strip()
                    if not page_id:
                        raise _row_error(line, "empty page id")
                    if page_id not in pages:
                        pages[page_id] = await self._resolve_page(page_id, row.get(LEGACY_COLUMNS["page_name"]))

                    post = self._build_post(row, pages[page_id], line)
                    yield await self.post_scraper.save(post, refresh=Refresh.FALSE)

    async def _resolve_page(self, page_id: str, page_name: str | None) -> PageReference:
        """Use the stored page, else scrape it, else backfill it from the export."""
        try:
            page = await self.page_repository.get(page_id)
        except NotFoundError:
            try:
                page = await self.page_scraper.scrape(page_id)
            except (ScrapeError, NotFoundError, ConfigError) as e:
                self._log.warning("page_backfilled", page_id=page_id, error=str(e))
                page = PageMetadata(id=page_id, name=page_name or None, created=utcnow())
            await self.page_repository.save(page, refresh=Refresh.TRUE)
        return PageReference(id=page.id, name=page.name)

    def _build_post(self, row: dict, page: PageReference, line: int) -> ScrapedPost:
        def cell(key: str) -> str | None:
            value = row.get(LEGACY_COLUMNS[key], "").strip()
            return value or None

        created_time = parse_graph_time(cell("created_time"))
        if created_time is None:
            raise _row_error(line, f"unparseable created time {cell('created_time')!r}")

        try:
            return ScrapedPost(
                id=cell("post_id"),
                page=page,
                created_time=created_time,
                scraped=utcnow(),
                message=cell("message"),
                type=cell("type"),
                link=cell("link"),
                reactions_count=normalize_count(cell("reactions")),
                comments_count=normalize_count(cell("comments")),
                shares_count=normalize_count(cell("shares")),
            )
        except ValidationError as e:
            raise _row_error(line, str(e)) from e


def _row_error(line: int, message: str) -> ImportFailedError:
    return ImportFailedError(f"Malformed row at line {line}: {message}", line=line)
