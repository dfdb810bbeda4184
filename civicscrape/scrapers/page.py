"""Page metadata scraper."""

from civicscrape.core.fetcher import GraphClient
from civicscrape.core.transformer import transform_page
from civicscrape.logging import get_logger
from civicscrape.models.page import PageMetadata

PAGE_FIELDS = "id,name,category,fan_count,link,about"


class PageScraper:
    """Fetches current page metadata from the Graph API."""

    def __init__(self, graph: GraphClient):
        self.graph = graph
        self._log = get_logger("page_scraper")

    async def scrape(self, page_id: str) -> PageMetadata:
        """
        Fetch metadata for a single page.

        Raises:
            NotFoundError: Page does not exist
            ScrapeError: Network or API failure
        """
        raw = await self.graph.get_object(page_id, fields=PAGE_FIELDS)
        page = transform_page(raw)
        self._log.info("page_scraped", page_id=page.id, name=page.name)
        return page
