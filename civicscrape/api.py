"""FastAPI web server for civicscrape."""

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from civicscrape import ScrapeConfig, ScrapeContext, __version__
from civicscrape.core.importer import ImportFailure
from civicscrape.exceptions import (
    CivicScrapeError,
    ImportFailedError,
    InvalidArgumentError,
    NotFoundError,
    ScrapeError,
)
from civicscrape.models import (
    Ordering,
    OrderingType,
    PagedResponse,
    PostScrapeHistory,
    ScrapedPost,
    TimeSearchResponse,
)


# Request/Response models
class PostScrapeRequest(BaseModel):
    """Request body for a scrape run."""

    pages: list[str] | None = Field(
        default=None,
        description="Page ids to scrape. Omit to scrape every known page.",
    )
    since: datetime = Field(..., description="Inclusive start of the publication window")
    until: datetime = Field(..., description="Exclusive end of the publication window")


class ImportResponse(BaseModel):
    """Posts imported by a bulk import plus any per-file failures."""

    imported: int
    posts: list[ScrapedPost]
    failures: list[ImportFailure] = []


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


def get_context(request: Request) -> ScrapeContext:
    return request.app.state.context


def _paging(
    page_number: int = Query(1, alias="pageNumber", description="1-based page number"),
    page_size: int = Query(50, alias="pageSize", description="Items per page"),
) -> PagedResponse:
    return PagedResponse(page_number=page_number, page_size=page_size)


router = APIRouter(prefix="/post", tags=["Posts"])


@router.get("/all", response_model=TimeSearchResponse[ScrapedPost])
async def all_posts(
    paging: PagedResponse = Depends(_paging),
    order: OrderingType | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    ctx: ScrapeContext = Depends(get_context),
):
    """List posts by publication time."""
    return await ctx.post_scraper.query(
        paging, Ordering(field="created_time", order=order), since, until
    )


@router.get("/export")
async def export_posts(
    order: OrderingType | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    ctx: ScrapeContext = Depends(get_context),
):
    """Download every post in the window as CSV."""
    payload = await ctx.post_scraper.export(
        Ordering(field="created_time", order=order), since, until
    )
    return Response(
        content=payload,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="export.csv"'},
    )


@router.post("/scrape", response_model=PostScrapeHistory)
async def scrape_posts(request: PostScrapeRequest, ctx: ScrapeContext = Depends(get_context)):
    """Run a scrape and return its history record."""
    return await ctx.orchestrator.run_scrape(request.pages, request.since, request.until)


@router.get("/import/historical", response_model=ImportResponse)
async def import_historical_posts(ctx: ScrapeContext = Depends(get_context)):
    """Backfill posts from the legacy exports in the configured directory."""
    importer = ctx.historical_importer()
    posts = [post async for post in importer.import_posts(ctx.legacy_exports())]
    return ImportResponse(imported=len(posts), posts=posts, failures=importer.failures)


@router.get("/import/elasticsearch", response_model=ImportResponse)
async def import_exported_posts(
    path: str = Query(..., description="Path of a CSV produced by /post/export"),
    ctx: ScrapeContext = Depends(get_context),
):
    """Import posts from a CSV export."""
    posts = [post async for post in ctx.post_scraper.import_csv(path, ctx.config.import_chunk_size)]
    return ImportResponse(imported=len(posts), posts=posts)


@router.get("/history/all", response_model=TimeSearchResponse[PostScrapeHistory])
async def all_scrapes(
    paging: PagedResponse = Depends(_paging),
    order: OrderingType | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    ctx: ScrapeContext = Depends(get_context),
):
    """List scrape runs by import start."""
    return await ctx.history_repository.query(
        paging, Ordering(field="import_start", order=order), "import_start", since, until
    )


@router.get("/history/{history_id}", response_model=PostScrapeHistory)
async def get_scrape(history_id: str, ctx: ScrapeContext = Depends(get_context)):
    """Fetch a single scrape run."""
    return await ctx.history_repository.get(history_id)


@router.get("/{post_id}", response_model=ScrapedPost)
async def get_post(post_id: str, ctx: ScrapeContext = Depends(get_context)):
    """Fetch a single post."""
    return await ctx.post_scraper.get(post_id)


ERROR_STATUS = {
    NotFoundError: 404,
    InvalidArgumentError: 400,
    ImportFailedError: 422,
    ScrapeError: 502,
}


async def _handle_error(request: Request, exc: CivicScrapeError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def create_app(config: ScrapeConfig | None = None, context: ScrapeContext | None = None) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Configuration for the context built at startup
        context: Prebuilt (not yet entered) context, used instead of config
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage context lifecycle."""
        ctx = context or ScrapeContext(config or ScrapeConfig())
        async with ctx:
            app.state.context = ctx
            yield

    app = FastAPI(
        title="civicscrape API",
        description="Facebook page post scraper API",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_exception_handler(CivicScrapeError, _handle_error)
    app.include_router(router)

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Check API health status."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            timestamp=datetime.now().isoformat(),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
