"""Shared fixtures and factories - no internet."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from civicscrape.config import ScrapeConfig, StorageBackend
from civicscrape.core.fetcher import GraphClient
from civicscrape.models import PageMetadata, PostScrapeHistory, ScrapedPost
from civicscrape.models.post import PageReference


JAN_1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
FEB_1 = datetime(2024, 2, 1, tzinfo=timezone.utc)


def make_page(page_id: str = "p1", name: str | None = None) -> PageMetadata:
    return PageMetadata(id=page_id, name=name or f"Page {page_id}", fan_count=100, created=JAN_1)


def make_post(
    post_id: str = "p1_1",
    created_time: datetime = JAN_1,
    page_id: str = "p1",
    **fields,
) -> ScrapedPost:
    fields.setdefault("scraped", created_time + timedelta(days=1))
    return ScrapedPost(
        id=post_id,
        page=PageReference(id=page_id, name=f"Page {page_id}"),
        created_time=created_time,
        **fields,
    )


def make_history(history_id: str = "h1", import_start: datetime = JAN_1) -> PostScrapeHistory:
    return PostScrapeHistory(
        id=history_id,
        since=JAN_1,
        until=FEB_1,
        import_start=import_start,
        import_end=import_start + timedelta(minutes=5),
        number_of_posts=1,
        number_of_comments=2,
        pages=[make_page()],
    )


def memory_config(**overrides) -> ScrapeConfig:
    """Config that never touches disk, Redis or the network retry loop."""
    settings = {
        "storage_backend": StorageBackend.MEMORY,
        "retry_enabled": False,
        "access_token": "test-token",
        **overrides,
    }
    return ScrapeConfig(**settings)


def graph_client(handler, config: ScrapeConfig | None = None) -> GraphClient:
    """GraphClient whose HTTP traffic is served by ``handler``."""
    config = config or memory_config()
    transport = httpx.MockTransport(handler)
    return GraphClient(config, http_client=httpx.AsyncClient(transport=transport))


class FakeGraph:
    """
    Minimal Graph API: serves pages, page feeds and post comments from dicts.

    Objects in ``failing_ids`` answer their edges with a server error.
    """

    def __init__(self, pages=None, posts=None, comments=None, failing_ids=()):
        self.pages = pages or {}
        self.posts = posts or {}
        self.comments = comments or {}
        self.failing_ids = set(failing_ids)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")[1:]  # drop API version

        if len(parts) == 1:
            page = self.pages.get(parts[0])
            if page is None:
                return httpx.Response(
                    400, json={"error": {"message": f"Unknown page {parts[0]}", "code": 100}}
                )
            return httpx.Response(200, json=page)

        object_id, edge = parts
        if object_id in self.failing_ids:
            return httpx.Response(500, json={"error": {"message": "boom", "code": 1}})
        if edge == "posts":
            return httpx.Response(200, json={"data": self.posts.get(object_id, [])})
        if edge == "comments":
            return httpx.Response(200, json={"data": self.comments.get(object_id, [])})
        return httpx.Response(404, json={"error": {"message": "no such edge", "code": 803}})


def graph_post(post_id: str, created: str, **extra) -> dict:
    return {"id": post_id, "created_time": created, "message": f"post {post_id}", **extra}


def graph_comments(post_id: str, count: int) -> list[dict]:
    return [
        {
            "id": f"{post_id}_c{i}",
            "created_time": "2024-01-10T12:00:00+0000",
            "message": f"comment {i}",
            "from": {"name": "Reader"},
        }
        for i in range(count)
    ]


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph(
        pages={"p1": {"id": "p1", "name": "Page One", "fan_count": 1200}},
        posts={
            "p1": [
                graph_post("p1_1", "2024-01-05T10:00:00+0000"),
                graph_post("p1_2", "2024-01-20T08:30:00+0000"),
            ]
        },
        comments={"p1_1": graph_comments("p1_1", 3), "p1_2": graph_comments("p1_2", 5)},
    )
