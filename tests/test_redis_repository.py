"""Integration tests for the Redis repository (requires a running Redis server)."""

import os
import uuid
from datetime import timedelta

import pytest

from civicscrape.exceptions import NotFoundError
from civicscrape.models import Ordering, OrderingType, PagedResponse, ScrapedPost
from civicscrape.repository import Refresh, RedisRepository

from conftest import FEB_1, JAN_1, make_post

# Mark all tests in this module as integration tests (need Redis)
pytestmark = pytest.mark.integration

REDIS_URL = os.environ.get("CIVICSCRAPE_REDIS_URL", "redis://localhost:6379/15")


async def redis_posts() -> RedisRepository:
    """Empty post repository in a throwaway hash; skips without Redis."""
    repo = RedisRepository(ScrapedPost, REDIS_URL, name=f"test_{uuid.uuid4().hex}", batch_size=2)
    if not await repo.ping():
        await repo.close()
        pytest.skip(f"Redis not available at {REDIS_URL}")
    return repo


async def drop(repo: RedisRepository) -> None:
    client = await repo._ensure_client()
    await client.delete(repo._key)
    await repo.close()


class TestRedisRepository:
    """Test the Redis backend against a live server."""

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        repo = await redis_posts()
        try:
            post = make_post("a", reactions_count=3)
            await repo.save(post, refresh=Refresh.TRUE)

            assert await repo.get("a") == post
            assert await repo.count() == 1
        finally:
            await drop(repo)

    @pytest.mark.asyncio
    async def test_get_unknown(self):
        repo = await redis_posts()
        try:
            with pytest.raises(NotFoundError):
                await repo.get("missing")
        finally:
            await drop(repo)

    @pytest.mark.asyncio
    async def test_query_window_and_order(self):
        repo = await redis_posts()
        try:
            for day in range(4):
                await repo.save(make_post(f"p{day}", JAN_1 + timedelta(days=day)))
            await repo.save(make_post("late", FEB_1))

            response = await repo.query(
                PagedResponse(page_number=1, page_size=2),
                Ordering(field="created_time", order=OrderingType.ASCENDING),
                "created_time",
                JAN_1 + timedelta(days=1),
                FEB_1,
            )

            assert response.total == 3
            assert [p.id for p in response.data] == ["p1", "p2"]
        finally:
            await drop(repo)

    @pytest.mark.asyncio
    async def test_all_data_streams_everything(self):
        repo = await redis_posts()
        try:
            for i in range(5):
                await repo.save(make_post(f"p{i}"))

            ids = [post.id async for post in repo.all_data()]

            assert ids == [f"p{i}" for i in range(5)]
        finally:
            await drop(repo)
