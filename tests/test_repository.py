"""Unit tests for repository backends - in-memory and SQLite, no network."""

from datetime import timedelta

import pytest

from civicscrape.exceptions import InvalidArgumentError, NotFoundError
from civicscrape.models import Ordering, OrderingType, PagedResponse, PostScrapeHistory, ScrapedPost
from civicscrape.repository import MemoryRepository, Refresh, SQLiteDatabase, SQLiteRepository

from conftest import FEB_1, JAN_1, make_history, make_post


@pytest.fixture(params=["memory", "sqlite"])
def posts(request, tmp_path):
    """Post repository for each backend."""
    if request.param == "memory":
        return MemoryRepository(ScrapedPost, name="posts", batch_size=2)
    return SQLiteRepository(ScrapedPost, str(tmp_path / "test.db"), name="posts", batch_size=2)


async def seed(repo, count: int = 5) -> list[ScrapedPost]:
    """Save ``count`` posts created one day apart starting Jan 1st."""
    saved = []
    for i in range(count):
        post = make_post(f"post_{i}", JAN_1 + timedelta(days=i), reactions_count=i)
        saved.append(await repo.save(post, refresh=Refresh.TRUE))
    return saved


BY_CREATED = Ordering(field="created_time")


class TestGetSave:
    """Test point lookups and upserts."""

    @pytest.mark.asyncio
    async def test_get_unknown_raises_not_found(self, posts):
        async with posts:
            with pytest.raises(NotFoundError):
                await posts.get("missing")

    @pytest.mark.asyncio
    async def test_save_then_get(self, posts):
        async with posts:
            post = make_post("a", message="hello")
            await posts.save(post)
            stored = await posts.get("a")
            assert stored == post

    @pytest.mark.asyncio
    async def test_save_twice_keeps_one_record(self, posts):
        """Re-saving an id overwrites instead of duplicating."""
        async with posts:
            await posts.save(make_post("a", message="first"))
            await posts.save(make_post("a", message="second"), refresh=Refresh.TRUE)

            assert await posts.count() == 1
            assert (await posts.get("a")).message == "second"

    @pytest.mark.asyncio
    async def test_delete(self, posts):
        async with posts:
            await posts.save(make_post("a"), refresh=Refresh.TRUE)
            await posts.delete("a")
            with pytest.raises(NotFoundError):
                await posts.get("a")


class TestQuery:
    """Test paged, ordered, time-filtered queries."""

    @pytest.mark.asyncio
    async def test_page_size_bounds_results(self, posts):
        async with posts:
            await seed(posts, 5)
            response = await posts.query(PagedResponse(page_number=1, page_size=2), BY_CREATED, "created_time")

            assert len(response.data) == 2
            assert response.total == 5
            assert response.page_number == 1

    @pytest.mark.asyncio
    async def test_last_page_is_partial(self, posts):
        async with posts:
            await seed(posts, 5)
            response = await posts.query(PagedResponse(page_number=3, page_size=2), BY_CREATED, "created_time")

            assert len(response.data) == 1
            assert response.total == 5

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(self, posts):
        async with posts:
            await seed(posts, 2)
            response = await posts.query(PagedResponse(page_number=4, page_size=2), BY_CREATED, "created_time")

            assert response.data == []
            assert response.total == 2

    @pytest.mark.asyncio
    async def test_default_order_is_descending(self, posts):
        async with posts:
            await seed(posts, 5)
            response = await posts.query(PagedResponse(page_size=10), BY_CREATED, "created_time")

            times = [p.created_time for p in response.data]
            assert times == sorted(times, reverse=True)

    @pytest.mark.asyncio
    async def test_ascending_order(self, posts):
        async with posts:
            await seed(posts, 5)
            ordering = Ordering(field="created_time", order=OrderingType.ASCENDING)
            response = await posts.query(PagedResponse(page_size=10), ordering, "created_time")

            assert [p.id for p in response.data] == [f"post_{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_numeric_ordering(self, posts):
        async with posts:
            await seed(posts, 3)
            ordering = Ordering(field="reactions_count", order=OrderingType.DESCENDING)
            response = await posts.query(PagedResponse(page_size=10), ordering, "created_time")

            assert [p.reactions_count for p in response.data] == [2, 1, 0]

    @pytest.mark.asyncio
    async def test_window_is_half_open(self, posts):
        """since is inclusive, until is exclusive."""
        async with posts:
            await seed(posts, 5)
            response = await posts.query(
                PagedResponse(page_size=10),
                BY_CREATED,
                "created_time",
                since=JAN_1 + timedelta(days=1),
                until=JAN_1 + timedelta(days=3),
            )

            assert sorted(p.id for p in response.data) == ["post_1", "post_2"]
            assert response.total == 2

    @pytest.mark.asyncio
    async def test_open_ended_window(self, posts):
        async with posts:
            await seed(posts, 5)
            response = await posts.query(
                PagedResponse(page_size=10), BY_CREATED, "created_time", since=JAN_1 + timedelta(days=3)
            )
            assert response.total == 2

    @pytest.mark.asyncio
    async def test_naive_bounds_are_utc(self, posts):
        async with posts:
            await seed(posts, 5)
            response = await posts.query(
                PagedResponse(page_size=10),
                BY_CREATED,
                "created_time",
                until=(JAN_1 + timedelta(days=2)).replace(tzinfo=None),
            )
            assert response.total == 2

    @pytest.mark.asyncio
    async def test_ties_break_by_id(self, posts):
        async with posts:
            for post_id in ["c", "a", "b"]:
                await posts.save(make_post(post_id, JAN_1), refresh=Refresh.TRUE)
            response = await posts.query(PagedResponse(page_size=10), BY_CREATED, "created_time")
            assert [p.id for p in response.data] == ["a", "b", "c"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_number,page_size", [(1, 0), (1, -5), (0, 10)])
    async def test_invalid_paging(self, posts, page_number, page_size):
        async with posts:
            with pytest.raises(InvalidArgumentError):
                await posts.query(
                    PagedResponse(page_number=page_number, page_size=page_size), BY_CREATED, "created_time"
                )

    @pytest.mark.asyncio
    async def test_inverted_window_rejected(self, posts):
        async with posts:
            with pytest.raises(InvalidArgumentError):
                await posts.query(PagedResponse(), BY_CREATED, "created_time", since=FEB_1, until=JAN_1)

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, posts):
        async with posts:
            with pytest.raises(InvalidArgumentError):
                await posts.query(PagedResponse(), Ordering(field="created"), "created_time")

    @pytest.mark.asyncio
    async def test_nested_ordering_field_rejected(self, posts):
        async with posts:
            await seed(posts, 2)
            with pytest.raises(InvalidArgumentError):
                await posts.query(PagedResponse(), Ordering(field="page"), "created_time")

    @pytest.mark.asyncio
    async def test_nested_time_field_rejected(self, posts):
        async with posts:
            with pytest.raises(InvalidArgumentError):
                await posts.query(PagedResponse(), BY_CREATED, "page")

    @pytest.mark.asyncio
    async def test_optional_scalar_field_sortable(self, posts):
        async with posts:
            await posts.save(make_post("a", message="b"), refresh=Refresh.TRUE)
            await posts.save(make_post("b", message="a"), refresh=Refresh.TRUE)
            ordering = Ordering(field="message", order=OrderingType.ASCENDING)
            response = await posts.query(PagedResponse(), ordering, "created_time")
            assert [p.id for p in response.data] == ["b", "a"]


class TestAllData:
    """Test unpaged streaming."""

    @pytest.mark.asyncio
    async def test_all_data_spans_batches(self, posts):
        """batch_size is 2, so five posts take three round trips."""
        async with posts:
            await seed(posts, 5)
            ids = [p.id async for p in posts.all_data()]
            assert ids == [f"post_{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_all_data_is_restartable(self, posts):
        async with posts:
            await seed(posts, 3)
            first = [p.id async for p in posts.all_data()]
            second = [p.id async for p in posts.all_data()]
            assert first == second

    @pytest.mark.asyncio
    async def test_all_data_empty(self, posts):
        async with posts:
            assert [p async for p in posts.all_data()] == []


class TestSQLiteRefresh:
    """Test deferred commits in the SQLite backend."""

    @pytest.mark.asyncio
    async def test_deferred_writes_pending_until_flush(self, tmp_path):
        database = SQLiteDatabase(tmp_path / "test.db", commit_interval=100)
        repo = SQLiteRepository(ScrapedPost, database, name="posts")

        await repo.save(make_post("a"), refresh=Refresh.FALSE)
        assert database.pending_writes == 1

        await repo.flush()
        assert database.pending_writes == 0
        await database.close()

    @pytest.mark.asyncio
    async def test_refresh_commits_immediately(self, tmp_path):
        database = SQLiteDatabase(tmp_path / "test.db", commit_interval=100)
        repo = SQLiteRepository(ScrapedPost, database, name="posts")

        await repo.save(make_post("a"), refresh=Refresh.TRUE)
        assert database.pending_writes == 0
        await database.close()

    @pytest.mark.asyncio
    async def test_commit_interval_forces_commit(self, tmp_path):
        database = SQLiteDatabase(tmp_path / "test.db", commit_interval=2)
        repo = SQLiteRepository(ScrapedPost, database, name="posts")

        await repo.save(make_post("a"))
        await repo.save(make_post("b"))
        assert database.pending_writes == 0
        await database.close()

    @pytest.mark.asyncio
    async def test_writes_survive_reopen(self, tmp_path):
        """Closing commits deferred writes."""
        path = str(tmp_path / "test.db")
        async with SQLiteRepository(ScrapedPost, path, name="posts") as repo:
            await repo.save(make_post("a"))

        async with SQLiteRepository(ScrapedPost, path, name="posts") as repo:
            assert (await repo.get("a")).id == "a"

    @pytest.mark.asyncio
    async def test_tables_share_database(self, tmp_path):
        database = SQLiteDatabase(tmp_path / "test.db")
        posts = SQLiteRepository(ScrapedPost, database, name="posts")
        history = SQLiteRepository(PostScrapeHistory, database, name="history")

        await posts.save(make_post("a"))
        await history.save(make_history("h1"), refresh=Refresh.TRUE)

        assert await posts.count() == 1
        assert await history.count() == 1
        await database.close()
