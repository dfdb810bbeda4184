"""Redis repository implementation."""

from datetime import datetime

import redis.asyncio as redis

from civicscrape.exceptions import NotFoundError, StorageError
from civicscrape.models.paging import Ordering
from civicscrape.repository.base import Refresh, Repository, T, select


class RedisRepository(Repository[T]):
    """
    Redis-based repository storing one hash of JSON documents per entity type.

    Redis has no secondary indexes here, so queries load the collection and
    filter and sort it client-side.

    Example:
        repo = RedisRepository(ScrapedPost, "redis://localhost:6379/0")
        async with repo:
            await repo.save(post)
            post = await repo.get(post.id)
    """

    def __init__(
        self,
        model: type[T],
        redis_url: str = "redis://localhost:6379/0",
        name: str | None = None,
        batch_size: int = 500,
    ):
        """
        Initialize Redis repository.

        Args:
            model: Entity model class
            redis_url: Redis connection URL
            name: Collection name, defaults to the lowercased model name
            batch_size: Number of entities yielded per streamed batch
        """
        super().__init__(model, name, batch_size)
        self.redis_url = redis_url
        self._client: redis.Redis | None = None
        self._key = f"civicscrape:{self.name}"

    async def _ensure_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    async def get(self, entity_id: str) -> T:
        client = await self._ensure_client()
        data = await client.hget(self._key, entity_id)
        if data is None:
            raise NotFoundError(f"{self.model.__name__} {entity_id!r} not found")
        return self.model.model_validate_json(data)

    async def save(self, entity: T, refresh: Refresh = Refresh.FALSE) -> T:
        # Redis writes are visible immediately, refresh has nothing to defer.
        client = await self._ensure_client()
        try:
            await client.hset(self._key, entity.id, entity.model_dump_json())
        except redis.RedisError as e:
            raise StorageError(f"Redis write failed: {e}") from e
        return entity

    async def delete(self, entity_id: str) -> None:
        client = await self._ensure_client()
        await client.hdel(self._key, entity_id)

    async def count(self) -> int:
        client = await self._ensure_client()
        return await client.hlen(self._key)

    async def _search(
        self,
        ordering: Ordering,
        time_field: str | None,
        since: datetime | None,
        until: datetime | None,
        offset: int,
        limit: int | None,
    ) -> tuple[int, list[T]]:
        client = await self._ensure_client()
        documents = await client.hvals(self._key)
        entities = (self.model.model_validate_json(doc) for doc in documents)
        matched = select(entities, ordering, time_field, since, until)
        end = None if limit is None else offset + limit
        return len(matched), matched[offset:end]

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        """Check if Redis is available."""
        try:
            client = await self._ensure_client()
            return await client.ping()
        except redis.RedisError:
            return False
