"""In-process repository, used for tests and throwaway runs."""

from datetime import datetime

from civicscrape.exceptions import NotFoundError
from civicscrape.models.paging import Ordering
from civicscrape.repository.base import Refresh, Repository, T, select


class MemoryRepository(Repository[T]):
    """Dict-backed repository; every write is immediately visible."""

    def __init__(self, model: type[T], name: str | None = None, batch_size: int = 500):
        super().__init__(model, name, batch_size)
        self._entities: dict[str, T] = {}

    async def get(self, entity_id: str) -> T:
        try:
            return self._entities[entity_id].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(f"{self.model.__name__} {entity_id!r} not found") from None

    async def save(self, entity: T, refresh: Refresh = Refresh.FALSE) -> T:
        self._entities[entity.id] = entity.model_copy(deep=True)
        return entity

    async def delete(self, entity_id: str) -> None:
        self._entities.pop(entity_id, None)

    async def count(self) -> int:
        return len(self._entities)

    async def _search(
        self,
        ordering: Ordering,
        time_field: str | None,
        since: datetime | None,
        until: datetime | None,
        offset: int,
        limit: int | None,
    ) -> tuple[int, list[T]]:
        matched = select(self._entities.values(), ordering, time_field, since, until)
        end = None if limit is None else offset + limit
        return len(matched), [e.model_copy(deep=True) for e in matched[offset:end]]
