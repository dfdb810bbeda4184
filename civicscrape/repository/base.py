"""Abstract repository interface shared by pages, posts, comments and scrape history."""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from types import UnionType
from typing import Annotated, AsyncIterator, Generic, Iterable, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel

from civicscrape.exceptions import InvalidArgumentError
from civicscrape.models.fields import to_utc
from civicscrape.models.paging import Ordering, OrderingType, PagedResponse, TimeSearchResponse, validate_window

T = TypeVar("T", bound=BaseModel)

# Field types that order the same in SQL and in process
SORTABLE_TYPES = (str, int, float, datetime)

DEFAULT_BATCH_SIZE = 500


class Refresh(str, Enum):
    """Write visibility policy for save operations."""
    TRUE = "true"
    FALSE = "false"
    WAIT_FOR = "wait_for"


class Repository(ABC, Generic[T]):
    """
    Abstract base class for entity stores.

    Entities are pydantic models with an ``id`` field. Ordering and time
    filtering refer to fields by their stored (top-level) name.
    """

    def __init__(self, model: type[T], name: str | None = None, batch_size: int = DEFAULT_BATCH_SIZE):
        """
        Initialize repository.

        Args:
            model: Entity model class
            name: Collection name, defaults to the lowercased model name
            batch_size: Number of entities fetched per round trip when streaming
        """
        self.model = model
        self.name = name or model.__name__.lower()
        self.batch_size = batch_size

    @abstractmethod
    async def get(self, entity_id: str) -> T:
        """
        Retrieve an entity by id.

        Raises:
            NotFoundError: If no entity has this id
        """
        ...

    @abstractmethod
    async def save(self, entity: T, refresh: Refresh = Refresh.FALSE) -> T:
        """
        Insert or overwrite an entity keyed by its id.

        Args:
            entity: Entity to store
            refresh: Whether the write must be visible to queries immediately

        Returns:
            The stored entity
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: str) -> None:
        """Remove an entity, ignoring unknown ids."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of stored entities."""
        ...

    @abstractmethod
    async def _search(
        self,
        ordering: Ordering,
        time_field: str | None,
        since: datetime | None,
        until: datetime | None,
        offset: int,
        limit: int | None,
    ) -> tuple[int, list[T]]:
        """Return (total matches, requested slice) for validated arguments."""
        ...

    async def query(
        self,
        paging: PagedResponse,
        ordering: Ordering,
        time_field: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> TimeSearchResponse[T]:
        """
        Paged, ordered listing restricted to ``since <= time_field < until``.

        Either bound may be omitted. Page numbers are 1-based.

        Raises:
            InvalidArgumentError: Bad page number/size, unknown field or inverted window
        """
        if paging.page_size <= 0:
            raise InvalidArgumentError(f"page_size must be positive, got {paging.page_size}")
        if paging.page_number < 1:
            raise InvalidArgumentError(f"page_number must be 1 or greater, got {paging.page_number}")
        since, until = self._check_window(ordering, time_field, since, until)

        total, items = await self._search(
            ordering, time_field, since, until, paging.offset, paging.page_size
        )
        return TimeSearchResponse[self.model](
            page_number=paging.page_number,
            page_size=paging.page_size,
            total=total,
            data=items,
            time_field=time_field,
            since=since,
            until=until,
        )

    async def iter_window(
        self,
        ordering: Ordering,
        time_field: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> AsyncIterator[T]:
        """Stream every entity in the window, in order, without paging limits."""
        since, until = self._check_window(ordering, time_field, since, until)
        offset = 0
        while True:
            _, batch = await self._search(ordering, time_field, since, until, offset, self.batch_size)
            for entity in batch:
                yield entity
            if len(batch) < self.batch_size:
                break
            offset += len(batch)

    def all_data(self) -> AsyncIterator[T]:
        """Stream every stored entity by ascending id. Each call starts over."""
        return self.iter_window(Ordering(field="id", order=OrderingType.ASCENDING))

    async def flush(self) -> None:
        """Make deferred writes visible."""

    async def close(self) -> None:
        """Cleanup connections and resources."""

    async def __aenter__(self) -> "Repository[T]":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - cleanup."""
        await self.close()

    def _check_field(self, field: str) -> None:
        info = self.model.model_fields.get(field)
        if info is None:
            raise InvalidArgumentError(f"{self.model.__name__} has no field {field!r}")
        if not _is_sortable(info.annotation):
            raise InvalidArgumentError(f"{self.model.__name__}.{field} is not a sortable field")

    def _check_window(
        self,
        ordering: Ordering,
        time_field: str | None,
        since: datetime | None,
        until: datetime | None,
    ) -> tuple[datetime | None, datetime | None]:
        self._check_field(ordering.field)
        if time_field is not None:
            self._check_field(time_field)
        since = to_utc(since) if since is not None else None
        until = to_utc(until) if until is not None else None
        validate_window(since, until)
        return since, until


def select(
    entities: Iterable[T],
    ordering: Ordering,
    time_field: str | None,
    since: datetime | None,
    until: datetime | None,
) -> list[T]:
    """
    Filter and sort entities in process.

    Matches the SQL backends: unset values never match a time bound and sort
    first ascending, last descending; ties are broken by ascending id.
    """
    matched = []
    for entity in entities:
        if time_field is not None and (since is not None or until is not None):
            value = getattr(entity, time_field)
            if value is None:
                continue
            if since is not None and value < since:
                continue
            if until is not None and value >= until:
                continue
        matched.append(entity)

    matched.sort(key=lambda e: e.id)
    matched.sort(
        key=lambda e: (getattr(e, ordering.field) is not None, getattr(e, ordering.field)),
        reverse=ordering.descending,
    )
    return matched


def _is_sortable(annotation) -> bool:
    """True for scalar annotations, optionally wrapped in Optional or Annotated."""
    if get_origin(annotation) is Annotated:
        return _is_sortable(get_args(annotation)[0])
    if get_origin(annotation) in (Union, UnionType):
        return all(arg is type(None) or _is_sortable(arg) for arg in get_args(annotation))
    return isinstance(annotation, type) and issubclass(annotation, SORTABLE_TYPES)
