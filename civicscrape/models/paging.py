"""Paging, ordering and time-window envelopes shared by all repositories."""

from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel

from civicscrape.exceptions import InvalidArgumentError
from civicscrape.models.fields import Timestamp, to_utc

T = TypeVar("T")


class OrderingType(str, Enum):
    """Sort direction."""
    ASCENDING = "ascending"
    DESCENDING = "descending"


class Ordering(BaseModel):
    """
    Sort request keyed by the stored field name.

    An unset direction sorts descending, newest first for timestamp fields.
    """

    field: str
    order: OrderingType | None = None

    @property
    def descending(self) -> bool:
        return self.order != OrderingType.ASCENDING


class PagedResponse(BaseModel):
    """Requested page (1-based) plus the total number of matches."""

    page_number: int = 1
    page_size: int = 50
    total: int = 0

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size


class TimeSearchResponse(PagedResponse, Generic[T]):
    """Paged response whose results were bounded by a time field."""

    data: list[T] = []
    time_field: str | None = None
    since: Timestamp | None = None
    until: Timestamp | None = None


def validate_window(since: datetime | None, until: datetime | None) -> None:
    """Reject windows whose upper bound precedes the lower bound."""
    if since is not None and until is not None and to_utc(until) < to_utc(since):
        raise InvalidArgumentError(f"until ({until.isoformat()}) precedes since ({since.isoformat()})")
