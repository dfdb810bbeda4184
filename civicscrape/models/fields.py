"""Shared timestamp type for stored models."""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, PlainSerializer

# Fixed-width UTC form so stored timestamps compare correctly as strings.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return to_utc(value).strftime(TIMESTAMP_FORMAT)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Timestamp = Annotated[
    datetime,
    AfterValidator(to_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]
