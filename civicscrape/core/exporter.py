"""CSV export and import of repository entities via pandas."""

import io
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Iterable

import pandas as pd
from pydantic import BaseModel, ValidationError

from civicscrape.exceptions import ImportFailedError
from civicscrape.logging import get_logger
from civicscrape.models.paging import Ordering
from civicscrape.repository.base import Refresh, Repository, T

log = get_logger("exporter")


@dataclass(frozen=True)
class Column:
    """A CSV column bound to a (possibly dotted) model field path."""

    header: str
    path: str
    as_json: bool = False


POST_COLUMNS = [
    Column("id", "id"),
    Column("page_id", "page.id"),
    Column("page_name", "page.name"),
    Column("created_time", "created_time"),
    Column("scraped", "scraped"),
    Column("message", "message"),
    Column("story", "story"),
    Column("type", "type"),
    Column("permalink_url", "permalink_url"),
    Column("link", "link"),
    Column("reactions_count", "reactions_count"),
    Column("comments_count", "comments_count"),
    Column("shares_count", "shares_count"),
]

PAGE_COLUMNS = [
    Column("id", "id"),
    Column("name", "name"),
    Column("category", "category"),
    Column("fan_count", "fan_count"),
    Column("link", "link"),
    Column("about", "about"),
    Column("created", "created"),
    Column("last_scraped", "last_scraped"),
]

HISTORY_COLUMNS = [
    Column("id", "id"),
    Column("since", "since"),
    Column("until", "until"),
    Column("import_start", "import_start"),
    Column("import_end", "import_end"),
    Column("number_of_posts", "number_of_posts"),
    Column("number_of_comments", "number_of_comments"),
    Column("pages", "pages", as_json=True),
    Column("failed_comment_posts", "failed_comment_posts", as_json=True),
]


def to_row(entity: BaseModel, columns: Iterable[Column]) -> dict:
    """
    Flatten an entity into a CSV row.

    Args:
        entity: Model instance to flatten
        columns: Column mapping for the entity type

    Returns:
        Dict keyed by column header
    """
    data = entity.model_dump(mode="json")
    row = {}
    for column in columns:
        value = data
        for part in column.path.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        if column.as_json:
            value = json.dumps(value)
        row[column.header] = value
    return row


def from_row(row: dict, columns: Iterable[Column], model: type[T]) -> T:
    """
    Rebuild an entity from a CSV row. Empty cells are treated as missing.

    Raises:
        pydantic.ValidationError: Row does not describe a valid entity
        ValueError: A JSON column holds invalid JSON
    """
    data: dict = {}
    for column in columns:
        value = row.get(column.header)
        if value is None or value == "":
            continue
        if column.as_json:
            value = json.loads(value)
        target = data
        *parents, leaf = column.path.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return model.model_validate(data)


def to_dataframe(entities: Iterable[BaseModel], columns: list[Column]) -> pd.DataFrame:
    """
    Convert entities to a pandas DataFrame with one row per entity.

    Args:
        entities: Models to convert
        columns: Column mapping, defines header order

    Returns:
        DataFrame whose columns follow the mapping order
    """
    rows = [to_row(entity, columns) for entity in entities]
    # object dtype keeps optional integer columns from turning into floats
    return pd.DataFrame(rows, columns=[c.header for c in columns], dtype=object)


async def export_csv(
    repository: Repository[T],
    ordering: Ordering,
    time_field: str,
    since: datetime | None,
    until: datetime | None,
    columns: list[Column],
) -> bytes:
    """
    Export every entity in ``[since, until)`` as CSV bytes, sorted by ``ordering``.

    Unlike the paged listing, the whole window is exported.

    Returns:
        UTF-8 encoded CSV with a header row
    """
    entities = [entity async for entity in repository.iter_window(ordering, time_field, since, until)]
    df = to_dataframe(entities, columns)
    log.info("export_complete", collection=repository.name, rows=len(df))
    return df.to_csv(index=False).encode("utf-8")


async def import_csv(
    repository: Repository[T],
    source: str | Path | bytes | BinaryIO,
    columns: list[Column],
    model: type[T],
    chunk_size: int = 1000,
) -> AsyncIterator[T]:
    """
    Parse CSV rows into entities and upsert them, yielding each saved entity.

    Rows are read ``chunk_size`` at a time and saved with ``Refresh.FALSE``;
    the repository is flushed once the file is exhausted.

    Args:
        repository: Target repository
        source: File path, raw CSV bytes or a binary file object
        columns: Column mapping for the entity type
        model: Entity model class
        chunk_size: Rows parsed per pandas chunk

    Raises:
        ImportFailedError: File missing, header incomplete or a row is malformed.
            Entities yielded before the failure remain saved.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)

    try:
        reader = pd.read_csv(source, dtype=str, keep_default_na=False, chunksize=chunk_size)
    except FileNotFoundError as e:
        raise ImportFailedError(f"CSV file not found: {source}") from e
    except pd.errors.EmptyDataError as e:
        raise ImportFailedError("CSV file is empty") from e
    except UnicodeDecodeError as e:
        raise ImportFailedError(f"CSV header is not UTF-8: {e}") from e

    imported = 0
    with reader:
        while True:
            try:
                chunk = next(reader)
            except StopIteration:
                break
            except (pd.errors.ParserError, UnicodeDecodeError) as e:
                raise ImportFailedError(f"Unreadable CSV after line {imported + 1}: {e}") from e

            if "id" not in chunk.columns:
                raise ImportFailedError("CSV is missing the id column")

            for row in chunk.to_dict("records"):
                # Header is line 1
                line = imported + 2
                try:
                    entity = from_row(row, columns, model)
                except (ValidationError, ValueError) as e:
                    raise ImportFailedError(f"Malformed row at line {line}: {e}", line=line) from e

                saved = await repository.save(entity, refresh=Refresh.FALSE)
                imported += 1
                yield saved

    await repository.flush()
    log.info("import_complete", collection=repository.name, rows=imported)
