"""SQLite-backed repository using aiosqlite."""

from datetime import datetime
from pathlib import Path

import aiosqlite

from civicscrape.exceptions import NotFoundError, StorageError
from civicscrape.logging import get_logger
from civicscrape.models.fields import format_timestamp
from civicscrape.models.paging import Ordering
from civicscrape.repository.base import Refresh, Repository, T


class SQLiteDatabase:
    """
    Shared aiosqlite connection with deferred commits.

    Writes saved with ``Refresh.FALSE`` are committed in batches of
    ``commit_interval``; any refreshing write commits everything pending.
    """

    def __init__(self, db_path: str | Path = ".civicscrape.db", commit_interval: int = 500):
        """
        Initialize database handle.

        Args:
            db_path: Path to SQLite database file
            commit_interval: Deferred writes allowed before a forced commit
        """
        self.db_path = Path(db_path)
        self.commit_interval = max(1, commit_interval)
        self.pending_writes = 0
        self._db: aiosqlite.Connection | None = None
        self._log = get_logger("sqlite")

    async def connection(self) -> aiosqlite.Connection:
        """Open the connection on first use."""
        if self._db is None:
            self._db = await aiosqlite.connect(self.db_path)
        return self._db

    async def write(self, sql: str, params: tuple, refresh: Refresh) -> None:
        """Execute a write statement and commit according to the refresh policy."""
        db = await self.connection()
        try:
            await db.execute(sql, params)
            self.pending_writes += 1
            if refresh != Refresh.FALSE or self.pending_writes >= self.commit_interval:
                await self.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"SQLite write failed: {e}") from e

    async def commit(self) -> None:
        if self._db is not None and self.pending_writes:
            await self._db.commit()
            self._log.debug("sqlite_commit", writes=self.pending_writes)
            self.pending_writes = 0

    async def close(self) -> None:
        """Commit pending writes and close the connection."""
        if self._db is not None:
            await self.commit()
            await self._db.close()
            self._db = None


class SQLiteRepository(Repository[T]):
    """
    One table per entity type holding the JSON document of each entity.

    Filtering and sorting use ``json_extract`` on the stored document, so
    field names are the model's field names.
    """

    def __init__(
        self,
        model: type[T],
        database: SQLiteDatabase | str | Path,
        name: str | None = None,
        batch_size: int = 500,
    ):
        """
        Initialize SQLite repository.

        Args:
            model: Entity model class
            database: Shared SQLiteDatabase, or a path to open a private one
            name: Table name, defaults to the lowercased model name
            batch_size: Number of rows fetched per round trip when streaming
        """
        super().__init__(model, name, batch_size)
        self._owns_database = not isinstance(database, SQLiteDatabase)
        self.database = SQLiteDatabase(database) if self._owns_database else database
        self._schema_ready = False

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure connection and table exist."""
        db = await self.database.connection()
        if not self._schema_ready:
            await db.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.name} (
                    id TEXT PRIMARY KEY,
                    document TEXT NOT NULL
                )
            """)
            await db.commit()
            self._schema_ready = True
        return db

    async def get(self, entity_id: str) -> T:
        db = await self._ensure_db()
        async with db.execute(
            f"SELECT document FROM {self.name} WHERE id = ?", (entity_id,)
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            raise NotFoundError(f"{self.model.__name__} {entity_id!r} not found")
        return self.model.model_validate_json(row[0])

    async def save(self, entity: T, refresh: Refresh = Refresh.FALSE) -> T:
        await self._ensure_db()
        await self.database.write(
            f"INSERT OR REPLACE INTO {self.name} (id, document) VALUES (?, ?)",
            (entity.id, entity.model_dump_json()),
            refresh,
        )
        return entity

    async def delete(self, entity_id: str) -> None:
        await self._ensure_db()
        await self.database.write(
            f"DELETE FROM {self.name} WHERE id = ?", (entity_id,), Refresh.TRUE
        )

    async def count(self) -> int:
        db = await self._ensure_db()
        async with db.execute(f"SELECT COUNT(*) FROM {self.name}") as cursor:
            (total,) = await cursor.fetchone()
        return total

    async def _search(
        self,
        ordering: Ordering,
        time_field: str | None,
        since: datetime | None,
        until: datetime | None,
        offset: int,
        limit: int | None,
    ) -> tuple[int, list[T]]:
        db = await self._ensure_db()

        clauses = []
        params: list = []
        if time_field is not None:
            if since is not None:
                clauses.append(f"json_extract(document, '$.{time_field}') >= ?")
                params.append(format_timestamp(since))
            if until is not None:
                clauses.append(f"json_extract(document, '$.{time_field}') < ?")
                params.append(format_timestamp(until))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if ordering.descending else "ASC"
        sort_key = "id" if ordering.field == "id" else f"json_extract(document, '$.{ordering.field}')"

        async with db.execute(f"SELECT COUNT(*) FROM {self.name} {where}", params) as cursor:
            (total,) = await cursor.fetchone()

        async with db.execute(
            f"SELECT document FROM {self.name} {where} "
            f"ORDER BY {sort_key} {direction}, id ASC LIMIT ? OFFSET ?",
            (*params, -1 if limit is None else limit, offset),
        ) as cursor:
            rows = await cursor.fetchall()

        return total, [self.model.model_validate_json(row[0]) for row in rows]

    async def flush(self) -> None:
        await self.database.commit()

    async def close(self) -> None:
        if self._owns_database:
            await self.database.close()
        else:
            await self.database.commit()
