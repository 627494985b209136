from __future__ import annotations

import asyncio
import contextvars
import copy
import json
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Iterable, Iterator, List, Mapping, Optional

import asyncpg

from application.ports.watchlist_store_port import TABLE_COLUMNS, UNIQUE_KEYS, Row, Table, WatchlistStorePort
from domain.watchlist.errors import DuplicateEntryError, StoreUnavailableError

logger = logging.getLogger(__name__)

_JSONB_COLUMNS = frozenset({"movie_data"})


def _plain(value: Any) -> Any:
    # str-based enums (EntryKind, Table) compare and store as their values.
    return getattr(value, "value", value)


def _check_columns(table: Table, names: Iterable[str]) -> None:
    allowed = TABLE_COLUMNS[table]
    unknown = [n for n in names if n not in allowed]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table.value}: {', '.join(unknown)}")


def _matches(row: Mapping[str, Any], match: Optional[Mapping[str, Any]]) -> bool:
    if not match:
        return True
    return all(row.get(k) == _plain(v) for k, v in match.items())


class InMemoryWatchlistStore(WatchlistStorePort):
    """In-memory store for dev/tests when Postgres is not configured.

    Unique keys are enforced like the Postgres indexes. A transaction snapshots
    every table and restores the snapshot if the block raises; it assumes no
    other writer interleaves with the block.
    """

    def __init__(self, *, transactional: bool = True) -> None:
        self._tables: Dict[Table, List[Row]] = {t: [] for t in Table}
        self._transactional = transactional

    @property
    def supports_transactions(self) -> bool:
        return self._transactional

    def _key(self, table: Table, row: Mapping[str, Any]) -> tuple:
        return tuple(row.get(c) for c in UNIQUE_KEYS[table])

    def _assert_unique(self, table: Table, candidate: Mapping[str, Any], *, ignore: Optional[Row] = None) -> None:
        key = self._key(table, candidate)
        for existing in self._tables[table]:
            if existing is ignore:
                continue
            if self._key(table, existing) == key:
                raise DuplicateEntryError(
                    f"Duplicate {table.value} entry for "
                    + ", ".join(f"{c}={v}" for c, v in zip(UNIQUE_KEYS[table], key))
                )

    async def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        _check_columns(table, row.keys())
        stored: Row = {c: copy.deepcopy(_plain(row.get(c))) for c in TABLE_COLUMNS[table]}
        self._assert_unique(table, stored)
        self._tables[table].append(stored)
        return copy.deepcopy(stored)

    async def update(self, table: Table, match: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Row]:
        _check_columns(table, list(match.keys()) + list(patch.keys()))
        updated: List[Row] = []
        for existing in self._tables[table]:
            if not _matches(existing, match):
                continue
            candidate = {**existing, **{k: copy.deepcopy(_plain(v)) for k, v in patch.items()}}
            self._assert_unique(table, candidate, ignore=existing)
            existing.update(candidate)
            updated.append(copy.deepcopy(existing))
        return updated

    async def delete(self, table: Table, match: Mapping[str, Any]) -> int:
        _check_columns(table, match.keys())
        rows = self._tables[table]
        kept = [r for r in rows if not _matches(r, match)]
        removed = len(rows) - len(kept)
        self._tables[table] = kept
        return removed

    async def select(self, table: Table, match: Optional[Mapping[str, Any]] = None) -> List[Row]:
        if match:
            _check_columns(table, match.keys())
        return [copy.deepcopy(r) for r in self._tables[table] if _matches(r, match)]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = copy.deepcopy(self._tables)
        try:
            yield
        except BaseException:
            self._tables = snapshot
            raise

    async def close(self) -> None:
        return None


_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS personal_entries (
        id bigserial PRIMARY KEY,
        user_id text NOT NULL,
        movie_id bigint NOT NULL,
        kind text NOT NULL CHECK (kind IN ('list', 'watchlist')),
        want_to_see_rating double precision CHECK (want_to_see_rating BETWEEN 1 AND 10),
        movie_data jsonb NOT NULL DEFAULT '{}'::jsonb,
        added_at timestamptz NOT NULL DEFAULT NOW(),
        CHECK ((kind = 'list') = (want_to_see_rating IS NULL))
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS personal_entries_user_movie_kind_uidx "
    "ON personal_entries(user_id, movie_id, kind);",
    "CREATE INDEX IF NOT EXISTS personal_entries_movie_kind_idx ON personal_entries(movie_id, kind);",
    """
    CREATE TABLE IF NOT EXISTS shared_entries (
        movie_id bigint PRIMARY KEY,
        movie_data jsonb NOT NULL DEFAULT '{}'::jsonb,
        added_by text NOT NULL,
        scheduled_for timestamptz,
        added_at timestamptz NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS watched_entries (
        user_id text NOT NULL,
        movie_id bigint NOT NULL,
        movie_data jsonb NOT NULL DEFAULT '{}'::jsonb,
        watched_at timestamptz NOT NULL DEFAULT NOW(),
        PRIMARY KEY (user_id, movie_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS watched_entries_watched_at_idx ON watched_entries(watched_at DESC);",
    """
    CREATE TABLE IF NOT EXISTS ratings (
        user_id text NOT NULL,
        movie_id bigint NOT NULL,
        rating double precision NOT NULL CHECK (rating BETWEEN 1 AND 5),
        rated_at timestamptz NOT NULL DEFAULT NOW(),
        PRIMARY KEY (user_id, movie_id)
    );
    """,
)


@contextmanager
def _translate_errors(action: str, table: Optional[Table] = None) -> Iterator[None]:
    target = table.value if table is not None else "watchlist store"
    try:
        yield
    except asyncpg.UniqueViolationError as exc:
        raise DuplicateEntryError(f"Duplicate {target} entry: {exc.detail or exc}") from exc
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
        logger.error("Postgres %s on %s failed: %s", action, target, exc)
        raise StoreUnavailableError(f"Store {action} on {target} failed") from exc


class PostgresWatchlistStore(WatchlistStorePort):
    """Postgres-backed watchlist storage (asyncpg)."""

    def __init__(
        self,
        *,
        dsn: str,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: Optional[float] = None,
    ) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()
        # Connection of the transaction open in the current task, if any.
        self._tx_conn: contextvars.ContextVar[Optional[asyncpg.Connection]] = contextvars.ContextVar(
            f"watchlist_tx_conn_{id(self)}", default=None
        )

    @property
    def supports_transactions(self) -> bool:
        return True

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            self._pool = await asyncpg.create_pool(
                self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                ssl=False,
            )
            await self._ensure_schema()
            logger.info("PostgreSQL watchlist store pool initialized")
            return self._pool

    async def _ensure_schema(self) -> None:
        pool = self._pool
        if pool is None:
            return
        async with pool.acquire() as conn:
            for statement in _SCHEMA_STATEMENTS:
                await conn.execute(statement)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = self._tx_conn.get()
        if conn is not None:
            yield conn
            return
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._tx_conn.get() is not None:
            # Nested blocks join the outer transaction.
            yield
            return
        with _translate_errors("transaction"):
            pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                token = self._tx_conn.set(conn)
                try:
                    yield
                finally:
                    self._tx_conn.reset(token)

    @staticmethod
    def _encode(column: str, value: Any) -> Any:
        value = _plain(value)
        if column in _JSONB_COLUMNS and value is not None and not isinstance(value, str):
            return json.dumps(value, ensure_ascii=False)
        return value

    @staticmethod
    def _placeholder(column: str, index: int) -> str:
        return f"${index}::jsonb" if column in _JSONB_COLUMNS else f"${index}"

    def _where(self, match: Optional[Mapping[str, Any]], params: List[Any]) -> str:
        if not match:
            return ""
        clauses = []
        for column, value in match.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
                continue
            params.append(self._encode(column, value))
            clauses.append(f"{column} = ${len(params)}")
        return " WHERE " + " AND ".join(clauses)

    @staticmethod
    def _row(record: Mapping[str, Any], table: Table) -> Row:
        row = {c: record[c] for c in TABLE_COLUMNS[table]}
        if isinstance(row.get("movie_data"), str):
            row["movie_data"] = json.loads(row["movie_data"])
        return row

    async def insert(self, table: Table, row: Mapping[str, Any]) -> Row:
        _check_columns(table, row.keys())
        # Omitted columns fall back to their SQL defaults (NOW() for timestamps).
        columns = [c for c in TABLE_COLUMNS[table] if row.get(c) is not None]
        params = [self._encode(c, row[c]) for c in columns]
        placeholders = ", ".join(self._placeholder(c, i) for i, c in enumerate(columns, start=1))
        sql = (
            f"INSERT INTO {table.value} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"RETURNING {', '.join(TABLE_COLUMNS[table])};"
        )
        with _translate_errors("insert", table):
            async with self._connection() as conn:
                record = await conn.fetchrow(sql, *params)
        return self._row(record, table)

    async def update(self, table: Table, match: Mapping[str, Any], patch: Mapping[str, Any]) -> List[Row]:
        _check_columns(table, list(match.keys()) + list(patch.keys()))
        if not patch:
            return await self.select(table, match)
        params: List[Any] = []
        assignments = []
        for column, value in patch.items():
            params.append(self._encode(column, value))
            assignments.append(f"{column} = {self._placeholder(column, len(params))}")
        sql = (
            f"UPDATE {table.value} SET {', '.join(assignments)}"
            f"{self._where(match, params)} RETURNING {', '.join(TABLE_COLUMNS[table])};"
        )
        with _translate_errors("update", table):
            async with self._connection() as conn:
                records = await conn.fetch(sql, *params)
        return [self._row(r, table) for r in records]

    async def delete(self, table: Table, match: Mapping[str, Any]) -> int:
        _check_columns(table, match.keys())
        params: List[Any] = []
        sql = f"DELETE FROM {table.value}{self._where(match, params)};"
        with _translate_errors("delete", table):
            async with self._connection() as conn:
                status = await conn.execute(sql, *params)
        # asyncpg returns the command tag, e.g. "DELETE 3".
        try:
            return int(str(status).rsplit(" ", 1)[-1])
        except ValueError:
            return 0

    async def select(self, table: Table, match: Optional[Mapping[str, Any]] = None) -> List[Row]:
        if match:
            _check_columns(table, match.keys())
        params: List[Any] = []
        sql = f"SELECT {', '.join(TABLE_COLUMNS[table])} FROM {table.value}{self._where(match, params)};"
        with _translate_errors("select", table):
            async with self._connection() as conn:
                records = await conn.fetch(sql, *params)
        return [self._row(r, table) for r in records]

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
