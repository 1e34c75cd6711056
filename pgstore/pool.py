"""
Pooled statement execution on top of psycopg_pool.

``PostgresPool`` is the only place that touches the driver. Statements are
run through psycopg's raw cursor so the ``$n`` placeholders built by
``pgstore.query`` reach PostgreSQL unchanged. Connections are opened in
autocommit mode: a pooled statement is its own unit of work and transactions
only exist when a caller issues ``BEGIN`` on a pinned client.
"""

import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from psycopg import AsyncConnection, AsyncRawCursor
from psycopg.rows import dict_row, tuple_row
from psycopg_pool import AsyncConnectionPool

from pgstore.logger import setup_logger
from pgstore.query import Query, RowMode

logger = setup_logger(__name__, include_location=True)


class QueryResult(NamedTuple):
    rows: List[Any]
    row_count: int
    columns: List[str]


async def run_query(conn: AsyncConnection, query: Query) -> QueryResult:
    """Execute one Query on *conn* and collect rows, row count and column names."""
    row_factory = tuple_row if query.row_mode == RowMode.ARRAY else dict_row
    async with AsyncRawCursor(conn, row_factory=row_factory) as cur:
        await cur.execute(query.text, query.values or None)
        if cur.description is None:
            return QueryResult(rows=[], row_count=cur.rowcount, columns=[])
        rows = await cur.fetchall()
        if query.row_mode == RowMode.ARRAY:
            rows = [list(row) for row in rows]
        columns = [col.name for col in cur.description]
        return QueryResult(rows=rows, row_count=cur.rowcount, columns=columns)


class PinnedClient:
    """A connection checked out of the pool until ``release()``."""

    def __init__(self, pool: AsyncConnectionPool, conn: AsyncConnection):
        self._pool = pool
        self._conn: Optional[AsyncConnection] = conn
        self._checked_out_at = time.time()

    @property
    def backend_pid(self):
        if self._conn is not None and self._conn.info:
            return self._conn.info.backend_pid
        return "unknown"

    async def execute(self, query: Query) -> QueryResult:
        if self._conn is None:
            raise RuntimeError("Client has already been released")
        return await run_query(self._conn, query)

    async def release(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        held = time.time() - self._checked_out_at
        await self._pool.putconn(conn)
        logger.debug(f"Connection returned to {self._pool.name} (held {held*1000:.1f}ms)")


class PostgresPool:
    """
    Shared connection pool for one data store.

    Args:
        conninfo: libpq connection string
        name: Pool name (for logging/monitoring)
        on_error: Called with the pool when it fails to re-establish a
            connection; must not raise.
    """

    def __init__(self, conninfo: str, name: str = "pgstore",
                 on_error: Optional[Callable[[AsyncConnectionPool], None]] = None):
        self.name = name
        self._conninfo = conninfo
        self._pool = AsyncConnectionPool(
            conninfo,
            kwargs={"autocommit": True},
            name=name,
            open=False,
            reconnect_failed=on_error,
        )

    @property
    def closed(self) -> bool:
        return self._pool.closed

    async def open(self) -> None:
        await self._pool.open(wait=False)
        logger.info(f"Pool {self.name} opened")

    async def close(self) -> None:
        logger.info(f"Closing pool {self.name}")
        await self._pool.close()

    async def execute(self, query: Query) -> QueryResult:
        async with self._pool.connection() as conn:
            return await run_query(conn, query)

    async def probe(self, query: Query) -> QueryResult:
        """Run *query* on a fresh unpooled connection, so connect errors surface unwrapped."""
        async with await AsyncConnection.connect(self._conninfo, autocommit=True) as conn:
            return await run_query(conn, query)

    async def checkout(self) -> PinnedClient:
        acquire_start = time.time()
        conn = await self._pool.getconn()
        logger.debug(
            f"Connection acquired from {self.name} in {(time.time() - acquire_start)*1000:.1f}ms"
        )
        return PinnedClient(self._pool, conn)

    def stats(self) -> Dict[str, int]:
        pool_stats = self._pool.get_stats()
        return {
            "size": pool_stats.get("pool_size", 0),
            "available": pool_stats.get("pool_available", 0),
            "waiting": pool_stats.get("requests_waiting", 0),
        }
