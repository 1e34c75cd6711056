"""
Collection-style CRUD and explicit transactions over a PostgresPool.

A ``PostgresConnection`` starts out POOLED: each statement borrows a pooled
connection for its own duration. ``connect()`` pins one client to the
adapter (PINNED); from then on every statement runs on that client, in
issue order, until ``release()``.

    conn = store.connection()
    await conn.create("users", {"name": "a", "email": "b"})

    async with conn.transaction():
        await conn.update("users", {"email": "x"}, {"id": 5})
        await conn.delete("sessions", {"user_id": 5})
"""

from collections.abc import Mapping, Sequence
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, List, Optional, Union

from pgstore.errors import (
    AlreadyConnectedError,
    DuplicateKeyError,
    NotConnectedError,
    RequestError,
    UNIQUE_VIOLATION,
    classify_postgres_error,
    get_pg_code,
)
from pgstore.logger import setup_logger
from pgstore.pool import PinnedClient, PostgresPool, QueryResult
from pgstore.query import (
    Query,
    ReadOptions,
    ResultFormat,
    build_delete,
    build_insert,
    build_select,
    build_update,
)

logger = setup_logger(__name__, include_location=True)

REQUEST_FAILED = "Something wrong with your request!"


class ClientState(str, Enum):
    POOLED = "pooled"
    PINNED = "pinned"


class PostgresConnection:
    JSON = ResultFormat.JSON
    ARRAY = ResultFormat.ARRAY
    ARRAY_NO_HEADER = ResultFormat.ARRAY_NO_HEADER

    def __init__(self, pool: PostgresPool, conn_id: int):
        self._pool = pool
        self._client: Optional[PinnedClient] = None
        self._id = conn_id

        logger.debug(f"Creating connId: {self._id}")

    @property
    def id(self) -> int:
        return self._id

    @property
    def state(self) -> ClientState:
        return ClientState.POOLED if self._client is None else ClientState.PINNED

    def __repr__(self):
        return f"<PostgresConnection connId={self._id} {self.state.value}>"

    # Statement execution

    def _route(self):
        return self._pool if self.state == ClientState.POOLED else self._client

    async def _execute(self, op: str, query: Query, unique_aware: bool = False) -> QueryResult:
        logger.debug(f"connId:{self._id} {op}() query: {query}")
        try:
            return await self._route().execute(query)
        except Exception as e:
            logger.error(f"connId:{self._id} '{e}' happened for query ({query.text}): {e!r}")
            pg_code = get_pg_code(e)
            info = classify_postgres_error(e, pg_code)
            if unique_aware and pg_code == UNIQUE_VIOLATION:
                raise DuplicateKeyError(conn_id=self._id, info=info) from e
            raise RequestError(REQUEST_FAILED, pg_code=pg_code, conn_id=self._id, info=info) from e

    async def create(self, collection: str, fields: Mapping[str, Any],
                     returning: Optional[str] = None) -> List[Any]:
        query = build_insert(collection, fields, returning)
        res = await self._execute("create", query, unique_aware=True)
        return res.rows

    async def read(self, collection: str,
                   fields: Optional[Sequence[str]] = None,
                   criteria: Optional[Mapping[str, Any]] = None,
                   options: Union[ReadOptions, Mapping, None] = None) -> List[Any]:
        opts = ReadOptions.coerce(options)
        query = build_select(collection, fields, criteria, opts)
        res = await self._execute("read", query)

        if opts.format == ResultFormat.ARRAY:
            return [list(res.columns), *res.rows]
        return res.rows

    async def update(self, collection: str, fields: Mapping[str, Any],
                     criteria: Optional[Mapping[str, Any]] = None) -> int:
        query = build_update(collection, fields, criteria)
        res = await self._execute("update", query, unique_aware=True)
        return res.row_count

    async def delete(self, collection: str,
                     criteria: Optional[Mapping[str, Any]] = None) -> int:
        query = build_delete(collection, criteria)
        res = await self._execute("delete", query)
        return res.row_count

    async def query(self, query: Union[Query, str, Mapping]) -> List[Any]:
        res = await self._execute("query", Query.coerce(query))
        return res.rows

    async def exec(self, query: Union[Query, str, Mapping]) -> int:
        res = await self._execute("exec", Query.coerce(query))
        return res.row_count

    # Pinned client and transactions

    def _require_client(self) -> PinnedClient:
        if self._client is None:
            raise NotConnectedError("Do not have a connection!", conn_id=self._id)
        return self._client

    async def connect(self) -> None:
        if self._client is not None:
            raise AlreadyConnectedError("Already have a connection!", conn_id=self._id)

        logger.debug(f"connId:{self._id} Getting connection")
        client = await self._pool.checkout()
        if self._client is not None:
            # a concurrent connect() won while we were waiting on the pool
            await client.release()
            raise AlreadyConnectedError("Already have a connection!", conn_id=self._id)
        self._client = client
        logger.debug(f"connId:{self._id} Pinned backend pid={client.backend_pid}")

    async def release(self) -> None:
        client = self._require_client()
        logger.debug(f"connId:{self._id} Releasing connection")
        self._client = None
        await client.release()

    async def _control(self, op: str, statement: str, action: str) -> None:
        self._require_client()
        logger.debug(f"connId:{self._id} {action} transaction ...")
        # deferred unique constraints fail at COMMIT
        await self._execute(op, Query(text=statement), unique_aware=True)

    async def begin(self) -> None:
        await self._control("begin", "BEGIN;", "Beginning")

    async def commit(self) -> None:
        await self._control("commit", "COMMIT;", "Committing")

    async def rollback(self) -> None:
        await self._control("rollback", "ROLLBACK;", "Rolling back")

    @asynccontextmanager
    async def transaction(self):
        """Pin a client, run the block inside BEGIN/COMMIT, roll back on error, release."""
        await self.connect()
        try:
            await self.begin()
            try:
                yield self
            except BaseException:
                await self.rollback()
                raise
            await self.commit()
        finally:
            await self.release()
