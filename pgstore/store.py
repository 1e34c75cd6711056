"""
PostgreSQL data store: pool ownership, readiness, health and the
connection factory.

The hosting application drives the store through the ``DataStore``
lifecycle:

    store = PostgresStore("main", {"dbname": "app", "user": "app", "password": "..."})
    await store.start()        # waits until the database answers
    conn = store.connection()  # connId 1, 2, 3, ...
    ...
    await store.stop()
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Union

from psycopg import OperationalError
from pydantic import BaseModel

from pgstore.config import StoreConfig, StoreSettings
from pgstore.connection import PostgresConnection
from pgstore.errors import ReadinessTimeoutError, StoreError, StoreStartError
from pgstore.logger import setup_logger
from pgstore.pool import PostgresPool
from pgstore.query import Query

logger = setup_logger(__name__, include_location=True)

LIVENESS_QUERY = "SELECT now();"
RETRY_DELAY_SECONDS = 5.0


class StoreStatus(BaseModel):
    code: int = 0
    message: str = "OK"

    @property
    def ok(self) -> bool:
        return self.code == 0


STATUS_OK = StoreStatus()


class StoreState(str, Enum):
    INITIALIZED = "initialized"
    READY = "ready"
    STOPPED = "stopped"


class DataStore(ABC):
    """Lifecycle the hosting application calls on a data store."""

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def status(self) -> StoreStatus:
        """Health check. Must not raise."""
        ...

    @abstractmethod
    def connection(self) -> Any:
        ...

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()


def is_connection_refused(error: BaseException) -> bool:
    """True when the database is not accepting connections (yet)."""
    if isinstance(error, OperationalError):
        msg = str(error).lower()
        return "connection refused" in msg or "could not connect" in msg
    return isinstance(error, ConnectionRefusedError)


class PostgresStore(DataStore):

    def __init__(self, name: str, config: Union[StoreConfig, Mapping, None] = None):
        self.name = name
        cfg = config if isinstance(config, StoreConfig) else StoreConfig(name, config)

        logger.info(f"Initialising postgres store ({name}) ...")
        self.settings = StoreSettings.from_config(cfg)
        s = self.settings

        logger.info(f"try-until-ready set to ({s.try_until_ready})")
        logger.info(f"Using DB ({s.dbname})")
        logger.info(f"DB user is ({s.user})")
        logger.info(f"SSL enabled ({s.ssl_enable})")
        logger.info(f"Using port ({s.port})")
        logger.info(f"Using host ({s.host})")

        self._next_conn_id = 1
        self._state = StoreState.INITIALIZED
        self._pool = self._create_pool()

        logger.info("Finished initialising postgres!")

    def _create_pool(self) -> PostgresPool:
        return PostgresPool(
            self.settings.conninfo(),
            name=f"pgstore_{self.name}",
            on_error=self._on_pool_error,
        )

    def _on_pool_error(self, pool) -> None:
        logger.error(f"Pool {pool.name} failed to reconnect to {self.settings.host}:{self.settings.port}")

    @property
    def state(self) -> StoreState:
        return self._state

    def __repr__(self):
        s = self.settings
        return f"<PostgresStore {self.name} {s.user}@{s.host}:{s.port}/{s.dbname} {self._state.value}>"

    async def _probe(self) -> None:
        await self._pool.execute(Query(text=LIVENESS_QUERY))

    async def _wait_until_ready(self) -> None:
        # Probe on a direct connection: the pool would hide the cause behind PoolTimeout.
        ready_timeout = self.settings.ready_timeout
        deadline = time.monotonic() + ready_timeout if ready_timeout else None
        attempt = 0

        while True:
            attempt += 1
            try:
                await self._pool.probe(Query(text=LIVENESS_QUERY))
                return
            except Exception as e:
                if not (is_connection_refused(e) and self.settings.try_until_ready):
                    logger.error(f"Postgres not ready: {e}")
                    raise StoreStartError(str(e)) from e
                if deadline is not None and time.monotonic() + RETRY_DELAY_SECONDS > deadline:
                    raise ReadinessTimeoutError(
                        f"Postgres not ready after {ready_timeout}s ({attempt} attempts): {e}"
                    ) from e
                logger.warning(
                    f"Postgres not ready (attempt {attempt}): {e}. Retrying in {RETRY_DELAY_SECONDS}s"
                )
                await asyncio.sleep(RETRY_DELAY_SECONDS)

    async def start(self) -> None:
        if self._state == StoreState.STOPPED:
            raise StoreError(f"Store {self.name} has been stopped and cannot be restarted")
        if self._state == StoreState.READY:
            return

        logger.info("Starting ...")
        await self._wait_until_ready()
        logger.info("Postgres DB ready")

        await self._pool.open()
        self._state = StoreState.READY
        logger.info("Started!")

    async def stop(self) -> None:
        if self._state == StoreState.STOPPED:
            return

        logger.info("Stopping ...")
        self._state = StoreState.STOPPED
        try:
            await self._pool.close()
        except Exception as e:
            logger.error(f"Error closing pool: {e}")
            raise StoreError(str(e)) from e

        logger.info("Pool closed!")
        logger.info("Stopped!")

    async def status(self) -> StoreStatus:
        try:
            await self._probe()
        except Exception as e:
            logger.error(f"Status check failed: {e}")
            return StoreStatus(code=-1, message=str(e))
        return STATUS_OK

    def stats(self) -> Dict[str, Any]:
        return {"state": self._state.value, "next_conn_id": self._next_conn_id, **self._pool.stats()}

    def connection(self) -> PostgresConnection:
        conn_id = self._next_conn_id
        self._next_conn_id += 1
        return PostgresConnection(self._pool, conn_id)
