"""
pgstore
=======

Collection-style data access for PostgreSQL: parameterized CRUD built from
field and criteria maps, pooled or pinned execution, explicit transactions,
and a data store that owns the pool, its readiness probe and health status.
"""

from pgstore.config import StoreConfig, StoreSettings
from pgstore.connection import ClientState, PostgresConnection
from pgstore.errors import (
    AlreadyConnectedError,
    ConfigError,
    DataStoreError,
    DuplicateKeyError,
    ErrorInfo,
    ErrorKind,
    NotConnectedError,
    ReadinessTimeoutError,
    RequestError,
    StoreError,
    StoreStartError,
)
from pgstore.query import Compare, Equals, In, Query, ReadOptions, ResultFormat, RowMode
from pgstore.store import DataStore, PostgresStore, StoreState, StoreStatus

__version__ = "0.1.0"

__all__ = [
    "StoreConfig",
    "StoreSettings",
    "ClientState",
    "PostgresConnection",
    "AlreadyConnectedError",
    "ConfigError",
    "DataStoreError",
    "DuplicateKeyError",
    "ErrorInfo",
    "ErrorKind",
    "NotConnectedError",
    "ReadinessTimeoutError",
    "RequestError",
    "StoreError",
    "StoreStartError",
    "Compare",
    "Equals",
    "In",
    "Query",
    "ReadOptions",
    "ResultFormat",
    "RowMode",
    "DataStore",
    "PostgresStore",
    "StoreState",
    "StoreStatus",
]
