"""
Error types raised by pgstore.

Callers branch on the exception class (or on ``code``) instead of matching
messages:

    try:
        await conn.create("users", {"email": email})
    except DuplicateKeyError:
        ...  # row already there
    except RequestError as e:
        logger.error(f"insert failed with SQLSTATE {e.pg_code}")

Statement failures also carry ``info``, a structured ``ErrorInfo`` that
says whether the failure is worth retrying.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


UNIQUE_VIOLATION = "23505"


class ErrorKind(str, Enum):
    """PostgreSQL failure categories."""

    DB_CONNECTION = "db_connection"  # Connection failure, SQLSTATE class 08
    DB_CONSTRAINT = "db_constraint"  # Unique, foreign key, not null, check
    DB_DEADLOCK = "db_deadlock"      # Serialization failure / deadlock
    DB_TIMEOUT = "db_timeout"        # Statement cancelled
    DB_SYNTAX = "db_syntax"          # Syntax error or access rule violation
    UNKNOWN = "unknown"


class ErrorInfo(BaseModel):
    """Structured description of a failed statement."""

    kind: ErrorKind = Field(
        default=ErrorKind.UNKNOWN,
        description="Error category"
    )
    retryable: bool = Field(
        default=False,
        description="Whether re-running the statement may succeed"
    )
    code: str = Field(
        default="PG_UNKNOWN",
        description="Prefixed error code (PG_23505, PG_40P01, ...)"
    )
    message: str = Field(
        default="Unknown error",
        description="Driver error message"
    )
    pg_code: Optional[str] = Field(
        None, description="PostgreSQL SQLSTATE (e.g. 23505, 40P01)"
    )
    exception_type: Optional[str] = Field(
        None, description="Driver exception class name"
    )

    def to_dict(self) -> dict[str, Any]:
        d = {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "code": self.code,
            "message": self.message,
        }
        if self.pg_code is not None:
            d["pg_code"] = self.pg_code
        if self.exception_type is not None:
            d["exception_type"] = self.exception_type
        return d


def get_pg_code(error: BaseException) -> Optional[str]:
    """SQLSTATE of a psycopg error (``sqlstate``), or ``pgcode`` for older drivers."""
    return getattr(error, "sqlstate", None) or getattr(error, "pgcode", None)


def classify_postgres_error(
    error: BaseException,
    error_code: Optional[str] = None,
) -> ErrorInfo:
    """Classify a PostgreSQL driver error."""
    error_str = str(error).lower()
    pg_code = error_code or get_pg_code(error)
    code = f"PG_{pg_code}" if pg_code else "PG_UNKNOWN"

    def info(kind: ErrorKind, retryable: bool) -> ErrorInfo:
        return ErrorInfo(
            kind=kind,
            retryable=retryable,
            code=code,
            message=str(error),
            pg_code=pg_code,
            exception_type=type(error).__name__,
        )

    if pg_code in ("40001", "40P01") or "deadlock" in error_str:
        return info(ErrorKind.DB_DEADLOCK, True)
    if pg_code and pg_code.startswith("23"):
        return info(ErrorKind.DB_CONSTRAINT, False)
    if (pg_code and pg_code.startswith("08")) or "connection" in error_str:
        return info(ErrorKind.DB_CONNECTION, True)
    if pg_code == "57014" or "timeout" in error_str:
        return info(ErrorKind.DB_TIMEOUT, True)
    if pg_code and pg_code.startswith("42"):
        return info(ErrorKind.DB_SYNTAX, False)
    return info(ErrorKind.UNKNOWN, False)


class DataStoreError(Exception):
    """Base class for everything pgstore raises."""

    code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None, conn_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.conn_id = conn_id

    def __str__(self):
        if self.conn_id is not None:
            return f"connId:{self.conn_id} {self.message}"
        return self.message


class RequestError(DataStoreError):
    """A statement failed; ``pg_code`` is the driver's SQLSTATE."""

    def __init__(self, message: str, pg_code: Optional[str] = None,
                 conn_id: Optional[int] = None, info: Optional[ErrorInfo] = None):
        super().__init__(message, code=pg_code, conn_id=conn_id)
        self.pg_code = pg_code
        self.info = info or ErrorInfo(message=message, pg_code=pg_code)


class DuplicateKeyError(RequestError):
    """Unique constraint violation (SQLSTATE 23505)."""

    DUP_CODE = "DUP_KEY"

    def __init__(self, message: str = "Duplicate record exists!",
                 conn_id: Optional[int] = None, info: Optional[ErrorInfo] = None):
        super().__init__(message, pg_code=UNIQUE_VIOLATION, conn_id=conn_id, info=info)
        self.code = self.DUP_CODE


class AlreadyConnectedError(DataStoreError):
    code = "ALREADY_CONNECTED"


class NotConnectedError(DataStoreError):
    code = "NOT_CONNECTED"


class ConfigError(DataStoreError):
    code = "CONFIG"


class StoreError(DataStoreError):
    """Store lifecycle failure (closing the pool, reuse after stop)."""

    code = "STORE"


class StoreStartError(StoreError):
    """``start()`` gave up; the driver error is chained as ``__cause__``."""

    code = "START"


class ReadinessTimeoutError(StoreStartError):
    """The database kept refusing connections past ``ready-timeout``."""

    code = "READY_TIMEOUT"
