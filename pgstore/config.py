import os
from collections.abc import Mapping
from typing import Any, Optional

from psycopg.conninfo import make_conninfo
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pgstore.errors import ConfigError


CFG_TRY_UNTIL_READY = "try-until-ready"
CFG_READY_TIMEOUT = "ready-timeout"

CFG_DB_NAME = "dbname"
CFG_USER = "user"
CFG_PASSWORD = "password"
CFG_SSL_ENABLE = "ssl-enable"
CFG_HOST = "host"
CFG_PORT = "port"

CFG_TRY_UNTIL_READY_DEFAULT = True
CFG_SSL_ENABLE_DEFAULT = False
CFG_HOST_DEFAULT = "localhost"
CFG_PORT_DEFAULT = 5432

ENV_PREFIX = "PGSTORE"

_MISSING = object()


class StoreConfig:
    """
    Key lookup for one named data store.

    Explicit ``values`` win, then the environment variable
    ``PGSTORE_<NAME>_<KEY>`` (``-`` becomes ``_``), then the default.
    """

    def __init__(self, name: str, values: Optional[Mapping[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.name = name
        self._values = dict(values or {})
        self._environ = os.environ if environ is None else environ

    def env_key(self, key: str) -> str:
        return f"{ENV_PREFIX}_{self.name}_{key}".upper().replace("-", "_")

    def _lookup(self, key: str) -> Any:
        if key in self._values:
            return self._values[key]
        return self._environ.get(self.env_key(key), _MISSING)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def get_required(self, key: str) -> Any:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            raise ConfigError(
                f"Missing required config '{key}' for store '{self.name}' "
                f"(set it explicitly or via {self.env_key(key)})"
            )
        return value


class StoreSettings(BaseModel):
    """Validated connection settings of a PostgreSQL data store."""

    model_config = ConfigDict(frozen=True)

    try_until_ready: bool = CFG_TRY_UNTIL_READY_DEFAULT
    ready_timeout: Optional[float] = Field(default=None, gt=0)
    dbname: str
    user: str
    password: str = Field(..., repr=False)
    ssl_enable: bool = CFG_SSL_ENABLE_DEFAULT
    host: str = CFG_HOST_DEFAULT
    port: int = Field(default=CFG_PORT_DEFAULT, ge=1, le=65535)

    @field_validator("dbname", "user", "host", mode="before")
    @classmethod
    def validate_not_empty_str(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("must not be empty")
        return v

    @classmethod
    def from_config(cls, cfg: StoreConfig) -> "StoreSettings":
        try:
            return cls(
                try_until_ready=cfg.get(CFG_TRY_UNTIL_READY, CFG_TRY_UNTIL_READY_DEFAULT),
                ready_timeout=cfg.get(CFG_READY_TIMEOUT),
                dbname=cfg.get_required(CFG_DB_NAME),
                user=cfg.get_required(CFG_USER),
                password=cfg.get_required(CFG_PASSWORD),
                ssl_enable=cfg.get(CFG_SSL_ENABLE, CFG_SSL_ENABLE_DEFAULT),
                host=cfg.get(CFG_HOST, CFG_HOST_DEFAULT),
                port=cfg.get(CFG_PORT, CFG_PORT_DEFAULT),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid config for store '{cfg.name}': {e}") from e

    def conninfo(self) -> str:
        return make_conninfo(
            dbname=self.dbname,
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            sslmode="require" if self.ssl_enable else "disable",
        )
