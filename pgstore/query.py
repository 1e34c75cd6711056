"""
SQL builders for collection-style operations.

Every builder returns a ``Query``: SQL text using PostgreSQL's native
positional placeholders (``$1``, ``$2``, ...) and the list of values bound to
them, in placeholder order. Only values are parameterized; collection and
column names are interpolated as given and are never validated here.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResultFormat(str, Enum):
    JSON = "json"
    ARRAY = "array"                      # header row + data rows
    ARRAY_NO_HEADER = "array-no-header"  # data rows only


class RowMode(str, Enum):
    DICT = "dict"
    ARRAY = "array"


class Query(BaseModel):
    """SQL text, its positional values and the shape rows come back in."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    values: list[Any] = Field(default_factory=list)
    row_mode: RowMode = Field(default=RowMode.DICT, alias="rowMode")

    @classmethod
    def coerce(cls, raw: Union["Query", str, Mapping]) -> "Query":
        if isinstance(raw, Query):
            return raw
        if isinstance(raw, str):
            return cls(text=raw)
        return cls.model_validate(raw)


class ReadOptions(BaseModel):
    """Options for ``read``; accepts camelCase keys as well as field names."""

    model_config = ConfigDict(populate_by_name=True)

    format: ResultFormat = ResultFormat.JSON
    distinct: bool = False
    group_by: list[str] = Field(default_factory=list, alias="groupBy")
    order_by: list[str] = Field(default_factory=list, alias="orderBy")
    order_by_desc: list[str] = Field(default_factory=list, alias="orderByDesc")

    @field_validator("group_by", "order_by", "order_by_desc", mode="before")
    @classmethod
    def _listify(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @classmethod
    def coerce(cls, options: Union["ReadOptions", Mapping, None]) -> "ReadOptions":
        if options is None:
            return cls()
        if isinstance(options, ReadOptions):
            return options
        return cls.model_validate(options)

    @property
    def row_mode(self) -> RowMode:
        if self.format in (ResultFormat.ARRAY, ResultFormat.ARRAY_NO_HEADER):
            return RowMode.ARRAY
        return RowMode.DICT


class _Params:
    """Hands out ``$n`` placeholders in the order values are bound."""

    def __init__(self):
        self.values: list[Any] = []

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


# Criteria conditions

@dataclass(frozen=True)
class Equals:
    value: Any

    def render(self, column: str, params: _Params) -> str:
        return f"{column}={params.bind(self.value)}"


@dataclass(frozen=True)
class In:
    values: tuple

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))
        if not self.values:
            raise ValueError("IN condition needs at least one value")

    def render(self, column: str, params: _Params) -> str:
        placeholders = ",".join(params.bind(v) for v in self.values)
        return f"{column} IN ({placeholders})"


@dataclass(frozen=True)
class Compare:
    op: str
    value: Any

    def __post_init__(self):
        if not isinstance(self.op, str) or not self.op.strip():
            raise ValueError(f"Invalid comparison operator: {self.op!r}")

    def render(self, column: str, params: _Params) -> str:
        return f"{column}{self.op}{params.bind(self.value)}"


Condition = Union[Equals, In, Compare]
_CONDITION_TYPES = (Equals, In, Compare)


def to_condition(value: Any) -> Condition:
    """
    Resolve a raw criteria value into a condition.

    - list / tuple                         -> In
    - {"op": ..., "val": ...}              -> Compare
      ({"operator": ..., "value": ...} is accepted too)
    - anything else                        -> Equals
    """
    if isinstance(value, _CONDITION_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return In(value)
    if isinstance(value, Mapping):
        if "op" in value and "val" in value:
            return Compare(value["op"], value["val"])
        if "operator" in value and "value" in value:
            return Compare(value["operator"], value["value"])
        raise ValueError(f"Unsupported condition object: {dict(value)!r}")
    return Equals(value)


def normalize_criteria(criteria: Optional[Mapping[str, Any]]) -> dict[str, Condition]:
    if not criteria:
        return {}
    return {column: to_condition(value) for column, value in criteria.items()}


def _equality_criteria(criteria: Optional[Mapping[str, Any]]) -> dict[str, Equals]:
    # update/delete only match on equality; raw lists are bound as one value
    result = {}
    for column, value in (criteria or {}).items():
        if isinstance(value, (In, Compare)):
            raise ValueError(
                f"Only equality criteria are supported here, got {type(value).__name__} for '{column}'"
            )
        result[column] = value if isinstance(value, Equals) else Equals(value)
    return result


def _where(conditions: Mapping[str, Condition], params: _Params) -> str:
    if not conditions:
        return ""
    clauses = [cond.render(column, params) for column, cond in conditions.items()]
    return " WHERE " + " AND ".join(clauses)


def _require_fields(fields: Mapping[str, Any], operation: str) -> None:
    if not fields:
        raise ValueError(f"{operation} needs at least one field")


# Builders

def build_insert(collection: str, fields: Mapping[str, Any],
                 returning: Optional[str] = None) -> Query:
    _require_fields(fields, "create")
    params = _Params()
    columns = ",".join(fields.keys())
    placeholders = ",".join(params.bind(v) for v in fields.values())
    text = f"INSERT INTO {collection} ({columns}) VALUES ({placeholders})"
    if returning:
        text += f" RETURNING {' '.join(returning.split())}"
    return Query(text=text, values=params.values)


def build_select(collection: str,
                 fields: Optional[Sequence[str]] = None,
                 criteria: Optional[Mapping[str, Any]] = None,
                 options: Union[ReadOptions, Mapping, None] = None) -> Query:
    opts = ReadOptions.coerce(options)
    params = _Params()

    if isinstance(fields, str):
        fields = [fields]
    columns = ",".join(fields) if fields else "*"
    select = "SELECT DISTINCT" if opts.distinct else "SELECT"
    text = f"{select} {columns} FROM {collection}"
    text += _where(normalize_criteria(criteria), params)

    if opts.group_by:
        text += f" GROUP BY {','.join(opts.group_by)}"

    order = []
    if opts.order_by:
        order.append(f"{','.join(opts.order_by)} ASC")
    if opts.order_by_desc:
        order.append(f"{','.join(opts.order_by_desc)} DESC")
    if order:
        text += f" ORDER BY {', '.join(order)}"

    return Query(text=text, values=params.values, row_mode=opts.row_mode)


def build_update(collection: str, fields: Mapping[str, Any],
                 criteria: Optional[Mapping[str, Any]] = None) -> Query:
    _require_fields(fields, "update")
    params = _Params()
    assignments = ",".join(f"{column}={params.bind(v)}" for column, v in fields.items())
    text = f"UPDATE {collection} SET {assignments}"
    text += _where(_equality_criteria(criteria), params)
    return Query(text=text, values=params.values)


def build_delete(collection: str, criteria: Optional[Mapping[str, Any]] = None) -> Query:
    params = _Params()
    text = f"DELETE FROM {collection}"
    text += _where(_equality_criteria(criteria), params)
    return Query(text=text, values=params.values)
