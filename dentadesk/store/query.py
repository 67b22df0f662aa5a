"""Table queries for the hosted data store.

A ``Query`` mirrors the remote filter API (equality, range, pattern, OR
groups, ordering, offset pagination and embedded related rows) as plain
data, so every adapter can execute the same query.
"""

import datetime as dt
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Operator = Literal["eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is", "not.is"]


def wire_value(value: Any) -> Any:
    """Convert a Python value to the representation stored in a row."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, dt.time):
        return value.strftime("%H:%M")
    if isinstance(value, (list, tuple, set, frozenset)):
        return [wire_value(v) for v in value]
    return value


class Embed(BaseModel):
    """A related row embedded under ``alias`` through ``foreign_key``."""

    model_config = ConfigDict(frozen=True)

    alias: str
    table: str
    foreign_key: str


class Filter(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    op: Operator
    value: Any = None


class AnyOf(BaseModel):
    """An OR group: a row matches when any inner filter matches."""

    model_config = ConfigDict(frozen=True)

    filters: tuple[Filter, ...]


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    ascending: bool = True


class Query(BaseModel):
    """Chainable description of a select against one table."""

    table: str
    columns: tuple[str, ...] = ("*",)
    embeds: tuple[Embed, ...] = ()
    filters: list[Filter | AnyOf] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    offset: int | None = None
    limit_to: int | None = None
    count: bool = False

    def select(self, *columns: str, embeds: tuple[Embed, ...] = ()) -> "Query":
        if columns:
            self.columns = columns
        self.embeds = embeds
        return self

    def _add(self, column: str, op: Operator, value: Any) -> "Query":
        self.filters.append(Filter(column=column, op=op, value=wire_value(value)))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._add(column, "eq", value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._add(column, "neq", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._add(column, "lte", value)

    def like(self, column: str, pattern: str) -> "Query":
        """SQL ``LIKE`` with ``%`` wildcards."""
        return self._add(column, "like", pattern)

    def ilike(self, column: str, pattern: str) -> "Query":
        """Case-insensitive ``LIKE`` with ``%`` wildcards."""
        return self._add(column, "ilike", pattern)

    def in_(self, column: str, values: list[Any] | tuple[Any, ...]) -> "Query":
        return self._add(column, "in", list(values))

    def is_null(self, column: str) -> "Query":
        return self._add(column, "is", None)

    def not_null(self, column: str) -> "Query":
        return self._add(column, "not.is", None)

    def any_of(self, *filters: Filter) -> "Query":
        self.filters.append(AnyOf(filters=filters))
        return self

    def order(self, column: str, *, ascending: bool = True) -> "Query":
        self.orders.append(Order(column=column, ascending=ascending))
        return self

    def range(self, offset: int, limit: int) -> "Query":
        self.offset = offset
        self.limit_to = limit
        return self

    def limit(self, limit: int) -> "Query":
        self.limit_to = limit
        return self

    def with_count(self) -> "Query":
        self.count = True
        return self


def match(column: str, op: Operator, value: Any = None) -> Filter:
    """Build a standalone filter, for use inside ``Query.any_of``."""
    return Filter(column=column, op=op, value=wire_value(value))


def search_any(columns: tuple[str, ...], term: str) -> tuple[Filter, ...]:
    """Case-insensitive substring search over several columns."""
    return tuple(match(column, "ilike", f"%{term}%") for column in columns)


class SelectResult(BaseModel):
    rows: list[dict[str, Any]]
    count: int | None = None
