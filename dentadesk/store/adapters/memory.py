import copy
import datetime as dt
import re
import uuid

from dentadesk.store.ports import Row
from dentadesk.store.query import AnyOf, Embed, Filter, Query, SelectResult

UUID_TABLES = frozenset({"patients", "invoices"})


def _like_to_regex(pattern: str, *, ignore_case: bool) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL if ignore_case else re.DOTALL)


def _matches(row: Row, flt: Filter) -> bool:
    value = row.get(flt.column)
    match flt.op:
        case "eq":
            return value == flt.value
        case "neq":
            return value is not None and value != flt.value
        case "is":
            return value is flt.value if flt.value is None else value == flt.value
        case "not.is":
            return value is not flt.value if flt.value is None else value != flt.value
        case "in":
            return value in flt.value
        case "like" | "ilike":
            if value is None:
                return False
            regex = _like_to_regex(str(flt.value), ignore_case=flt.op == "ilike")
            return regex.fullmatch(str(value)) is not None
    if value is None:
        return False
    match flt.op:
        case "gt":
            return value > flt.value
        case "gte":
            return value >= flt.value
        case "lt":
            return value < flt.value
        case "lte":
            return value <= flt.value
    raise ValueError(f"Unsupported operator: {flt.op}")


def _row_matches(row: Row, filters: list[Filter | AnyOf]) -> bool:
    for item in filters:
        if isinstance(item, AnyOf):
            if not any(_matches(row, f) for f in item.filters):
                return False
        elif not _matches(row, item):
            return False
    return True


class MemoryStoreClient:
    """In-memory implementation of the StoreClientProtocol protocol.

    Tables are injected as ``{"table": [row, ...]}`` and queried with the
    same filter semantics as the hosted store.  Set ``select_error``,
    ``insert_error``, etc. to make the corresponding method raise.

    After calls, inspect ``queries`` to see what was asked of the store.
    """

    def __init__(self, tables: dict[str, list[Row]] | None = None) -> None:
        self.tables: dict[str, list[Row]] = tables if tables is not None else {}
        self.queries: list[Query] = []
        self.closed: bool = False

        self.select_error: Exception | None = None
        self.insert_error: Exception | None = None
        self.update_error: Exception | None = None
        self.delete_error: Exception | None = None

    def _table(self, name: str) -> list[Row]:
        return self.tables.setdefault(name, [])

    def _next_id(self, table: str) -> int | str:
        if table in UUID_TABLES:
            return str(uuid.uuid4())
        ids = [row["id"] for row in self._table(table) if isinstance(row.get("id"), int)]
        return max(ids, default=0) + 1

    def _find(self, table: str, record_id: int | str) -> Row | None:
        return next((row for row in self._table(table) if row.get("id") == record_id), None)

    def _resolve(self, row: Row, columns: tuple[str, ...], embeds: tuple[Embed, ...]) -> Row:
        if columns == ("*",):
            result = copy.deepcopy(row)
        else:
            result = {column: copy.deepcopy(row.get(column)) for column in columns}
        for embed in embeds:
            related = self._find(embed.table, row.get(embed.foreign_key))
            result[embed.alias] = copy.deepcopy(related) if related else None
        return result

    def seed(self, table: str, *rows: Row) -> list[Row]:
        """Insert rows synchronously, assigning ids where missing."""
        stored = []
        for row in rows:
            stored_row = {"id": self._next_id(table), **row}
            self._table(table).append(stored_row)
            stored.append(stored_row)
        return stored

    async def select(self, query: Query) -> SelectResult:
        if self.select_error:
            raise self.select_error
        self.queries.append(query)

        rows = [row for row in self._table(query.table) if _row_matches(row, query.filters)]
        for order in reversed(query.orders):
            present = [r for r in rows if r.get(order.column) is not None]
            missing = [r for r in rows if r.get(order.column) is None]
            present.sort(key=lambda r: r[order.column], reverse=not order.ascending)
            rows = present + missing

        total = len(rows)
        start = query.offset or 0
        stop = start + query.limit_to if query.limit_to is not None else None
        rows = rows[start:stop]
        return SelectResult(
            rows=[self._resolve(row, query.columns, query.embeds) for row in rows],
            count=total if query.count else None,
        )

    async def select_one(self, query: Query) -> Row | None:
        result = await self.select(query)
        # Zero or several matches both read as "no single row".
        if len(result.rows) != 1:
            return None
        return result.rows[0]

    async def insert(self, table: str, values: Row, embeds: tuple[Embed, ...] = ()) -> Row:
        if self.insert_error:
            raise self.insert_error
        now = dt.datetime.now(dt.timezone.utc).isoformat()
        row: Row = {"id": self._next_id(table), "created_at": now, "updated_at": now, **values}
        self._table(table).append(row)
        return self._resolve(row, ("*",), embeds)

    async def update(
        self,
        table: str,
        record_id: int | str,
        values: Row,
        embeds: tuple[Embed, ...] = (),
    ) -> Row | None:
        if self.update_error:
            raise self.update_error
        row = self._find(table, record_id)
        if row is None:
            return None
        row.update(values)
        row["updated_at"] = dt.datetime.now(dt.timezone.utc).isoformat()
        return self._resolve(row, ("*",), embeds)

    async def delete(self, table: str, record_id: int | str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.tables[table] = [row for row in self._table(table) if row.get("id") != record_id]

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True
