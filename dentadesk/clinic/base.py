from collections.abc import Awaitable
from typing import Generic, TypeVar

from loguru import logger
from pydantic import BaseModel

from dentadesk.domain.exceptions import ClinicError, DataStoreUnavailableError, DeleteBlockedError
from dentadesk.domain.models import DeleteCheck, Page, PageRequest, Pagination
from dentadesk.store.ports import Row, StoreClientProtocol
from dentadesk.store.query import Embed, Query

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")


class TableRepository(Generic[M]):
    """Pass-through access to one remote table, mapping rows into ``model``."""

    table: str
    model: type[M]
    embeds: tuple[Embed, ...] = ()
    default_sort: tuple[str, bool] = ("id", True)

    def __init__(self, client: StoreClientProtocol) -> None:
        self._client = client

    def _query(self, *, embed: bool = True) -> Query:
        return Query(table=self.table).select(embeds=self.embeds if embed else ())

    def _to_model(self, row: Row) -> M:
        return self.model.model_validate(row)

    async def _guard(self, action: str, awaitable: Awaitable[R]) -> R:
        """Await a store call, wrapping unexpected failures with ``action``."""
        try:
            return await awaitable
        except ClinicError:
            logger.warning("{} failed against table {}", action, self.table)
            raise
        except Exception as exc:
            logger.warning("{} failed against table {}: {}", action, self.table, exc)
            raise DataStoreUnavailableError(f"{action} failed: {exc}") from exc

    async def _fetch(self, query: Query, action: str) -> list[M]:
        result = await self._guard(action, self._client.select(query))
        return [self._to_model(row) for row in result.rows]

    async def _fetch_page(self, query: Query, request: PageRequest, action: str) -> Page[M]:
        sort_by, ascending = self.default_sort
        if request.sort_by:
            sort_by = request.sort_by
        if request.sort_order:
            ascending = request.sort_order == "asc"
        query.order(sort_by, ascending=ascending)
        self._order_tiebreak(query, sort_by)
        query.range(request.offset, request.limit).with_count()

        result = await self._guard(action, self._client.select(query))
        total = result.count if result.count is not None else len(result.rows)
        return Page(
            records=[self._to_model(row) for row in result.rows],
            pagination=Pagination.build(total, request),
        )

    def _order_tiebreak(self, query: Query, sort_by: str) -> None:
        """Hook for secondary ordering after the primary sort column."""

    async def get(self, record_id: int | str) -> M | None:
        """Fetch one row by id, or ``None`` when it does not exist."""
        row = await self._guard(
            f"Fetching {self.table} row", self._client.select_one(self._query().eq("id", record_id))
        )
        return self._to_model(row) if row is not None else None

    async def _insert(self, values: Row) -> M:
        row = await self._guard(
            f"Creating {self.table} row", self._client.insert(self.table, values, self.embeds)
        )
        logger.info("Created {} row id={}", self.table, row.get("id"))
        return self._to_model(row)

    async def _update(self, record_id: int | str, values: Row) -> M | None:
        row = await self._guard(
            f"Updating {self.table} row",
            self._client.update(self.table, record_id, values, self.embeds),
        )
        if row is None:
            return None
        logger.info("Updated {} row id={}", self.table, record_id)
        return self._to_model(row)

    async def _delete(self, record_id: int | str) -> None:
        await self._guard(f"Deleting {self.table} row", self._client.delete(self.table, record_id))
        logger.info("Deleted {} row id={}", self.table, record_id)

    async def _count(self, query: Query, action: str) -> int:
        """Count the rows matching ``query`` without transferring them."""
        query.select("id").limit(1).with_count()
        result = await self._guard(action, self._client.select(query))
        return result.count if result.count is not None else len(result.rows)

    async def _count_references(self, table: str, column: str, value: int | str) -> int:
        return await self._count(Query(table=table).eq(column, value), f"Checking {table} references")

    async def _check_references(self, record_id: int | str, references: dict[str, str], label: str) -> DeleteCheck:
        """Count rows in ``references`` (table -> column) pointing at ``record_id``."""
        for table, column in references.items():
            count = await self._count_references(table, column, record_id)
            if count > 0:
                return DeleteCheck(
                    can_delete=False,
                    reason=f"The {label} has {count} associated {table}",
                    reference_count=count,
                )
        return DeleteCheck(can_delete=True)

    @staticmethod
    def _refuse_unless(check: DeleteCheck) -> None:
        if not check.can_delete:
            raise DeleteBlockedError(check.reason or "record is referenced", check.reference_count)
