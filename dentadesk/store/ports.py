from typing import Any, Protocol

from dentadesk.store.query import Embed, Query, SelectResult

Row = dict[str, Any]


class StoreClientProtocol(Protocol):
    """Low-level interface to the hosted relational data store."""

    async def select(self, query: Query) -> SelectResult:
        """Run a select. ``count`` is filled only when the query asks for it.

        Raises:
            DataStoreUnavailableError: If the store is unreachable or rejects the query.
        """
        ...

    async def select_one(self, query: Query) -> Row | None:
        """Fetch exactly one row, or ``None`` when no row matches."""
        ...

    async def insert(self, table: str, values: Row, embeds: tuple[Embed, ...] = ()) -> Row:
        """Insert a row and return it as stored, with ``embeds`` resolved."""
        ...

    async def update(
        self,
        table: str,
        record_id: int | str,
        values: Row,
        embeds: tuple[Embed, ...] = (),
    ) -> Row | None:
        """Patch one row by id. Returns ``None`` when the id does not exist."""
        ...

    async def delete(self, table: str, record_id: int | str) -> None:
        """Delete one row by id."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...
