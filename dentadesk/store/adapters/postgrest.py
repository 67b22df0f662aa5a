from typing import Any

import httpx
from loguru import logger

from dentadesk.domain.exceptions import DataStoreUnavailableError
from dentadesk.store.ports import Row
from dentadesk.store.query import AnyOf, Embed, Filter, Query, SelectResult

_SINGLE_OBJECT = "application/vnd.pgrst.object+json"
_NO_ROWS_CODE = "PGRST116"


def _encode_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def encode_filter(flt: Filter, *, quoted: bool = False) -> str:
    """Render ``flt`` as a PostgREST operator expression, e.g. ``gte.2024-05-01``.

    Inside ``or=(...)`` groups ``quoted`` wraps the value in double quotes so
    commas, dots and parentheses in search terms stay part of the value.
    """
    if flt.op in ("is", "not.is"):
        return f"{flt.op}.{_encode_scalar(flt.value)}"
    if flt.op == "in":
        values = (_encode_scalar(v) for v in flt.value)
        return f"in.({','.join(_quote(v) if quoted else v for v in values)})"
    if flt.op in ("like", "ilike"):
        value = str(flt.value).replace("%", "*")
    else:
        value = _encode_scalar(flt.value)
    return f"{flt.op}.{_quote(value) if quoted else value}"


def encode_select(columns: tuple[str, ...], embeds: tuple[Embed, ...]) -> str:
    parts = list(columns)
    parts.extend(f"{e.alias}:{e.table}(*)" for e in embeds)
    return ",".join(parts)


def encode_query(query: Query) -> list[tuple[str, str]]:
    """Translate a ``Query`` into PostgREST query-string parameters."""
    params: list[tuple[str, str]] = [("select", encode_select(query.columns, query.embeds))]
    for item in query.filters:
        if isinstance(item, AnyOf):
            inner = ",".join(
                f"{f.column}.{encode_filter(f, quoted=True)}" for f in item.filters
            )
            params.append(("or", f"({inner})"))
        else:
            params.append((item.column, encode_filter(item)))
    if query.orders:
        params.append(
            ("order", ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in query.orders))
        )
    if query.offset is not None:
        params.append(("offset", str(query.offset)))
    if query.limit_to is not None:
        params.append(("limit", str(query.limit_to)))
    return params


def parse_content_range(header: str | None) -> int | None:
    """Extract the total from a ``Content-Range`` header like ``0-24/3573``."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class PostgRESTClient:
    """Data store client for a hosted PostgREST (Supabase) endpoint."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str,
        schema_name: str = "public",
        timeout: float = 30,
    ) -> None:
        self._rest_url = f"{url.rstrip('/')}/rest/v1"
        self._api_key = api_key
        self._schema_name = schema_name
        self._client = httpx.AsyncClient(timeout=timeout)

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._schema_name != "public":
            headers["Accept-Profile"] = self._schema_name
            headers["Content-Profile"] = self._schema_name
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Row | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                f"{self._rest_url}/{table}",
                params=params,
                json=json,
                headers=self._headers(headers),
            )
        except httpx.HTTPError as exc:
            raise DataStoreUnavailableError(f"Data store request failed: {exc}") from exc

    def _raise_for_error(self, response: httpx.Response) -> None:
        if not response.is_error:
            return
        try:
            payload: dict[str, Any] = response.json()
            message = payload.get("message") or payload.get("hint") or response.text
        except ValueError:
            message = response.text
        raise DataStoreUnavailableError(
            f"Data store error (status {response.status_code}): {message}"
        )

    @staticmethod
    def _error_code(response: httpx.Response) -> str | None:
        try:
            payload: dict[str, Any] = response.json()
        except ValueError:
            return None
        return payload.get("code") if isinstance(payload, dict) else None

    async def select(self, query: Query) -> SelectResult:
        headers = {"Prefer": "count=exact"} if query.count else None
        response = await self._send("GET", query.table, params=encode_query(query), headers=headers)
        self._raise_for_error(response)

        rows: list[Row] = response.json() or []
        count = parse_content_range(response.headers.get("Content-Range")) if query.count else None
        return SelectResult(rows=rows, count=count)

    async def select_one(self, query: Query) -> Row | None:
        response = await self._send(
            "GET",
            query.table,
            params=encode_query(query),
            headers={"Accept": _SINGLE_OBJECT},
        )
        if response.status_code == 406 and self._error_code(response) == _NO_ROWS_CODE:
            return None
        self._raise_for_error(response)
        row: Row = response.json()
        return row

    async def insert(self, table: str, values: Row, embeds: tuple[Embed, ...] = ()) -> Row:
        response = await self._send(
            "POST",
            table,
            params=[("select", encode_select(("*",), embeds))],
            json=values,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_error(response)

        rows: list[Row] = response.json() or []
        if not rows:
            raise DataStoreUnavailableError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(
        self,
        table: str,
        record_id: int | str,
        values: Row,
        embeds: tuple[Embed, ...] = (),
    ) -> Row | None:
        response = await self._send(
            "PATCH",
            table,
            params=[("id", f"eq.{record_id}"), ("select", encode_select(("*",), embeds))],
            json=values,
            headers={"Prefer": "return=representation"},
        )
        self._raise_for_error(response)

        rows: list[Row] = response.json() or []
        return rows[0] if rows else None

    async def delete(self, table: str, record_id: int | str) -> None:
        response = await self._send("DELETE", table, params=[("id", f"eq.{record_id}")])
        self._raise_for_error(response)

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(f"{self._rest_url}/", headers=self._headers())
            response.raise_for_status()
            return True
        except Exception as exc:
            logger.warning("Data store health check failed: {}", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("PostgREST client closed")
